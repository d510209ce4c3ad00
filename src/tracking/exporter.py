# src/tracking/exporter.py - v2
"""Event log export to JSON and CSV, plus the debug-report summary text."""

from __future__ import annotations

import csv
import io
import json
from pathlib import Path

from filerecon.tracking.models import DebugReport, LogEntry

CSV_FIELDNAMES = ["timestamp", "level", "category", "message", "project_id", "data"]


def entries_to_json(entries: list[LogEntry]) -> str:
    """Serialize entries as an indented JSON array."""
    return json.dumps([e.model_dump(mode="json") for e in entries], indent=2)


def entries_to_csv(entries: list[LogEntry]) -> str:
    """Serialize entries as CSV; ``data`` is embedded as a JSON string."""
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer, fieldnames=CSV_FIELDNAMES, quoting=csv.QUOTE_ALL, lineterminator="\n",
    )
    writer.writeheader()
    for entry in entries:
        writer.writerow({
            "timestamp": entry.timestamp.isoformat(),
            "level": entry.level,
            "category": entry.category,
            "message": entry.message,
            "project_id": entry.project_id or "",
            "data": json.dumps(entry.data, default=str),
        })
    return buffer.getvalue()


def write_export(content: str, path: Path) -> None:
    """Write an export produced by entries_to_json/entries_to_csv to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def debug_report_summary(report: DebugReport) -> str:
    """Generate a human-readable summary of a debug report."""
    m = report.metrics
    lines: list[str] = [
        f"=== Reconciliation Debug Report: {report.summary.get('project_id') or 'all projects'} ===",
        f"Session      : {report.summary.get('session_id')}",
        f"Log entries  : {report.summary.get('total_logs', 0)} "
        f"(errors: {report.summary.get('error_count', 0)}, "
        f"warnings: {report.summary.get('warning_count', 0)})",
        f"Detections   : {m.total_detections} "
        f"(skip {m.skip_actions}, update {m.update_actions}, create {m.create_actions})",
        f"Dups blocked : {m.duplicates_blocked}",
        f"Path issues  : {m.path_normalization_issues}",
        f"Lock waits   : {m.race_conditions_detected}",
        f"Batch errors : {m.batch_processing_errors}",
    ]

    if report.top_issues:
        lines.append("")
        lines.append("--- Top Issues ---")
        for issue in report.top_issues:
            lines.append(f"  {issue.category:25s} | {issue.count:4d} | {issue.sample}")

    lines.append("")
    lines.append("--- Recommendations ---")
    lines.extend(f"  * {r}" for r in report.recommendations)
    return "\n".join(lines)
