# src/tracking/event_log.py - v1
"""ReconciliationLogger: structured event log with running metrics.

Bounded ring buffer of LogEntry records (oldest dropped first) plus the
counters exposed by get_metrics(). Every entry is also forwarded to the
stdlib ``filerecon`` logger with the payload in ``extra={"data": ...}`` so the
JsonFormatter can emit it.

Instances are injected into the detector, matcher, lock registry, batch
processor and cleanup analyzer; there is no module-level singleton.
"""

from __future__ import annotations

import logging
import traceback
import uuid
from collections import Counter, deque
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Literal

from filerecon.tracking.exporter import entries_to_csv, entries_to_json
from filerecon.tracking.models import (
    DebugReport,
    IssueSummary,
    LogEntry,
    LogLevel,
    ReconciliationMetrics,
)

if TYPE_CHECKING:
    from filerecon.config.settings import Settings
    from filerecon.core.models import DuplicateAnalysis, MatchResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000

_STDLIB_LEVELS: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


class ReconciliationLogger:
    """Structured reconciliation events, counters, and exports."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        session_id: str | None = None,
    ) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._metrics = ReconciliationMetrics()
        self.session_id = session_id or f"session_{uuid.uuid4().hex[:12]}"

    @classmethod
    def from_settings(cls, settings: Settings) -> ReconciliationLogger:
        return cls(max_entries=settings.event_log_max_entries)

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen or DEFAULT_MAX_ENTRIES

    def __len__(self) -> int:
        return len(self._entries)

    # --- Typed events ---

    def log_duplicate_detection(
        self,
        project_id: str | None,
        file_path: str,
        analysis: DuplicateAnalysis,
    ) -> None:
        """Record one DuplicateDetector verdict and update action counters."""
        m = self._metrics
        m.total_detections += 1
        if analysis.recommended_action == "skip":
            m.skip_actions += 1
        elif analysis.recommended_action == "update":
            m.update_actions += 1
        else:
            m.create_actions += 1
        if analysis.is_duplicate:
            m.duplicates_blocked += 1

        matching = analysis.matching_file
        self._add(
            "INFO", "DUPLICATE_DETECTION",
            f"File analysis: {file_path} -> {analysis.recommended_action}",
            {
                "project_id": project_id,
                "file_path": file_path,
                "is_duplicate": analysis.is_duplicate,
                "exact_match": analysis.exact_match,
                "action": analysis.recommended_action,
                "reason": analysis.reason,
                "confidence": analysis.confidence,
                "matching_file_id": matching.id if matching else None,
                "matching_file_path": matching.path if matching else None,
            },
        )
        self._touch()

    def log_path_normalization(
        self,
        original_path: str,
        normalized_path: str,
        issues: list[str] | None = None,
        project_id: str | None = None,
    ) -> None:
        changed = original_path != normalized_path
        if changed:
            self._metrics.path_normalization_issues += 1
        self._add(
            "DEBUG", "PATH_NORMALIZATION",
            f'Path normalized: "{original_path}" -> "{normalized_path}"',
            {
                "project_id": project_id,
                "original_path": original_path,
                "normalized_path": normalized_path,
                "issues": issues or [],
                "changed": changed,
            },
        )
        self._touch()

    def log_race_condition(
        self,
        operation: str,
        lock_key: str,
        wait_time_s: float | None = None,
        project_id: str | None = None,
    ) -> None:
        """Record that an acquisition had to wait behind another holder."""
        self._metrics.race_conditions_detected += 1
        self._add(
            "WARN", "RACE_CONDITION",
            f"Race condition detected for {operation}",
            {
                "project_id": project_id,
                "operation": operation,
                "lock_key": lock_key,
                "wait_time_s": wait_time_s,
            },
        )
        self._touch()

    def log_batch_processing(
        self,
        project_id: str,
        batch_size: int,
        successful: int,
        skipped: int,
        errors: int,
        processing_time_s: float | None = None,
    ) -> None:
        if errors > 0:
            self._metrics.batch_processing_errors += errors

        level: LogLevel = "ERROR" if errors > 0 else "WARN" if skipped > 0 else "INFO"
        self._add(
            level, "BATCH_PROCESSING",
            f"Batch processed: {successful}/{batch_size} successful",
            {
                "project_id": project_id,
                "batch_size": batch_size,
                "successful": successful,
                "skipped": skipped,
                "errors": errors,
                "processing_time_s": processing_time_s,
            },
        )
        self._touch()

    def log_file_matching(
        self,
        candidate_path: str,
        existing_files_count: int,
        best_match: MatchResult | None = None,
        fallback_used: bool = False,
    ) -> None:
        self._add(
            "DEBUG", "FILE_MATCHING",
            f"File matching for {candidate_path}",
            {
                "candidate_path": candidate_path,
                "existing_files_count": existing_files_count,
                "best_match_confidence": best_match.confidence if best_match else None,
                "best_match_path": best_match.existing_file.path if best_match else None,
                "best_match_reasons": best_match.reasons if best_match else None,
                "fallback_used": fallback_used,
            },
        )

    def log_error(
        self,
        category: str,
        message: str,
        error: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        data = dict(context or {})
        stack: str | None = None
        if error is not None:
            data["error_name"] = type(error).__name__
            data["error_message"] = str(error)
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        self._add("ERROR", category, message, data, stack_trace=stack)

    def log_warning(
        self,
        category: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        self._add("WARN", category, message, dict(data or {}))

    def log_performance(
        self,
        operation: str,
        duration_s: float,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._add(
            "DEBUG", "PERFORMANCE",
            f"{operation} took {duration_s * 1000:.2f}ms",
            {"operation": operation, "duration_s": duration_s, **(metadata or {})},
        )

    # --- Queries ---

    def get_metrics(self) -> ReconciliationMetrics:
        """Snapshot copy of the counters."""
        return self._metrics.model_copy()

    def get_recent_logs(self, limit: int = 100, level: LogLevel | None = None) -> list[LogEntry]:
        """Newest-first entries, optionally restricted to one level."""
        entries = [e for e in reversed(self._entries) if level is None or e.level == level]
        return entries[:limit]

    def get_logs_by_category(self, category: str, limit: int = 50) -> list[LogEntry]:
        entries = [e for e in reversed(self._entries) if e.category == category]
        return entries[:limit]

    def generate_debug_report(self, project_id: str | None = None) -> DebugReport:
        """Summarize activity, top WARN/ERROR categories, and recommendations."""
        entries = self._filtered(project_id)
        errors = [e for e in entries if e.level == "ERROR"]
        warnings = [e for e in entries if e.level == "WARN"]

        issue_counts = Counter(e.category for e in entries if e.level in ("ERROR", "WARN"))
        top_issues = [
            IssueSummary(
                category=category,
                count=count,
                sample=next(e.message for e in entries if e.category == category),
            )
            for category, count in issue_counts.most_common(5)
        ]

        m = self._metrics
        recommendations: list[str] = []
        if m.duplicates_blocked > 10:
            recommendations.append(
                "High number of duplicate files detected. Review how file proposals are generated."
            )
        if m.path_normalization_issues > 5:
            recommendations.append(
                "Multiple path normalization issues detected. Check path format consistency."
            )
        if m.race_conditions_detected > 0:
            recommendations.append(
                "Concurrent batches waited on project locks. Check for overlapping generation requests."
            )
        if m.batch_processing_errors > 0:
            recommendations.append(
                "Batch processing errors occurred. Check storage callback failures."
            )
        if not recommendations:
            recommendations.append("No major issues detected. System is operating normally.")

        time_range = None
        if entries:
            time_range = {
                "start": min(e.timestamp for e in entries).isoformat(),
                "end": max(e.timestamp for e in entries).isoformat(),
            }

        return DebugReport(
            summary={
                "project_id": project_id,
                "session_id": self.session_id,
                "total_logs": len(entries),
                "error_count": len(errors),
                "warning_count": len(warnings),
                "time_range": time_range,
            },
            metrics=self.get_metrics(),
            recent_errors=errors[-10:],
            top_issues=top_issues,
            recommendations=recommendations,
        )

    def export_logs(
        self,
        fmt: Literal["json", "csv"] = "json",
        project_id: str | None = None,
        limit: int | None = None,
    ) -> str:
        """Export the last ``limit`` entries (chronological order) as JSON or CSV."""
        entries = self._filtered(project_id)
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        if fmt == "json":
            return entries_to_json(entries)
        if fmt == "csv":
            return entries_to_csv(entries)
        raise ValueError(f"Unsupported export format: {fmt!r}")

    # --- Maintenance ---

    def clear_old_logs(self, older_than_hours: float = 24) -> int:
        """Drop entries older than the cutoff; returns how many were removed."""
        cutoff = datetime.now(timezone.utc) - timedelta(hours=older_than_hours)
        kept = [e for e in self._entries if e.timestamp > cutoff]
        removed = len(self._entries) - len(kept)
        self._entries.clear()
        self._entries.extend(kept)
        if removed > 0:
            self._add("INFO", "LOG_MAINTENANCE", f"Cleared {removed} old log entries")
        return removed

    def reset_metrics(self) -> None:
        self._metrics = ReconciliationMetrics()
        self._add("INFO", "SYSTEM", "Metrics reset")

    # --- Internals ---

    def _filtered(self, project_id: str | None) -> list[LogEntry]:
        if project_id is None:
            return list(self._entries)
        return [e for e in self._entries if e.project_id == project_id]

    def _touch(self) -> None:
        self._metrics.last_updated = datetime.now(timezone.utc)

    def _add(
        self,
        level: LogLevel,
        category: str,
        message: str,
        data: dict[str, Any] | None = None,
        stack_trace: str | None = None,
    ) -> None:
        payload = data or {}
        entry = LogEntry(
            level=level,
            category=category,
            message=message,
            data=payload,
            project_id=payload.get("project_id"),
            session_id=self.session_id,
            stack_trace=stack_trace,
        )
        self._entries.append(entry)
        logger.log(
            _STDLIB_LEVELS[level], "[%s] %s", category, message,
            extra={"data": payload},
        )
