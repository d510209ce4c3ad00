# src/main.py - v2
"""CLI entry point: cleanup, check, parse commands.

Usage:
    filerecon cleanup <project_dir> [--delete --yes] [--report] [--export-log FILE]
    filerecon check <file> --project <project_dir> [--as-path PATH]
    filerecon parse <response_file> --project <project_dir>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from filerecon.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="filerecon",
        description=f"filerecon v{__version__} - reconcile generated files with a project",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- cleanup ---
    p_cleanup = subparsers.add_parser(
        "cleanup", help="Find duplicate files in a project directory",
    )
    p_cleanup.add_argument("project", type=Path, help="Project directory")
    p_cleanup.add_argument(
        "--delete", action="store_true",
        help="Delete safe duplicates (requires --yes)",
    )
    p_cleanup.add_argument(
        "--yes", action="store_true",
        help="Skip the confirmation step for --delete",
    )
    p_cleanup.add_argument(
        "--report", action="store_true",
        help="Print the reconciliation debug report",
    )
    p_cleanup.add_argument(
        "--export-log", type=Path, default=None,
        help="Write the event log to FILE (.json or .csv)",
    )
    p_cleanup.set_defaults(func=_cmd_cleanup)

    # --- check ---
    p_check = subparsers.add_parser(
        "check", help="Classify one file against a project",
    )
    p_check.add_argument("file", type=Path, help="Candidate file")
    p_check.add_argument(
        "--project", type=Path, required=True, help="Project directory",
    )
    p_check.add_argument(
        "--as-path", default=None,
        help="Project path the candidate would be written to (default: file name)",
    )
    p_check.set_defaults(func=_cmd_check)

    # --- parse ---
    p_parse = subparsers.add_parser(
        "parse", help="Extract candidate files from model output",
    )
    p_parse.add_argument("response", type=Path, help="Model response (markdown or JSON)")
    p_parse.add_argument(
        "--project", type=Path, required=True, help="Project directory",
    )
    p_parse.set_defaults(func=_cmd_parse)

    return parser


async def _cmd_cleanup(args: argparse.Namespace) -> int:
    """Analyze a project for duplicates, deleting only on --delete --yes."""
    from filerecon.cleanup.analyzer import CleanupAnalyzer
    from filerecon.config.settings import load_settings
    from filerecon.detection.detector import DuplicateDetector
    from filerecon.storage.local import delete_local_files, load_project_files
    from filerecon.tracking.event_log import ReconciliationLogger
    from filerecon.tracking.exporter import debug_report_summary, write_export

    project: Path = args.project
    if not project.is_dir():
        logger.error("Not a directory: %s", project)
        return 1

    settings = load_settings()
    event_log = ReconciliationLogger.from_settings(settings)
    analyzer = CleanupAnalyzer(
        DuplicateDetector(settings, event_log), event_log, settings,
    )

    project_id = project.resolve().name
    files = load_project_files(project)
    analysis = analyzer.analyze_project(project_id, files)
    execution = await analyzer.execute_cleanup(
        analysis,
        delete_local_files(project),
        auto_delete=args.delete,
        confirm_before_delete=not args.yes,
    )

    print(execution.summary)
    for rec in analysis.recommendations:
        print(f"  [{rec.type:6s}] {rec.file_path}: {rec.action}")
    if args.delete and not args.yes and analysis.safe_deletions:
        print("\nRe-run with --delete --yes to remove the safe duplicates.")

    if args.report:
        print()
        print(debug_report_summary(event_log.generate_debug_report(project_id)))
    if args.export_log is not None:
        fmt = "csv" if args.export_log.suffix.lower() == ".csv" else "json"
        write_export(event_log.export_logs(fmt), args.export_log)
        logger.info("Event log written to %s", args.export_log)

    return 1 if execution.errors else 0


async def _cmd_check(args: argparse.Namespace) -> int:
    """Print the detector verdict and the matcher ranking for one file."""
    from filerecon.config.settings import load_settings
    from filerecon.core.models import CandidateFile
    from filerecon.detection.detector import DuplicateDetector
    from filerecon.matching.matcher import FileMatcher
    from filerecon.storage.local import language_for, load_project_files

    file_path: Path = args.file
    if not file_path.is_file():
        logger.error("File not found: %s", file_path)
        return 1

    settings = load_settings()
    existing = load_project_files(args.project)
    candidate = CandidateFile(
        path=args.as_path or file_path.name,
        content=file_path.read_text(encoding="utf-8"),
        language=language_for(file_path),
    )

    analysis = DuplicateDetector(settings).analyze(candidate, existing)
    matches = FileMatcher(settings).find_best_match(
        candidate.path, candidate.language, existing,
    )
    report = {
        "candidate": {"path": candidate.path, "name": candidate.name},
        "duplicate_analysis": analysis.model_dump(mode="json"),
        "match_analysis": matches.model_dump(mode="json"),
    }
    print(json.dumps(report, indent=2))
    return 0


async def _cmd_parse(args: argparse.Namespace) -> int:
    """Extract candidates from a model response and resolve their operations."""
    from filerecon.adapters.model_output import parse_model_output, resolve_operations
    from filerecon.config.settings import load_settings
    from filerecon.matching.matcher import FileMatcher
    from filerecon.storage.local import load_project_files

    response: Path = args.response
    if not response.is_file():
        logger.error("File not found: %s", response)
        return 1

    settings = load_settings()
    candidates = parse_model_output(response.read_text(encoding="utf-8"))
    resolved = resolve_operations(
        candidates, load_project_files(args.project), FileMatcher(settings), settings,
    )
    print(json.dumps(
        [c.model_dump(mode="json", exclude={"content"}) for c in resolved], indent=2,
    ))
    return 0


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage from the logging settings; -v forces DEBUG."""
    from filerecon.config.settings import load_settings
    from filerecon.logging.logger import setup_logging

    settings = load_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
