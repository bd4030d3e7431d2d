#!/usr/bin/env python3
"""
lessonvid — manifest validation and timing analytics CLI.

Subcommands
-----------
  lessonvid validate   Two-phase manifest validation → report JSON
  lessonvid analyze    Audio (or --video) timing analysis → record JSON
  lessonvid aggregate  Generation records → AggregationReport JSON
  lessonvid verify     Self-check: validation idempotence + lossless round-trip

All results are printed to stdout as JSON; errors go to stderr prefixed with
"ERROR:".  Exit code 0 on success, 1 on invalid input or failure.
"""
from __future__ import annotations

import argparse
import datetime
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from lessonvid.analytics.aggregation import build_report
from lessonvid.analytics.timing import TimingAnalyzer
from lessonvid.schemas.generation import GenerationRecord
from lessonvid.schemas.render_result import narration_from_render_payload
from lessonvid.schemas.thresholds import DEFAULT_THRESHOLDS, Thresholds
from lessonvid.schemas.timing import NarrationTiming, TimingAnalysisError
from lessonvid.tests._fixture_builders import (
    build_minimal_manifest_data,
    build_minimal_narration,
)
from lessonvid.validator.manifest_validator import (
    get_manifest_validation_issues,
    validate_manifest,
    validate_partial_manifest,
)

logger = logging.getLogger(__name__)

_RECORDS_ADAPTER = TypeAdapter(list[GenerationRecord])


# =============================================================================
# Shared helpers
# =============================================================================

def _read_json(path: Path) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _load_thresholds(path: Optional[Path]) -> Thresholds:
    if path is None:
        return DEFAULT_THRESHOLDS
    return Thresholds.model_validate_json(Path(path).read_text(encoding="utf-8"))


def _load_narration(raw: Any) -> NarrationTiming:
    """Accept either a NarrationTiming document or a raw renderer payload."""
    if isinstance(raw, dict) and "status" in raw:
        return narration_from_render_payload(raw)
    try:
        return NarrationTiming.model_validate(raw)
    except ValidationError as exc:
        raise TimingAnalysisError([
            f"narration {'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        ]) from exc


def _load_records(raw: Any) -> list[GenerationRecord]:
    """Accept a JSON list of records or an object with a "records" list."""
    if isinstance(raw, dict):
        if "records" not in raw:
            raise ValueError('records document must be a list or have a "records" key')
        raw = raw["records"]
    return _RECORDS_ADAPTER.validate_python(raw)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=False))


def _changed_paths(before: Any, after: Any, path: str = "") -> list[str]:
    """
    Dotted paths at which two decoded JSON documents disagree.

    Lists are compared element by element, so a changed error message in a
    validation report shows up as e.g. ``errors.2.message``.
    """
    if isinstance(before, dict) and isinstance(after, dict):
        changed: list[str] = []
        for key in sorted(set(before) | set(after)):
            child = f"{path}.{key}" if path else str(key)
            if key not in before or key not in after:
                changed.append(child)
            else:
                changed.extend(_changed_paths(before[key], after[key], child))
        return changed
    if isinstance(before, list) and isinstance(after, list):
        if len(before) != len(after):
            return [f"{path or '<root>'} (length {len(before)} vs {len(after)})"]
        changed = []
        for index, (a, b) in enumerate(zip(before, after)):
            changed.extend(_changed_paths(a, b, f"{path}.{index}" if path else str(index)))
        return changed
    return [] if before == after else [path or "<root>"]


# =============================================================================
# cmd_validate
# =============================================================================

def cmd_validate(
    manifest_path: Path,
    partial: bool = False,
    thresholds_path: Optional[Path] = None,
) -> int:
    """
    Validate a manifest file and print the report.

    With partial=True the draft is parsed permissively and the report lists
    everything still blocking submission.
    Returns exit code: 0 when there are no errors, 1 otherwise.
    """
    try:
        raw = _read_json(manifest_path)
        thresholds = _load_thresholds(thresholds_path)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if partial:
        report = validate_partial_manifest(raw)
        if report.success:
            report = get_manifest_validation_issues(report.manifest, thresholds)
    else:
        report = validate_manifest(raw, thresholds)

    _print_json(report.summary())
    return 0 if report.success else 1


# =============================================================================
# cmd_analyze
# =============================================================================

def cmd_analyze(
    manifest_path: Path,
    narration_path: Path,
    video: bool = False,
    thresholds_path: Optional[Path] = None,
) -> int:
    """
    Run the audio (default) or video timing pass and print the record.

    The manifest must pass validation first; its errors are printed to
    stderr and the analysis is not attempted.
    """
    try:
        raw_manifest = _read_json(manifest_path)
        raw_narration = _read_json(narration_path)
        thresholds = _load_thresholds(thresholds_path)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    report = validate_manifest(raw_manifest, thresholds)
    if not report.success:
        print(f"ERROR: manifest {manifest_path.name} is invalid:", file=sys.stderr)
        for message in report.messages():
            print(f"  - {message}", file=sys.stderr)
        return 1

    analyzer = TimingAnalyzer(thresholds)
    try:
        narration = _load_narration(raw_narration)
        if video:
            record = analyzer.analyze_video(report.manifest, narration)
        else:
            record = analyzer.analyze_audio(report.manifest, narration)
    except TimingAnalysisError as exc:
        print("ERROR: timing analysis failed:", file=sys.stderr)
        for problem in exc.problems:
            print(f"  - {problem}", file=sys.stderr)
        return 1

    print(record.model_dump_json(indent=2))
    return 0


# =============================================================================
# cmd_aggregate
# =============================================================================

def cmd_aggregate(
    records_path: Path,
    group_by: Optional[str] = "partner",
    start: Optional[datetime.date] = None,
    end: Optional[datetime.date] = None,
    thresholds_path: Optional[Path] = None,
) -> int:
    try:
        records = _load_records(_read_json(records_path))
        thresholds = _load_thresholds(thresholds_path)
        report = build_report(
            records, start=start, end=end, group_by=group_by,
            sla_hours=thresholds.sla_hours,
        )
    except (OSError, json.JSONDecodeError, ValidationError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(report.model_dump_json(indent=2))
    return 0


# =============================================================================
# cmd_verify
# =============================================================================

def cmd_verify() -> int:
    """
    Validate the built-in fixture twice and after a JSON round-trip, then run
    both timing passes on it.  Any difference is a failure.
    """
    errors: list[str] = []
    data = build_minimal_manifest_data()

    first = validate_manifest(data)
    if not first.success:
        errors.extend(f"fixture invalid: {m}" for m in first.messages())
    else:
        second = validate_manifest(build_minimal_manifest_data())
        for field in _changed_paths(first.summary(), second.summary()):
            errors.append(f"revalidation differs: {field}")

        wire = json.loads(json.dumps(first.manifest.to_wire()))
        third = validate_manifest(wire)
        for field in _changed_paths(first.summary(), third.summary()):
            errors.append(f"round-trip report differs: {field}")
        if third.manifest is not None:
            for field in _changed_paths(wire, third.manifest.to_wire()):
                errors.append(f"round-trip manifest differs: {field}")

        try:
            analyzer = TimingAnalyzer()
            analyzer.analyze_audio(first.manifest, build_minimal_narration())
            analyzer.analyze_video(first.manifest, build_minimal_narration())
        except TimingAnalysisError as exc:
            errors.extend(f"timing: {p}" for p in exc.problems)

    if errors:
        for e in errors:
            print(f"  - {e}", file=sys.stderr)
        print("ERROR: manifest pipeline verification failed")
        return 1

    print("OK: manifest pipeline verified")
    return 0


# =============================================================================
# CLI entry point
# =============================================================================

def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="lessonvid",
        description="lessonvid — manifest validation and timing analytics",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging on stderr",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # ── lessonvid validate ───────────────────────────────────────────────────
    validate_parser = sub.add_parser("validate", help="Validate a manifest JSON file")
    validate_parser.add_argument("manifest", type=Path, help="Path to manifest JSON")
    validate_parser.add_argument(
        "--partial", action="store_true",
        help="Treat the manifest as a draft (all top-level fields optional)",
    )
    validate_parser.add_argument(
        "--thresholds", type=Path, default=None, metavar="PATH",
        help="JSON file overriding warning thresholds",
    )

    # ── lessonvid analyze ────────────────────────────────────────────────────
    analyze_parser = sub.add_parser("analyze", help="Timing analysis for a manifest")
    analyze_parser.add_argument("manifest", type=Path, help="Path to manifest JSON")
    analyze_parser.add_argument(
        "--narration", type=Path, required=True, metavar="PATH",
        help="Narration timing JSON or renderer result payload",
    )
    analyze_parser.add_argument(
        "--video", action="store_true",
        help="Report shot-duration adjustments instead of audio timing",
    )
    analyze_parser.add_argument(
        "--thresholds", type=Path, default=None, metavar="PATH",
        help="JSON file overriding analysis thresholds",
    )

    # ── lessonvid aggregate ──────────────────────────────────────────────────
    aggregate_parser = sub.add_parser("aggregate", help="Roll up generation records")
    aggregate_parser.add_argument("records", type=Path, help="Path to records JSON")
    aggregate_parser.add_argument(
        "--group-by", default="partner", choices=["partner", "day", "seat", "none"],
        help="Partition key for per-group metrics (default: partner)",
    )
    aggregate_parser.add_argument(
        "--start", type=datetime.date.fromisoformat, default=None, metavar="YYYY-MM-DD",
    )
    aggregate_parser.add_argument(
        "--end", type=datetime.date.fromisoformat, default=None, metavar="YYYY-MM-DD",
    )
    aggregate_parser.add_argument(
        "--thresholds", type=Path, default=None, metavar="PATH",
        help="JSON file overriding the SLA window",
    )

    # ── lessonvid verify ─────────────────────────────────────────────────────
    sub.add_parser("verify", help="Run the built-in validation self-check")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "validate":
        sys.exit(cmd_validate(args.manifest, partial=args.partial,
                              thresholds_path=args.thresholds))
    elif args.command == "analyze":
        sys.exit(cmd_analyze(args.manifest, args.narration, video=args.video,
                             thresholds_path=args.thresholds))
    elif args.command == "aggregate":
        sys.exit(cmd_aggregate(
            args.records,
            group_by=None if args.group_by == "none" else args.group_by,
            start=args.start,
            end=args.end,
            thresholds_path=args.thresholds,
        ))
    elif args.command == "verify":
        sys.exit(cmd_verify())


if __name__ == "__main__":
    main()
