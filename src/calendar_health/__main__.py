"""CLI entry point for Calendar Health application."""

import argparse
import io
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import pytz

from .analytics.engine import RecurringAnalyticsEngine
from .analytics.summary import SeriesSortKey, filter_series, sort_series
from .config import AnalysisOptions, RangeMode, ReportConfig, config
from .models.analytics import AnalyticsResult
from .readers.json_reader import JsonEventReader
from .utils.date_utils import ensure_utc, get_analysis_window
from .utils.exceptions import CalendarHealthError, ConfigurationError
from .utils.logging import setup_logging


def _parse_now(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(value))
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid --now value: {value}. Use ISO format (e.g., 2026-02-04T09:00)"
        ) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Calendar Health - Recurring meeting and 1:1 relationship audit"
    )
    parser.add_argument(
        "events",
        type=Path,
        help="JSON export of calendar events (list or {'items': [...]})",
    )
    parser.add_argument(
        "--owner",
        type=str,
        default=None,
        help="Calendar owner email (default: OWNER_EMAIL or analytics_config.yaml)",
    )
    parser.add_argument(
        "--lookback",
        type=int,
        default=None,
        help="Audit window: days to look back (overrides config)",
    )
    parser.add_argument(
        "--lookahead",
        type=int,
        default=None,
        help="Audit window: days to look ahead (overrides config)",
    )
    parser.add_argument(
        "--relationship-days",
        type=int,
        default=None,
        help="Relationship window: days before and after now (overrides config)",
    )
    parser.add_argument(
        "--range-mode",
        choices=[m.value for m in RangeMode],
        default=None,
        help="Measure load looking back (retro) or ahead (forward)",
    )
    parser.add_argument(
        "--baseline-hours",
        type=float,
        default=None,
        help="Hours in a work week for the percentage roll-up",
    )
    parser.add_argument(
        "--sort",
        choices=[k.value for k in SeriesSortKey],
        default=None,
        help="Series ordering in the report (default: by range mode)",
    )
    parser.add_argument(
        "--include-placeholders",
        action="store_true",
        help="Include attendee-less blocks in the report and totals",
    )
    parser.add_argument(
        "--flagged-only",
        action="store_true",
        help="Only list flagged series in the report",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON instead of a report",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("analytics_config.yaml"),
        help="YAML file with owner, range mode and threshold overrides",
    )
    parser.add_argument(
        "--now",
        type=str,
        default=None,
        help="Reference time in ISO format (default: current time)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output",
    )
    return parser


def build_options(args: argparse.Namespace, report_config: ReportConfig) -> AnalysisOptions:
    """Merge CLI flags, YAML report config and environment settings."""
    now = _parse_now(args.now) or datetime.now(pytz.utc)

    lookback = args.lookback if args.lookback is not None else config.audit_lookback_days
    lookahead = args.lookahead if args.lookahead is not None else config.audit_lookahead_days
    relationship_days = (
        args.relationship_days
        if args.relationship_days is not None
        else config.relationship_window_days
    )

    filter_start, filter_end = get_analysis_window(lookback, lookahead, now)
    rel_start, rel_end = get_analysis_window(relationship_days, relationship_days, now)

    range_mode = (
        RangeMode(args.range_mode)
        if args.range_mode
        else report_config.range_mode or RangeMode.RETRO
    )
    if args.baseline_hours is not None:
        baseline = args.baseline_hours
    elif report_config.baseline_work_week_hours is not None:
        baseline = report_config.baseline_work_week_hours
    else:
        baseline = config.baseline_work_week_hours

    return AnalysisOptions(
        owner_email=args.owner or report_config.owner_email or config.owner_email,
        filter_start=filter_start,
        filter_end=filter_end,
        baseline_work_week_hours=baseline,
        range_mode=range_mode,
        relationship_window_start=rel_start,
        relationship_window_end=rel_end,
        now=now,
        include_placeholders=args.include_placeholders,
        thresholds=report_config.build_thresholds(),
    )


def print_report(
    result: AnalyticsResult,
    options: AnalysisOptions,
    sort_key: Optional[SeriesSortKey],
    flagged_only: bool,
) -> None:
    series = filter_series(
        result.series,
        include_placeholders=options.include_placeholders,
        flagged_only=flagged_only,
    )
    if sort_key is not None:
        series = sort_series(series, sort_key)

    summary = result.summary
    print(f"\n=== Recurring meetings ({options.filter_start.date()} to {options.filter_end.date()}) ===")
    print(f"Found {len(series)} series:")
    for item in series:
        flags = f" [{', '.join(f.value for f in item.flags)}]" if item.flags else ""
        print(f"  - {item.title}{flags}")
        print(
            f"    {item.frequency_label.value}, {item.duration_minutes:g} min, "
            f"{item.weekly_minutes:g} min/week, {item.attendee_count} attendee(s) "
            f"({item.internal_attendee_count} internal / {item.external_attendee_count} external)"
        )
        print(
            f"    Acceptance: {item.acceptance_rate:.0%}  Cancellations: {item.cancellation_rate:.0%}"
        )

    print("\nSummary:")
    print(f"  Series: {summary.total_series} ({summary.placeholder_series} placeholder)")
    print(f"  Weekly hours: {summary.weekly_hours:g} ({summary.percent_of_work_week:g}% of work week)")
    print(f"  Monthly hours: {summary.monthly_hours:g}  People hours: {summary.people_hours:g}")
    if summary.flag_counts:
        print("  Flags: " + ", ".join(f"{k}={v}" for k, v in summary.flag_counts.items()))

    print(f"\n=== 1:1 relationships ({len(result.relationships)}) ===")
    for snapshot in result.relationships:
        name = f"{snapshot.person_name} <{snapshot.person_email}>" if snapshot.person_name else snapshot.person_email
        since = f"{snapshot.days_since_last:g}d ago" if snapshot.days_since_last is not None else "never"
        cadence = f"every {snapshot.average_gap_days:g}d" if snapshot.average_gap_days else "no cadence"
        recurring = ", recurring" if snapshot.is_recurring else ""
        print(f"  - [{snapshot.status.value}] {name}: last {since}, {cadence}{recurring}")

    if result.skipped_events or result.errors:
        print(f"\nSkipped events: {result.skipped_events}")
        for err in result.errors:
            print(f"  - {err}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Event titles may hold characters the console encoding cannot print
    if isinstance(sys.stdout, io.TextIOWrapper):
        sys.stdout.reconfigure(errors="replace")

    log_level = "DEBUG" if args.verbose else config.log_level
    try:
        logger = setup_logging(level=log_level, log_file=config.log_file)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    try:
        report_config = ReportConfig(args.config)
        options = build_options(args, report_config)

        if not options.owner_email:
            logger.warning("No owner email configured; internal/external split is disabled")

        reader = JsonEventReader(args.events)
        fetch_start = min(options.filter_start, options.relationship_window_start)
        fetch_end = max(options.filter_end, options.relationship_window_end)
        events = reader.read_events(start_date=fetch_start, end_date=fetch_end)

        result = RecurringAnalyticsEngine(options).analyze(
            events, skipped_upstream=reader.skipped_count
        )

        if args.json:
            print(json.dumps(result.to_json_dict(), indent=2))
        else:
            sort_key = SeriesSortKey(args.sort) if args.sort else None
            print_report(result, options, sort_key, args.flagged_only)
        return 0

    except CalendarHealthError as e:
        logger.error(f"Calendar health error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
