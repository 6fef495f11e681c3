"""Recurring-meeting and relationship analytics engine."""

import logging
import math
from typing import Any, Iterable, Union

from ..config import AnalysisOptions, RangeMode
from ..models.analytics import AnalyticsResult, RecurringSeriesMetrics
from ..models.event import CalendarEvent, parse_event
from ..utils.exceptions import EventParseError, SeriesComputationError
from .grouping import group_events, is_reportable_series
from .relationships import build_relationship_snapshots
from .series import build_series_metrics
from .summary import summarize

logger = logging.getLogger(__name__)

EventInput = Union[CalendarEvent, dict[str, Any]]


def normalize_events(events: Iterable[EventInput]) -> tuple[list[CalendarEvent], int]:
    """
    Validate raw events, dropping records that cannot be analyzed.

    Args:
        events: CalendarEvent instances or provider dicts

    Returns:
        Tuple of (usable events, number of skipped records)
    """
    valid: list[CalendarEvent] = []
    skipped = 0
    for raw in events:
        try:
            event = parse_event(raw)
        except EventParseError as e:
            logger.warning(f"Skipping unparseable event: {e}")
            skipped += 1
            continue

        problem = event.validation_problem()
        if problem:
            logger.warning(f"Skipping event {event.id} ('{event.summary}'): {problem}")
            skipped += 1
            continue
        valid.append(event)
    return valid, skipped


def _default_order(
    series: list[RecurringSeriesMetrics], range_mode: RangeMode
) -> list[RecurringSeriesMetrics]:
    """Time cost first; ties go to the occurrence the range mode looks at."""
    if range_mode == RangeMode.FORWARD:
        def occurrence(s: RecurringSeriesMetrics) -> float:
            return s.next_occurrence.timestamp() if s.next_occurrence else math.inf
    else:
        def occurrence(s: RecurringSeriesMetrics) -> float:
            return -s.last_occurrence.timestamp() if s.last_occurrence else math.inf

    return sorted(series, key=lambda s: (-s.weekly_minutes, occurrence(s), s.id))


class RecurringAnalyticsEngine:
    """Turns one user's events into series metrics, summary and relationships."""

    def __init__(self, options: AnalysisOptions):
        """
        Initialize analytics engine.

        Args:
            options: Windows, owner and thresholds for this analysis
        """
        self.options = options

    def build_series(
        self, events: list[CalendarEvent]
    ) -> tuple[list[RecurringSeriesMetrics], list[str]]:
        """
        Group events and build metrics for every reportable series.

        A failure in one series is logged and recorded; the rest still build.

        Returns:
            Tuple of (series in default order, error messages)
        """
        series: list[RecurringSeriesMetrics] = []
        errors: list[str] = []

        for key, members in group_events(events).items():
            if not is_reportable_series(members):
                continue
            try:
                metrics = build_series_metrics(key, members, self.options)
            except Exception as e:
                error = SeriesComputationError(key, str(e))
                logger.exception(f"Failed to build metrics: {error}")
                errors.append(str(error))
                continue
            if metrics is not None:
                series.append(metrics)

        return _default_order(series, self.options.range_mode), errors

    def analyze(
        self, events: Iterable[EventInput], skipped_upstream: int = 0
    ) -> AnalyticsResult:
        """
        Run the full analysis.

        Args:
            events: Calendar events for the union of the audit and
                relationship windows; never mutated
            skipped_upstream: Records a reader already dropped, added to
                the skipped count

        Returns:
            AnalyticsResult
        """
        options = self.options
        valid, skipped = normalize_events(events)
        skipped += skipped_upstream
        logger.info(
            f"Analyzing {len(valid)} events from {options.filter_start.date()} "
            f"to {options.filter_end.date()} ({skipped} skipped)"
        )

        series, errors = self.build_series(valid)

        try:
            relationships = build_relationship_snapshots(
                valid,
                options.owner_email,
                options.relationship_window_start,
                options.relationship_window_end,
                options.now,
                options.thresholds,
            )
        except Exception as e:
            logger.exception(f"Relationship analysis failed: {e}")
            errors.append(f"Relationships: {e}")
            relationships = []

        summary = summarize(
            series,
            options.baseline_work_week_hours,
            include_placeholders=options.include_placeholders,
        )

        logger.info(
            f"Analysis complete: {len(series)} series, "
            f"{len(relationships)} relationships, "
            f"{len(errors)} errors"
        )

        return AnalyticsResult(
            series=series,
            summary=summary,
            relationships=relationships,
            skipped_events=skipped,
            errors=errors,
        )


def compute_recurring_analytics(
    events: Iterable[EventInput], options: AnalysisOptions
) -> AnalyticsResult:
    """Convenience wrapper around :class:`RecurringAnalyticsEngine`."""
    return RecurringAnalyticsEngine(options).analyze(events)
