"""Summary roll-ups and consumer-side ordering of series."""

import math
from collections import Counter
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from ..config import WORK_WEEK_DEFAULT
from ..models.analytics import FrequencyLabel, RecurringSeriesMetrics, RecurringSummary
from .series import round_two


class SeriesSortKey(str, Enum):
    """Orderings offered to table and report consumers."""

    TIME_COST = "time-cost"
    ALPHABETICAL = "alphabetical"
    ACCEPTANCE = "acceptance"
    ATTENDANCE = "attendance"
    NEXT_OCCURRENCE = "next-occurrence"
    LAST_OCCURRENCE = "last-occurrence"


class AudienceFilter(str, Enum):
    """Audience split used by the series table."""

    ALL = "all"
    INTERNAL = "internal"
    EXTERNAL = "external"
    MIXED = "mixed"


def summarize(
    series: Iterable[RecurringSeriesMetrics],
    baseline_work_week_hours: float = WORK_WEEK_DEFAULT,
    include_placeholders: bool = False,
) -> RecurringSummary:
    """
    Reduce a list of series into workload totals.

    Args:
        series: Series metrics, in any order
        baseline_work_week_hours: Hours in a nominal work week
        include_placeholders: Count placeholder series in the totals

    Returns:
        RecurringSummary
    """
    all_series = list(series)
    placeholder_count = sum(1 for s in all_series if s.is_placeholder)
    counted = [s for s in all_series if include_placeholders or not s.is_placeholder]

    weekly_hours = math.fsum(s.weekly_minutes for s in counted) / 60
    monthly_hours = math.fsum(s.monthly_minutes for s in counted) / 60
    people_hours = math.fsum(s.people_hours_per_month for s in counted)

    audiences = Counter(s.audience for s in counted)
    flag_counts = Counter(flag.value for s in counted for flag in s.flags)

    percent = (
        weekly_hours / baseline_work_week_hours * 100 if baseline_work_week_hours > 0 else 0.0
    )

    return RecurringSummary(
        total_series=len(counted),
        weekly_hours=round_two(weekly_hours),
        monthly_hours=round_two(monthly_hours),
        people_hours=round_two(people_hours),
        percent_of_work_week=round_two(percent),
        internal_series=audiences["internal"],
        external_series=audiences["external"],
        mixed_series=audiences["mixed"],
        placeholder_series=placeholder_count,
        flagged_series=sum(1 for s in counted if s.flags),
        flag_counts=dict(sorted(flag_counts.items())),
        includes_placeholders=include_placeholders,
    )


def _timestamp(value: Optional[datetime], missing: float) -> float:
    return value.timestamp() if value else missing


def sort_series(
    series: Iterable[RecurringSeriesMetrics],
    key: SeriesSortKey = SeriesSortKey.TIME_COST,
) -> list[RecurringSeriesMetrics]:
    """
    Order series for display. Every ordering is total: ties fall back to id.

    Args:
        series: Series to order
        key: Sort key

    Returns:
        New sorted list
    """
    key = SeriesSortKey(key)
    items = list(series)
    if key == SeriesSortKey.ALPHABETICAL:
        return sorted(items, key=lambda s: (s.title.casefold(), s.id))
    if key == SeriesSortKey.ACCEPTANCE:
        return sorted(items, key=lambda s: (s.acceptance_rate, s.id))
    if key == SeriesSortKey.ATTENDANCE:
        return sorted(items, key=lambda s: (-s.attendee_count, s.id))
    if key == SeriesSortKey.NEXT_OCCURRENCE:
        return sorted(items, key=lambda s: (_timestamp(s.next_occurrence, math.inf), s.id))
    if key == SeriesSortKey.LAST_OCCURRENCE:
        return sorted(items, key=lambda s: (-_timestamp(s.last_occurrence, -math.inf), s.id))
    return sorted(items, key=lambda s: (-s.weekly_minutes, s.id))


def filter_series(
    series: Iterable[RecurringSeriesMetrics],
    audience: AudienceFilter = AudienceFilter.ALL,
    frequency: Optional[FrequencyLabel] = None,
    search: str = "",
    include_placeholders: bool = False,
    placeholders_only: bool = False,
    flagged_only: bool = False,
) -> list[RecurringSeriesMetrics]:
    """
    Apply the series table filters.

    Placeholders only survive the audience filter when it is ``all``.
    """
    audience = AudienceFilter(audience)
    needle = search.strip().casefold()
    result = []
    for item in series:
        if item.is_placeholder:
            if audience != AudienceFilter.ALL:
                continue
            if not (include_placeholders or placeholders_only):
                continue
        elif placeholders_only:
            continue
        elif audience != AudienceFilter.ALL and item.audience != audience.value:
            continue

        if frequency is not None and item.frequency_label != FrequencyLabel(frequency):
            continue
        if needle and needle not in f"{item.title} {item.organizer_email or ''}".casefold():
            continue
        if flagged_only and not item.flags:
            continue
        result.append(item)
    return result
