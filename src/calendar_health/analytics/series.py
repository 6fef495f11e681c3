"""Per-series scheduling and engagement metrics."""

import logging
from datetime import datetime, timedelta
from statistics import median
from typing import Iterable, Optional

from ..config import AnalysisOptions, AnalyticsThresholds, RangeMode
from ..models.analytics import FrequencyLabel, RecurringSeriesMetrics, SeriesFlag
from ..models.event import Attendee, CalendarEvent, ResponseStatus, Timed
from ..utils.date_utils import SECONDS_IN_DAY, days_between

logger = logging.getLogger(__name__)

SAMPLE_EVENT_LIMIT = 5
MEASUREMENT_WINDOW_DAYS = 30
WEEKS_PER_MONTH = 52 / 12

# Upper bound (days) of the median gap for each label, checked in order
FREQUENCY_BANDS: tuple[tuple[float, FrequencyLabel], ...] = (
    (2, FrequencyLabel.DAILY),
    (10, FrequencyLabel.WEEKLY),
    (17, FrequencyLabel.BI_WEEKLY),
    (45, FrequencyLabel.MONTHLY),
)

NOMINAL_GAP_DAYS: dict[FrequencyLabel, float] = {
    FrequencyLabel.DAILY: 1.0,
    FrequencyLabel.WEEKLY: 7.0,
    FrequencyLabel.BI_WEEKLY: 14.0,
    FrequencyLabel.MONTHLY: 365.25 / 12,
}


def round_two(value: float) -> float:
    return round(value, 2)


def instances_of(events: list[CalendarEvent]) -> list[CalendarEvent]:
    """
    Drop recurring masters when expanded instances are present.

    A master starts on the first-ever date of the series and repeats the
    schedule of its instances, so it only stands in for them when the
    export holds nothing else.
    """
    instances = [e for e in events if not e.is_recurring_master]
    return instances or list(events)


def calculate_gaps(events: Iterable[CalendarEvent]) -> list[float]:
    """Gaps in days between consecutive distinct start instants."""
    starts = sorted({e.start_time for e in events if e.start_time is not None})
    return [
        (current - previous).total_seconds() / SECONDS_IN_DAY
        for previous, current in zip(starts, starts[1:])
    ]


def calculate_average_gap_days(events: Iterable[CalendarEvent]) -> Optional[float]:
    """Mean gap between instances, None with fewer than two dated instances."""
    gaps = calculate_gaps(events)
    if not gaps:
        return None
    return sum(gaps) / len(gaps)


def frequency_from_rule(rule: Optional[dict]) -> Optional[FrequencyLabel]:
    """Map a parsed RRULE onto a frequency label."""
    if not rule:
        return None
    freq = rule["freq"]
    if freq == "DAILY":
        return FrequencyLabel.DAILY
    if freq == "WEEKLY":
        if rule["interval"] == 1:
            return FrequencyLabel.WEEKLY
        if rule["interval"] == 2:
            return FrequencyLabel.BI_WEEKLY
        return None
    if freq == "MONTHLY" and rule["interval"] == 1:
        return FrequencyLabel.MONTHLY
    return None


def frequency_from_gaps(gaps: list[float], stability_ratio: float = 0.6) -> FrequencyLabel:
    """
    Classify a gap sequence by its median.

    Args:
        gaps: Consecutive gaps in days
        stability_ratio: Share of gaps that must sit near the median for the
            cadence to count as stable

    Returns:
        Frequency label, Irregular when no stable gap exists
    """
    if not gaps:
        return FrequencyLabel.IRREGULAR

    typical = median(gaps)
    if typical <= 0:
        return FrequencyLabel.IRREGULAR

    tolerance = max(1.0, typical * 0.25)
    near = sum(1 for gap in gaps if abs(gap - typical) <= tolerance)
    if near / len(gaps) < stability_ratio:
        return FrequencyLabel.IRREGULAR

    for upper, label in FREQUENCY_BANDS:
        if typical <= upper:
            return label
    return FrequencyLabel.IRREGULAR


def email_domain(email: Optional[str]) -> Optional[str]:
    if not email or "@" not in email:
        return None
    return email.strip().lower().rsplit("@", 1)[1]


def is_resource(attendee: Attendee, resource_domains: Iterable[str]) -> bool:
    """Rooms, equipment and group calendars are not people."""
    if attendee.resource:
        return True
    domain = email_domain(attendee.email)
    if not domain:
        return False
    return any(domain == d or domain.endswith(f".{d}") for d in resource_domains)


def is_owner(attendee: Attendee, owner_email: Optional[str]) -> bool:
    if owner_email:
        return attendee.email == owner_email
    return attendee.is_self


def classify_attendees(
    events: Iterable[CalendarEvent],
    owner_email: Optional[str],
    owner_domain: Optional[str],
    resource_domains: Iterable[str],
) -> tuple[set[str], set[str]]:
    """
    Split the unique attendees of a series into internal and external.

    Without an owner domain every attendee is considered internal.

    Returns:
        Tuple of (internal emails, external emails)
    """
    resource_domains = list(resource_domains)
    internal: set[str] = set()
    external: set[str] = set()
    for event in events:
        for attendee in event.attendees:
            if not attendee.email or is_resource(attendee, resource_domains):
                continue
            if is_owner(attendee, owner_email):
                continue
            if owner_domain is None or email_domain(attendee.email) == owner_domain:
                internal.add(attendee.email)
            else:
                external.add(attendee.email)
    return internal, external


def calculate_acceptance_rate(
    events: Iterable[CalendarEvent], resource_domains: Iterable[str]
) -> float:
    """Accepted share of non-organizer attendee slots, 0 when there are none."""
    resource_domains = list(resource_domains)
    slots = 0
    accepted = 0
    for event in events:
        organizer = event.organizer_email
        for attendee in event.attendees:
            if not attendee.email or is_resource(attendee, resource_domains):
                continue
            if attendee.is_organizer or attendee.email == organizer:
                continue
            slots += 1
            if attendee.response_status == ResponseStatus.ACCEPTED:
                accepted += 1
    return accepted / slots if slots else 0.0


def calculate_cancellation_rate(events: list[CalendarEvent]) -> float:
    if not events:
        return 0.0
    return sum(1 for e in events if e.is_cancelled) / len(events)


def compute_flags(
    metrics: RecurringSeriesMetrics,
    thresholds: AnalyticsThresholds,
    now: datetime,
    cadence_days: Optional[float],
    last_held: Optional[datetime],
    has_future: bool,
) -> list[SeriesFlag]:
    """
    Evaluate every flag predicate for a series.

    Args:
        metrics: Metrics without flags
        thresholds: Tunable thresholds
        now: Reference time
        cadence_days: Expected gap between instances, if known
        last_held: Latest non-cancelled start before now across the series
        has_future: Whether any non-cancelled instance is still scheduled

    Returns:
        Flags in declaration order
    """
    flags: list[SeriesFlag] = []

    if metrics.people_hours_per_month > thresholds.high_people_hours_per_month:
        flags.append(SeriesFlag.HIGH_PEOPLE_HOURS)

    if metrics.external_attendee_count > 0 and not metrics.has_recurrence_end:
        flags.append(SeriesFlag.EXTERNAL_NO_END)

    if last_held is not None and not has_future:
        silent_days = days_between(last_held, now)
        limit = (
            cadence_days * thresholds.stale_cadence_multiplier
            if cadence_days
            else thresholds.stale_days_without_cadence
        )
        if silent_days > limit:
            flags.append(SeriesFlag.STALE)

    if not metrics.is_placeholder and (
        metrics.acceptance_rate < thresholds.ghost_acceptance_rate
        or metrics.cancellation_rate > thresholds.ghost_cancellation_rate
    ):
        flags.append(SeriesFlag.GHOST)

    if (
        metrics.attendee_count >= thresholds.hoarding_attendee_count
        and metrics.duration_minutes >= thresholds.hoarding_duration_minutes
    ):
        flags.append(SeriesFlag.HOARDING)

    if metrics.agenda_missing and metrics.last_updated is not None:
        if days_between(metrics.last_updated, now) >= thresholds.zombie_days_since_update:
            flags.append(SeriesFlag.ZOMBIE)

    return flags


def _measurement_window(options: AnalysisOptions) -> tuple[datetime, datetime]:
    span = timedelta(days=MEASUREMENT_WINDOW_DAYS)
    if options.range_mode == RangeMode.RETRO:
        return options.now - span, options.now
    return options.now, options.now + span


def build_series_metrics(
    group_id: str,
    members: list[CalendarEvent],
    options: AnalysisOptions,
) -> Optional[RecurringSeriesMetrics]:
    """
    Build metrics for one series.

    Args:
        group_id: Series grouping key
        members: Validated events of the group, sorted by start
        options: Analysis options

    Returns:
        Metrics, or None when the series has no timed instance in the
        audit window
    """
    thresholds = options.thresholds
    now = options.now

    timed = instances_of([e for e in members if isinstance(e.start, Timed)])
    in_window = [
        e for e in timed if options.filter_start <= e.start_time <= options.filter_end
    ]
    if not in_window:
        return None

    held = [e for e in in_window if not e.is_cancelled]
    active = held or in_window
    representative = active[-1]

    duration = representative.duration_minutes
    if not duration:
        samples = [e.duration_minutes for e in active if e.duration_minutes]
        duration = sum(samples) / len(samples) if samples else 0.0

    # Cadence
    gaps = calculate_gaps(timed)
    average_gap = sum(gaps) / len(gaps) if gaps else None
    rule = next((e.recurrence_rule for e in members if e.recurrence_rule), None)
    rule_frequency = frequency_from_rule(rule)
    frequency = rule_frequency or frequency_from_gaps(
        gaps, thresholds.frequency_stability_ratio
    )
    if rule_frequency:
        cadence_days = NOMINAL_GAP_DAYS[rule_frequency]
    else:
        cadence_days = average_gap or NOMINAL_GAP_DAYS.get(frequency)

    # Load
    if cadence_days:
        weekly_minutes = duration * 7 / cadence_days
    else:
        window_days = max(days_between(options.filter_start, options.filter_end), 7.0)
        weekly_minutes = sum(e.duration_minutes for e in held) * 7 / window_days
    monthly_minutes = weekly_minutes * WEEKS_PER_MONTH

    measure_start, measure_end = _measurement_window(options)
    actual_monthly_minutes = sum(
        e.duration_minutes
        for e in timed
        if not e.is_cancelled and measure_start <= e.start_time <= measure_end
    )

    # Audience
    internal, external = classify_attendees(
        active, options.owner_email, options.owner_domain, thresholds.resource_domains
    )
    attendee_count = len(internal) + len(external)
    people_hours = monthly_minutes * max(attendee_count, 1) / 60

    # Occurrences
    past = [e.start_time for e in in_window if not e.is_cancelled and e.start_time < now]
    future = [e.start_time for e in in_window if not e.is_cancelled and e.start_time >= now]
    series_past = [e.start_time for e in timed if not e.is_cancelled and e.start_time < now]
    series_has_future = any(
        not e.is_cancelled and e.start_time >= now for e in timed
    )

    updates = [e.updated for e in in_window if e.updated is not None]

    metrics = RecurringSeriesMetrics(
        id=group_id,
        title=representative.summary or "Untitled meeting",
        organizer_email=representative.organizer_email,
        frequency_label=frequency,
        average_gap_days=round_two(average_gap) if average_gap is not None else None,
        duration_minutes=round_two(duration),
        weekly_minutes=round_two(weekly_minutes),
        monthly_minutes=round_two(monthly_minutes),
        actual_monthly_minutes=round_two(actual_monthly_minutes),
        people_hours_per_month=round_two(people_hours),
        internal_attendee_count=len(internal),
        external_attendee_count=len(external),
        attendee_count=attendee_count,
        acceptance_rate=round_two(
            calculate_acceptance_rate(active, thresholds.resource_domains)
        ),
        cancellation_rate=round_two(calculate_cancellation_rate(in_window)),
        agenda_missing=all(not (e.description or "").strip() for e in in_window),
        has_recurrence_end=any(
            e.recurrence_rule and (e.recurrence_rule["until"] or e.recurrence_rule["count"])
            for e in members
        ),
        last_updated=max(updates) if updates else None,
        last_occurrence=max(past) if past else None,
        next_occurrence=min(future) if future else None,
        total_instances=len(in_window),
        is_placeholder=attendee_count == 0,
        sample_events=in_window[:SAMPLE_EVENT_LIMIT],
        event_ids=[e.id for e in members],
    )

    flags = compute_flags(
        metrics,
        thresholds,
        now,
        cadence_days,
        max(series_past) if series_past else None,
        series_has_future,
    )
    logger.debug(f"Series {group_id}: {frequency.value}, flags={[f.value for f in flags]}")
    return metrics.model_copy(update={"flags": flags})
