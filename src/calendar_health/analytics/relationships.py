"""1:1 relationship cadence analysis."""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional

from ..config import AnalyticsThresholds
from ..models.analytics import RelationshipSnapshot, RelationshipStatus
from ..models.event import CalendarEvent, Timed
from ..utils.date_utils import days_between
from .grouping import recurring_event_ids
from .series import calculate_average_gap_days, is_resource, round_two

logger = logging.getLogger(__name__)


def resolve_owner(event: CalendarEvent, owner_email: Optional[str]) -> Optional[str]:
    """The owner's address for this event, falling back to the ``self`` markers."""
    if owner_email:
        return owner_email
    for attendee in event.attendees:
        if attendee.is_self and attendee.email:
            return attendee.email
    if event.organizer and event.organizer.is_self and event.organizer.email:
        return event.organizer.email
    return None


def find_counterpart(
    event: CalendarEvent,
    owner_email: Optional[str],
    resource_domains: Iterable[str],
) -> Optional[str]:
    """
    Return the other participant if the event is a true 1:1.

    A true 1:1 has exactly two human participants, one of whom is the owner.
    Providers sometimes omit the organizer from the attendee list, so a single
    non-owner attendee on an owner-organized event also qualifies.
    """
    owner = resolve_owner(event, owner_email)
    if not owner:
        return None

    resource_domains = list(resource_domains)
    emails: list[str] = []
    for attendee in event.attendees:
        if attendee.email and not is_resource(attendee, resource_domains):
            if attendee.email not in emails:
                emails.append(attendee.email)

    if len(emails) == 2 and owner in emails:
        return next(email for email in emails if email != owner)

    if len(emails) == 1 and emails[0] != owner and event.organizer_email == owner:
        return emails[0]

    return None


def classify_relationship(
    average_gap_days: Optional[float],
    days_since_last: Optional[float],
    days_until_scheduled: Optional[float],
    thresholds: AnalyticsThresholds,
) -> RelationshipStatus:
    """
    Classify relationship health. First matching rule wins.

    Args:
        average_gap_days: Historical cadence, if known
        days_since_last: Days since the most recent past 1:1
        days_until_scheduled: Days until the next scheduled 1:1, None when
            nothing is on the calendar; only a lapse with nothing booked
            is critical
        thresholds: Tunable thresholds

    Returns:
        RelationshipStatus
    """
    if days_since_last is None:
        # Nothing has happened yet but something is scheduled
        return RelationshipStatus.HEALTHY

    scheduled = days_until_scheduled is not None

    if average_gap_days:
        critical_limit = average_gap_days * thresholds.critical_cadence_multiplier
        expected = average_gap_days
    else:
        critical_limit = thresholds.critical_days_without_cadence
        expected = thresholds.default_expected_gap_days

    if not scheduled and days_since_last > critical_limit:
        return RelationshipStatus.CRITICAL

    # Applies whether or not a follow-up is booked
    if days_since_last > expected * thresholds.overdue_cadence_multiplier:
        return RelationshipStatus.OVERDUE

    return RelationshipStatus.HEALTHY


def build_relationship_snapshots(
    events: list[CalendarEvent],
    owner_email: Optional[str],
    window_start: datetime,
    window_end: datetime,
    now: datetime,
    thresholds: AnalyticsThresholds,
) -> list[RelationshipSnapshot]:
    """
    Build one snapshot per 1:1 counterpart.

    Args:
        events: Validated events
        owner_email: Lowercased owner address, if known
        window_start: Relationship lookback bound (inclusive)
        window_end: Relationship lookahead bound (inclusive)
        now: Reference time
        thresholds: Tunable thresholds

    Returns:
        Snapshots ordered by severity, then days since last meeting, then email
    """
    recurring_ids = recurring_event_ids(events)
    expanded_masters = {e.recurring_event_id for e in events if e.recurring_event_id}
    by_person: dict[str, list[CalendarEvent]] = defaultdict(list)

    for event in events:
        if event.is_cancelled or not isinstance(event.start, Timed):
            continue
        if event.is_recurring_master and event.id in expanded_masters:
            continue
        if not window_start <= event.start_time <= window_end:
            continue
        counterpart = find_counterpart(event, owner_email, thresholds.resource_domains)
        if counterpart:
            by_person[counterpart].append(event)

    sample = thresholds.relationship_meeting_sample
    snapshots: list[RelationshipSnapshot] = []

    for email, meetings in by_person.items():
        meetings.sort(key=lambda e: (e.start_time, e.id))
        past = [e for e in meetings if e.start_time < now]
        future = [e for e in meetings if e.start_time >= now]

        average_gap = calculate_average_gap_days(past)
        days_since_last = days_between(past[-1].start_time, now) if past else None
        days_until_scheduled = days_between(now, future[0].start_time) if future else None

        days_until_next = days_until_scheduled
        if days_until_next is None and past and average_gap:
            # Projected from cadence; negative once the expected date has passed
            days_until_next = average_gap - days_since_last

        status = classify_relationship(
            average_gap, days_since_last, days_until_scheduled, thresholds
        )

        person_name = next(
            (
                attendee.display_name
                for event in meetings
                for attendee in event.attendees
                if attendee.email == email and attendee.display_name
            ),
            None,
        )

        snapshots.append(
            RelationshipSnapshot(
                person_email=email,
                person_name=person_name,
                last_meetings=list(reversed(past))[:sample],
                next_meetings=future[:sample],
                average_gap_days=round_two(average_gap) if average_gap is not None else None,
                days_since_last=round_two(days_since_last) if days_since_last is not None else None,
                days_until_next=round_two(days_until_next) if days_until_next is not None else None,
                is_recurring=any(e.id in recurring_ids for e in meetings),
                total_meetings=len(meetings),
                status=status,
            )
        )

    snapshots.sort(
        key=lambda s: (
            s.status.severity,
            -(s.days_since_last if s.days_since_last is not None else -1.0),
            s.person_email,
        )
    )
    logger.debug(f"Built {len(snapshots)} relationship snapshots")
    return snapshots
