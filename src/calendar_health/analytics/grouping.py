"""Series identity resolution.

Calendar providers stamp recurring meetings inconsistently: some instances
carry a ``recurringEventId``, some only the series ``iCalUID``, and some
(imported or hand-copied meetings) carry neither. Each event is assigned a
group key by trying the extractors in ``KEY_EXTRACTORS`` in order and taking
the first non-null result.
"""

import logging
from collections import defaultdict
from typing import Callable, Iterable, Optional

from ..models.event import CalendarEvent, Timed

logger = logging.getLogger(__name__)

TIME_OF_DAY_ROUNDING_MINUTES = 15

COMPOSITE_PREFIX = "composite:"
SINGLE_PREFIX = "single:"

KeyExtractor = Callable[[CalendarEvent], Optional[str]]


def by_recurring_event_id(event: CalendarEvent) -> Optional[str]:
    return event.recurring_event_id or None


def by_master_id(event: CalendarEvent) -> Optional[str]:
    # Recurring masters carry the RRULE; their instances point back at this id
    return event.id if event.is_recurring_master else None


def by_ical_uid(event: CalendarEvent) -> Optional[str]:
    return event.ical_uid or None


def by_composite_signature(event: CalendarEvent) -> Optional[str]:
    """Title + organizer + local weekday + rounded local time of day."""
    title = " ".join(event.summary.split()).casefold()
    if not title or not isinstance(event.start, Timed):
        return None

    local = event.start.to_local()
    minutes = local.hour * 60 + local.minute
    step = TIME_OF_DAY_ROUNDING_MINUTES
    rounded = int(round(minutes / step) * step) % (24 * 60)
    organizer = event.organizer_email or ""
    return (
        f"{COMPOSITE_PREFIX}{title}|{organizer}|{local.weekday()}|"
        f"{rounded // 60:02d}:{rounded % 60:02d}"
    )


KEY_EXTRACTORS: tuple[KeyExtractor, ...] = (
    by_recurring_event_id,
    by_master_id,
    by_ical_uid,
    by_composite_signature,
)


def series_key(
    event: CalendarEvent,
    extractors: Iterable[KeyExtractor] = KEY_EXTRACTORS,
) -> str:
    """
    Resolve the series identity of an event.

    Args:
        event: Event to classify
        extractors: Ordered key extractors, first match wins

    Returns:
        Group key; events no extractor recognizes get a singleton key
    """
    for extractor in extractors:
        key = extractor(event)
        if key:
            return key
    return f"{SINGLE_PREFIX}{event.id}"


def _sort_key(event: CalendarEvent) -> tuple:
    start = event.start_time
    return (start.timestamp() if start else float("inf"), event.id)


def group_events(events: Iterable[CalendarEvent]) -> dict[str, list[CalendarEvent]]:
    """
    Group events into logical series.

    Groups are returned ordered by key and members by (start, id), so the
    result does not depend on input order.

    Args:
        events: Already validated events

    Returns:
        Mapping of group key to member events
    """
    grouped: dict[str, list[CalendarEvent]] = defaultdict(list)
    for event in events:
        grouped[series_key(event)].append(event)

    result = {key: sorted(members, key=_sort_key) for key, members in sorted(grouped.items())}
    logger.debug(f"Grouped {sum(len(m) for m in result.values())} events into {len(result)} groups")
    return result


def has_recurrence_metadata(members: list[CalendarEvent]) -> bool:
    return any(e.recurring_event_id or e.is_recurring_master for e in members)


def is_reportable_series(members: list[CalendarEvent]) -> bool:
    """
    Decide whether a group is a recurring series rather than a one-off.

    A group counts when it has two or more timed instances, or when the
    provider explicitly marked it recurring.
    """
    timed = [e for e in members if isinstance(e.start, Timed)]
    if not timed:
        return False
    return len(timed) >= 2 or has_recurrence_metadata(members)


def recurring_event_ids(events: Iterable[CalendarEvent]) -> set[str]:
    """Ids of events that belong to a reportable recurring series."""
    ids: set[str] = set()
    for members in group_events(events).values():
        if is_reportable_series(members):
            ids.update(e.id for e in members)
    return ids
