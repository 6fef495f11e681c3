"""Shared fixtures for calendar health tests."""

from datetime import datetime, timedelta
from itertools import count
from typing import Optional

import pytest
import pytz

from calendar_health.config import AnalysisOptions, AnalyticsThresholds
from calendar_health.models.event import CalendarEvent

OWNER = "owner@acme.com"
PEER = "peer@acme.com"

# A Monday
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=pytz.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def thresholds() -> AnalyticsThresholds:
    return AnalyticsThresholds()


@pytest.fixture
def make_event():
    """Factory building events from provider-shaped dicts."""
    ids = count(1)

    def _make(
        start: datetime,
        minutes: int = 30,
        summary: str = "Sync",
        attendees: Optional[list] = None,
        organizer: Optional[str] = OWNER,
        event_id: Optional[str] = None,
        recurring_event_id: Optional[str] = None,
        ical_uid: Optional[str] = None,
        status: str = "confirmed",
        recurrence: Optional[list[str]] = None,
        description: Optional[str] = None,
        updated: Optional[datetime] = None,
    ) -> CalendarEvent:
        record = {
            "id": event_id or f"evt-{next(ids)}",
            "summary": summary,
            "status": status,
            "start": {"dateTime": start.isoformat()},
            "end": {"dateTime": (start + timedelta(minutes=minutes)).isoformat()},
            "attendees": [],
        }
        if organizer:
            record["organizer"] = {"email": organizer, "self": organizer == OWNER}
        for attendee in attendees or []:
            if isinstance(attendee, tuple):
                email, response = attendee
                attendee = {"email": email, "responseStatus": response}
            record["attendees"].append(attendee)
        if recurring_event_id:
            record["recurringEventId"] = recurring_event_id
        if ical_uid:
            record["iCalUID"] = ical_uid
        if recurrence:
            record["recurrence"] = recurrence
        if description:
            record["description"] = description
        if updated:
            record["updated"] = updated.isoformat()
        return CalendarEvent.model_validate(record)

    return _make


@pytest.fixture
def one_on_one_attendees():
    """Owner (as organizer) plus one accepted peer."""
    return [
        {"email": OWNER, "responseStatus": "accepted", "organizer": True, "self": True},
        {"email": PEER, "displayName": "Pat Peer", "responseStatus": "accepted"},
    ]


@pytest.fixture
def make_options():
    def _make(**overrides) -> AnalysisOptions:
        values = {
            "owner_email": OWNER,
            "filter_start": NOW - timedelta(days=70),
            "filter_end": NOW + timedelta(days=1),
            "relationship_window_start": NOW - timedelta(days=180),
            "relationship_window_end": NOW + timedelta(days=90),
            "now": NOW,
            "thresholds": AnalyticsThresholds(),
        }
        values.update(overrides)
        return AnalysisOptions(**values)

    return _make


@pytest.fixture
def weekly_series(make_event, one_on_one_attendees):
    """Ten weekly 30 minute 1:1s on Mondays at 10:00, the last one today."""

    def _make(last_start: datetime = NOW - timedelta(hours=2), instances: int = 10, **kwargs):
        kwargs.setdefault("recurring_event_id", "weekly-sync")
        kwargs.setdefault("attendees", one_on_one_attendees)
        return [
            make_event(last_start - timedelta(weeks=offset), **kwargs)
            for offset in reversed(range(instances))
        ]

    return _make
