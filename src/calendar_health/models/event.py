"""Normalized calendar event data model."""

from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

import pytz
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from ..utils.date_utils import ensure_utc, localize, parse_recurrence_pattern, resolve_timezone
from ..utils.exceptions import EventParseError


class EventStatus(str, Enum):
    """Event status enumeration."""

    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


class ResponseStatus(str, Enum):
    """Attendee response enumeration."""

    NEEDS_ACTION = "needsAction"
    DECLINED = "declined"
    TENTATIVE = "tentative"
    ACCEPTED = "accepted"


class _ProviderModel(BaseModel):
    """Base model accepting provider camelCase keys or Python field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Attendee(_ProviderModel):
    """Event attendee."""

    email: str = ""
    display_name: Optional[str] = None
    response_status: ResponseStatus = ResponseStatus.NEEDS_ACTION
    is_organizer: bool = Field(default=False, alias="organizer")
    is_self: bool = Field(default=False, alias="self")
    resource: bool = False
    optional: bool = False

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> str:
        return (value or "").strip().lower()

    @field_validator("response_status", mode="before")
    @classmethod
    def _default_response(cls, value: Any) -> Any:
        return value or ResponseStatus.NEEDS_ACTION


class Organizer(_ProviderModel):
    """Event organizer."""

    email: str = ""
    display_name: Optional[str] = None
    is_self: bool = Field(default=False, alias="self")

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> str:
        return (value or "").strip().lower()


class AllDay(BaseModel):
    """Date-only event boundary."""

    kind: Literal["all_day"] = "all_day"
    day: date
    timezone: Optional[str] = None

    model_config = {"frozen": True}

    def to_instant(self) -> datetime:
        """Midnight of the date in the event's timezone, as UTC."""
        tz = resolve_timezone(self.timezone)
        return tz.localize(datetime.combine(self.day, time.min)).astimezone(pytz.utc)


class Timed(BaseModel):
    """Timezone-qualified event boundary."""

    kind: Literal["timed"] = "timed"
    # timezone is declared first so the instant validator can see it
    timezone: Optional[str] = None
    instant: datetime

    model_config = {"frozen": True}

    @field_validator("instant")
    @classmethod
    def _to_utc(cls, value: datetime, info: ValidationInfo) -> datetime:
        return localize(value, info.data.get("timezone"))

    def to_instant(self) -> datetime:
        return self.instant

    def to_local(self) -> datetime:
        """The instant expressed in the event's own timezone."""
        return self.instant.astimezone(resolve_timezone(self.timezone))


EventTime = Annotated[Union[AllDay, Timed], Field(discriminator="kind")]


def _coerce_event_time(value: Any) -> Any:
    """Map provider shapes ({dateTime,timeZone} / {date}) onto the tagged union."""
    if value is None or isinstance(value, (AllDay, Timed)):
        return value
    if isinstance(value, datetime):
        return {"kind": "timed", "instant": value}
    if isinstance(value, date):
        return {"kind": "all_day", "day": value}
    if isinstance(value, str):
        # Bare strings: date-only when there is no time component
        if "T" in value:
            return {"kind": "timed", "instant": value}
        return {"kind": "all_day", "day": value}
    if isinstance(value, dict):
        if "kind" in value:
            return value
        tz_name = value.get("timeZone") or value.get("timezone")
        if value.get("dateTime"):
            return {"kind": "timed", "instant": value["dateTime"], "timezone": tz_name}
        if value.get("date"):
            return {"kind": "all_day", "day": value["date"], "timezone": tz_name}
        return None
    return value


class CalendarEvent(_ProviderModel):
    """Normalized calendar event model."""

    # Identifiers
    id: str
    recurring_event_id: Optional[str] = None
    ical_uid: Optional[str] = Field(default=None, alias="iCalUID")

    # Basic properties
    summary: str = ""
    description: Optional[str] = None

    # Time properties
    start: Optional[EventTime] = None
    end: Optional[EventTime] = None

    # People
    organizer: Optional[Organizer] = None
    attendees: list[Attendee] = Field(default_factory=list)

    # Status
    status: EventStatus = EventStatus.CONFIRMED

    # Recurrence
    recurrence: list[str] = Field(default_factory=list)

    # Metadata
    created: Optional[datetime] = None
    updated: Optional[datetime] = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse_event_time(cls, value: Any) -> Any:
        return _coerce_event_time(value)

    @field_validator("summary", mode="before")
    @classmethod
    def _default_summary(cls, value: Any) -> str:
        return value or ""

    @field_validator("attendees", "recurrence", mode="before")
    @classmethod
    def _default_list(cls, value: Any) -> Any:
        return value or []

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return value or EventStatus.CONFIRMED

    @field_validator("created", "updated")
    @classmethod
    def _metadata_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value else None

    @property
    def is_all_day(self) -> bool:
        return isinstance(self.start, AllDay)

    @property
    def is_cancelled(self) -> bool:
        return self.status == EventStatus.CANCELLED

    @property
    def start_time(self) -> Optional[datetime]:
        """Start as a UTC instant, or None when the event has no start."""
        return self.start.to_instant() if self.start else None

    @property
    def end_time(self) -> Optional[datetime]:
        return self.end.to_instant() if self.end else None

    @property
    def duration_minutes(self) -> float:
        """Scheduled length in minutes (0 when the end is unknown)."""
        start, end = self.start_time, self.end_time
        if start is None or end is None:
            return 0.0
        return max((end - start).total_seconds() / 60, 0.0)

    @property
    def organizer_email(self) -> Optional[str]:
        return self.organizer.email if self.organizer and self.organizer.email else None

    @property
    def recurrence_rule(self) -> Optional[dict]:
        return parse_recurrence_pattern(self.recurrence)

    @property
    def is_recurring_master(self) -> bool:
        return self.recurrence_rule is not None

    def validation_problem(self) -> Optional[str]:
        """
        Describe why the event cannot take part in analysis.

        Returns:
            A short reason, or None when the event is usable
        """
        if self.start is None and self.end is None:
            return "missing start and end"
        if self.start is None:
            return "missing start"
        if self.end is not None and self.end_time < self.start_time:
            return "end before start"
        return None


def parse_event(record: Any) -> CalendarEvent:
    """
    Build a CalendarEvent from a provider record.

    Args:
        record: Provider dict (or an existing CalendarEvent)

    Returns:
        CalendarEvent

    Raises:
        EventParseError: If the record fails validation
    """
    if isinstance(record, CalendarEvent):
        return record
    try:
        return CalendarEvent.model_validate(record)
    except ValidationError as e:
        record_id = record.get("id", "?") if isinstance(record, dict) else "?"
        raise EventParseError(
            f"Invalid event {record_id}: {e.error_count()} validation error(s)"
        ) from e
