"""Derived analytics data models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .event import CalendarEvent


class SeriesFlag(str, Enum):
    """Diagnostic tags attached to a recurring series."""

    HIGH_PEOPLE_HOURS = "high-people-hours"
    EXTERNAL_NO_END = "external-no-end"
    STALE = "stale"
    GHOST = "ghost"
    HOARDING = "hoarding"
    ZOMBIE = "zombie"


class FrequencyLabel(str, Enum):
    """Detected recurrence cadence."""

    DAILY = "Daily"
    WEEKLY = "Weekly"
    BI_WEEKLY = "Bi-Weekly"
    MONTHLY = "Monthly"
    IRREGULAR = "Irregular"


class RelationshipStatus(str, Enum):
    """Health of a 1:1 relationship, most severe first."""

    CRITICAL = "critical"
    OVERDUE = "overdue"
    HEALTHY = "healthy"

    @property
    def severity(self) -> int:
        return list(RelationshipStatus).index(self)


class _OutputModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=False,
    )


class RecurringSeriesMetrics(_OutputModel):
    """Metrics for one logical recurring meeting."""

    id: str
    title: str
    organizer_email: Optional[str] = None
    frequency_label: FrequencyLabel
    average_gap_days: Optional[float] = None
    duration_minutes: float
    weekly_minutes: float
    monthly_minutes: float
    actual_monthly_minutes: float
    people_hours_per_month: float
    internal_attendee_count: int
    external_attendee_count: int
    attendee_count: int
    acceptance_rate: float
    cancellation_rate: float
    agenda_missing: bool
    has_recurrence_end: bool
    last_updated: Optional[datetime] = None
    last_occurrence: Optional[datetime] = None
    next_occurrence: Optional[datetime] = None
    total_instances: int
    flags: list[SeriesFlag] = Field(default_factory=list)
    is_placeholder: bool
    sample_events: list[CalendarEvent] = Field(default_factory=list)
    event_ids: list[str] = Field(default_factory=list)

    @property
    def audience(self) -> str:
        """internal, external, mixed or placeholder."""
        if self.is_placeholder:
            return "placeholder"
        if self.internal_attendee_count and self.external_attendee_count:
            return "mixed"
        if self.external_attendee_count:
            return "external"
        return "internal"


class RecurringSummary(_OutputModel):
    """Workload roll-up over a list of series."""

    total_series: int = 0
    weekly_hours: float = 0.0
    monthly_hours: float = 0.0
    people_hours: float = 0.0
    percent_of_work_week: float = 0.0
    internal_series: int = 0
    external_series: int = 0
    mixed_series: int = 0
    placeholder_series: int = 0
    flagged_series: int = 0
    flag_counts: dict[str, int] = Field(default_factory=dict)
    includes_placeholders: bool = False


class RelationshipSnapshot(_OutputModel):
    """Cadence and health of the owner's 1:1s with one person."""

    person_email: str
    person_name: Optional[str] = None
    last_meetings: list[CalendarEvent] = Field(default_factory=list)
    next_meetings: list[CalendarEvent] = Field(default_factory=list)
    average_gap_days: Optional[float] = None
    days_since_last: Optional[float] = None
    days_until_next: Optional[float] = None
    is_recurring: bool = False
    total_meetings: int = 0
    status: RelationshipStatus


class AnalyticsResult(_OutputModel):
    """Everything produced by one analysis run."""

    series: list[RecurringSeriesMetrics] = Field(default_factory=list)
    summary: RecurringSummary = Field(default_factory=RecurringSummary)
    relationships: list[RelationshipSnapshot] = Field(default_factory=list)
    skipped_events: int = 0
    errors: list[str] = Field(default_factory=list)

    def to_json_dict(self) -> dict[str, Any]:
        """camelCase, JSON-safe rendering with ISO-8601 UTC datetimes."""
        return self.model_dump(mode="json", by_alias=True)
