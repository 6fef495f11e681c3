"""Configuration management for Calendar Health application."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Optional

import pytz
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .utils.date_utils import ensure_utc
from .utils.exceptions import ConfigurationError

load_dotenv()

WORK_WEEK_DEFAULT = 40.0


class RangeMode(str, Enum):
    """Direction of the audit window relative to now."""

    RETRO = "retro"
    FORWARD = "forward"


class AnalyticsThresholds(BaseSettings):
    """Tunable business thresholds for flags and relationship health."""

    # Series flags
    high_people_hours_per_month: float = Field(
        default=30.0, validation_alias="CALENDAR_HEALTH_HIGH_PEOPLE_HOURS"
    )
    stale_cadence_multiplier: float = Field(
        default=3.0, validation_alias="CALENDAR_HEALTH_STALE_MULTIPLIER"
    )
    stale_days_without_cadence: float = Field(
        default=45.0, validation_alias="CALENDAR_HEALTH_STALE_DAYS"
    )
    ghost_acceptance_rate: float = Field(
        default=0.5, validation_alias="CALENDAR_HEALTH_GHOST_ACCEPTANCE"
    )
    ghost_cancellation_rate: float = Field(
        default=0.3, validation_alias="CALENDAR_HEALTH_GHOST_CANCELLATION"
    )
    hoarding_attendee_count: int = Field(
        default=8, validation_alias="CALENDAR_HEALTH_HOARDING_ATTENDEES"
    )
    hoarding_duration_minutes: float = Field(
        default=60.0, validation_alias="CALENDAR_HEALTH_HOARDING_MINUTES"
    )
    zombie_days_since_update: float = Field(
        default=180.0, validation_alias="CALENDAR_HEALTH_ZOMBIE_DAYS"
    )

    # Frequency detection
    frequency_stability_ratio: float = Field(
        default=0.6, validation_alias="CALENDAR_HEALTH_FREQUENCY_STABILITY"
    )

    # Relationship health
    critical_cadence_multiplier: float = Field(
        default=2.0, validation_alias="CALENDAR_HEALTH_CRITICAL_MULTIPLIER"
    )
    overdue_cadence_multiplier: float = Field(
        default=1.25, validation_alias="CALENDAR_HEALTH_OVERDUE_MULTIPLIER"
    )
    critical_days_without_cadence: float = Field(
        default=60.0, validation_alias="CALENDAR_HEALTH_CRITICAL_DAYS"
    )
    default_expected_gap_days: float = Field(
        default=30.0, validation_alias="CALENDAR_HEALTH_EXPECTED_GAP_DAYS"
    )
    relationship_meeting_sample: int = Field(
        default=2, validation_alias="CALENDAR_HEALTH_RELATIONSHIP_SAMPLE"
    )

    # Attendee classification
    resource_domains: Annotated[list[str], NoDecode] = Field(
        default=["resource.calendar.google.com", "group.calendar.google.com"],
        validation_alias="CALENDAR_HEALTH_RESOURCE_DOMAINS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("resource_domains", mode="before")
    @classmethod
    def _split_domains(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [d.strip().lower() for d in value.split(",") if d.strip()]
        return value

    @model_validator(mode="after")
    def _check_multipliers(self) -> "AnalyticsThresholds":
        if self.critical_cadence_multiplier < self.overdue_cadence_multiplier:
            raise ValueError(
                "critical_cadence_multiplier must be >= overdue_cadence_multiplier"
            )
        if self.critical_days_without_cadence < self.default_expected_gap_days:
            raise ValueError(
                "critical_days_without_cadence must be >= default_expected_gap_days"
            )
        if not 0 < self.frequency_stability_ratio <= 1:
            raise ValueError("frequency_stability_ratio must be in (0, 1]")
        return self


class AnalysisOptions(BaseModel):
    """Per-invocation inputs of the analytics engine."""

    owner_email: Optional[str] = None
    filter_start: datetime
    filter_end: datetime
    baseline_work_week_hours: float = WORK_WEEK_DEFAULT
    range_mode: RangeMode = RangeMode.RETRO
    relationship_window_start: datetime
    relationship_window_end: datetime
    now: datetime = Field(default_factory=lambda: datetime.now(pytz.utc))
    include_placeholders: bool = False
    thresholds: AnalyticsThresholds = Field(default_factory=AnalyticsThresholds)

    @field_validator("owner_email", mode="before")
    @classmethod
    def _normalize_owner(cls, value: Any) -> Optional[str]:
        if not value:
            return None
        return str(value).strip().lower() or None

    @field_validator(
        "filter_start",
        "filter_end",
        "relationship_window_start",
        "relationship_window_end",
        "now",
    )
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _check_windows(self) -> "AnalysisOptions":
        if self.filter_end < self.filter_start:
            raise ValueError("filter_end must not be before filter_start")
        if self.relationship_window_end < self.relationship_window_start:
            raise ValueError(
                "relationship_window_end must not be before relationship_window_start"
            )
        return self

    @property
    def owner_domain(self) -> Optional[str]:
        if not self.owner_email or "@" not in self.owner_email:
            return None
        return self.owner_email.rsplit("@", 1)[1]


class AppConfig(BaseSettings):
    """Application configuration."""

    owner_email: Optional[str] = Field(default=None, validation_alias="OWNER_EMAIL")
    baseline_work_week_hours: float = Field(
        default=WORK_WEEK_DEFAULT, validation_alias="BASELINE_WORK_WEEK_HOURS"
    )

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, validation_alias="LOG_FILE")

    # Analysis windows
    audit_lookback_days: int = Field(default=30, validation_alias="AUDIT_LOOKBACK_DAYS")
    audit_lookahead_days: int = Field(default=0, validation_alias="AUDIT_LOOKAHEAD_DAYS")
    relationship_window_days: int = Field(
        default=90, validation_alias="RELATIONSHIP_WINDOW_DAYS"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_parse_none_str="",  # Treat empty string as None
    )


class ReportConfig:
    """Per-user report settings loaded from YAML."""

    def __init__(self, config_path: Path = Path("analytics_config.yaml")):
        self.owner_email: Optional[str] = None
        self.baseline_work_week_hours: Optional[float] = None
        self.range_mode: Optional[RangeMode] = None
        self.threshold_overrides: dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path) as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

            if not isinstance(data, dict):
                raise ConfigurationError(f"{config_path} must contain a mapping")

            self.owner_email = data.get("owner_email")
            self.baseline_work_week_hours = data.get("baseline_work_week_hours")
            if data.get("range_mode"):
                try:
                    self.range_mode = RangeMode(data["range_mode"])
                except ValueError as e:
                    raise ConfigurationError(
                        f"Invalid range_mode: {data['range_mode']}"
                    ) from e
            self.threshold_overrides = dict(data.get("thresholds") or {})
            if data.get("resource_domains"):
                self.threshold_overrides["resource_domains"] = data["resource_domains"]

    @property
    def has_config(self) -> bool:
        return bool(
            self.owner_email
            or self.baseline_work_week_hours is not None
            or self.range_mode
            or self.threshold_overrides
        )

    def build_thresholds(self) -> AnalyticsThresholds:
        """Thresholds from the environment with YAML overrides applied."""
        base = AnalyticsThresholds()
        if not self.threshold_overrides:
            return base
        unknown = set(self.threshold_overrides) - set(AnalyticsThresholds.model_fields)
        if unknown:
            raise ConfigurationError(f"Unknown threshold(s): {', '.join(sorted(unknown))}")
        merged = base.model_dump()
        merged.update(self.threshold_overrides)
        try:
            return AnalyticsThresholds(**merged)
        except ValueError as e:
            raise ConfigurationError(f"Invalid thresholds: {e}") from e


# Global config instance
config = AppConfig()
