"""Custom exceptions for Calendar Health application."""


class CalendarHealthError(Exception):
    """Base exception for calendar health errors."""


class EventParseError(CalendarHealthError):
    """Raised when a calendar event record cannot be normalized."""


class CalendarReadError(CalendarHealthError):
    """Raised when reading calendar events fails."""


class ConfigurationError(CalendarHealthError):
    """Raised when configuration is invalid."""


class SeriesComputationError(CalendarHealthError):
    """Raised when metrics for a single recurring series cannot be built."""

    def __init__(self, series_id: str, message: str):
        self.series_id = series_id
        super().__init__(f"Series {series_id}: {message}")
