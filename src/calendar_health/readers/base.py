"""Abstract base class for calendar event readers."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ..models.event import CalendarEvent


class EventReader(ABC):
    """Abstract base class for calendar event readers."""

    @abstractmethod
    def read_events(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[CalendarEvent]:
        """
        Read events overlapping a date range.

        Args:
            start_date: Start date for event range
            end_date: End date for event range

        Returns:
            List of normalized CalendarEvent objects

        Raises:
            CalendarReadError: If reading events fails
        """
