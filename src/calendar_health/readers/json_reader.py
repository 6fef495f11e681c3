"""Calendar reader for provider JSON exports."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..models.event import CalendarEvent, parse_event
from ..utils.date_utils import ensure_utc
from ..utils.exceptions import CalendarReadError, EventParseError
from .base import EventReader

logger = logging.getLogger(__name__)


class JsonEventReader(EventReader):
    """Read events from a Google Calendar style JSON export."""

    def __init__(self, path: Path):
        """
        Initialize JSON reader.

        Args:
            path: File holding a list of events or an ``{"items": [...]}`` page
        """
        self.path = Path(path)
        # Records dropped by the last read_events call
        self.skipped_count = 0

    def _load_records(self) -> list[Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise CalendarReadError(f"Failed to read {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise CalendarReadError(f"Invalid JSON in {self.path}: {e}") from e

        if isinstance(data, dict):
            data = data.get("items", [])
        if not isinstance(data, list):
            raise CalendarReadError(f"{self.path} does not contain a list of events")
        return data

    def read_events(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[CalendarEvent]:
        """Read events, skipping records that fail validation."""
        start_date = ensure_utc(start_date) if start_date else None
        end_date = ensure_utc(end_date) if end_date else None

        result = []
        skipped = 0
        for record in self._load_records():
            try:
                event = parse_event(record)
            except EventParseError as e:
                logger.warning(f"Skipping record: {e}")
                skipped += 1
                continue

            # Keep events without a start; the engine reports them as skipped
            start = event.start_time
            if start is not None:
                end = event.end_time or start
                if start_date and end < start_date:
                    continue
                if end_date and start > end_date:
                    continue
            result.append(event)

        self.skipped_count = skipped
        logger.info(f"Read {len(result)} events from {self.path} ({skipped} invalid)")
        return result
