"""Status events surfaced to the UI.

Ingestion is the only place a user sees a failure, so it reports its
outcome through here for a status bar or log panel to pick up.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional
import logging

logger = logging.getLogger(__name__)


class StatusCategory(Enum):
    """Categories for status messages."""
    INGEST = "ingest"


class StatusLevel(Enum):
    """Severity level of status messages."""
    SUCCESS = "success"    # Completed successfully
    ERROR = "error"        # Failed operation


@dataclass
class StatusEvent:
    """A single status update event."""
    category: StatusCategory
    message: str
    level: StatusLevel
    timestamp: datetime = field(default_factory=datetime.now)
    details: Optional[str] = None

    @property
    def time_str(self) -> str:
        return self.timestamp.strftime("%H:%M:%S")

    def format_message(self) -> str:
        return f"{self.time_str} [{self.level.value}] {self.message}"


class StatusManager:
    """Central manager for status updates.

    Usage:
        status = StatusManager()
        status.add_listener(lambda event: print(event.format_message()))

        status.success("ingest", "Loaded sales.csv")
        status.error("ingest", "Unsupported file type")
    """

    def __init__(self, max_history: int = 100):
        self._listeners: list[Callable[[StatusEvent], None]] = []
        self._history: list[StatusEvent] = []
        self._max_history = max_history

    def add_listener(self, callback: Callable[[StatusEvent], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[StatusEvent], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit(self, category: str, message: str, level: StatusLevel,
              details: str = None) -> None:
        event = StatusEvent(
            category=StatusCategory(category),
            message=message,
            level=level,
            details=details,
        )
        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Status listener failed: {e}")

    def success(self, category: str, message: str, details: str = None) -> None:
        self._emit(category, message, StatusLevel.SUCCESS, details)

    def error(self, category: str, message: str, details: str = None) -> None:
        self._emit(category, message, StatusLevel.ERROR, details)

    def get_history(self, limit: int = 50) -> list[StatusEvent]:
        return self._history[-limit:]


# Global status manager instance
_global_status: Optional[StatusManager] = None


def get_status_manager() -> StatusManager:
    """Get the global status manager instance."""
    global _global_status
    if _global_status is None:
        _global_status = StatusManager()
    return _global_status
