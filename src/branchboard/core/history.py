"""Linear undo/redo history of whole-tree snapshots."""

from typing import Callable, List
import logging

from .nodes.base import Snapshot

logger = logging.getLogger(__name__)


class HistoryManager:
    """Ordered snapshot list plus a cursor.

    Committing after an undo discards the redo tail; there is no branching
    history. ``replace_current`` rewrites the snapshot under the cursor and
    is how system corrections and display-only toggles avoid creating an
    undo step.
    """

    def __init__(self, initial: Snapshot):
        self._snapshots: List[tuple] = [tuple(initial)]
        self._index = 0
        self._listeners: List[Callable[[tuple], None]] = []

    def add_listener(self, callback: Callable[[tuple], None]) -> None:
        """Call ``callback`` with the current snapshot whenever it changes."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[tuple], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self.current)

    @property
    def current(self) -> tuple:
        return self._snapshots[self._index]

    @property
    def index(self) -> int:
        return self._index

    @property
    def snapshots(self) -> List[tuple]:
        return list(self._snapshots)

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._snapshots) - 1

    def commit(self, snapshot: Snapshot) -> None:
        """Append ``snapshot`` after the cursor, dropping any redo tail."""
        del self._snapshots[self._index + 1:]
        self._snapshots.append(tuple(snapshot))
        self._index = len(self._snapshots) - 1
        logger.debug(f"History commit -> {self._index + 1} snapshots")
        self._notify()

    def replace_current(self, snapshot: Snapshot) -> None:
        """Overwrite the snapshot under the cursor without adding an undo step."""
        self._snapshots[self._index] = tuple(snapshot)
        self._notify()

    def undo(self) -> bool:
        """Step back one snapshot. Returns False when already at the start."""
        if not self.can_undo:
            return False
        self._index -= 1
        self._notify()
        return True

    def redo(self) -> bool:
        """Step forward one snapshot. Returns False when already at the end."""
        if not self.can_redo:
            return False
        self._index += 1
        self._notify()
        return True

    def reset(self, snapshot: Snapshot) -> None:
        """Start over with ``snapshot`` as the only entry."""
        self._snapshots = [tuple(snapshot)]
        self._index = 0
        self._notify()
