"""Undo/redo history for scene transitions.

Every state-changing dispatch is recorded as a pair of snapshots (the scene
before and after the action) together with the action itself. Undo restores
the ``before`` snapshot of the entry at the cursor; redo restores the
``after`` snapshot of the entry following it. Nothing relies on actions being
invertible.

Recording is guarded by a small state machine. ``commit`` only records while
the history is APPLYING (entered by the engine around a dispatch); anything
that tries to commit while a snapshot is being restored (REPLAYING) is
ignored.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterator

if TYPE_CHECKING:
    from ..scene.actions import Action
    from ..scene.scene import Scene

logger = logging.getLogger(__name__)


def _local_now() -> str:
    return datetime.now().isoformat()


class HistoryState(str, Enum):
    """What the history is currently doing."""

    IDLE = "idle"
    APPLYING = "applying"
    REPLAYING = "replaying"


@dataclass(frozen=True)
class HistoryEntry:
    """One recorded transition."""

    action: Action
    before: Scene
    after: Scene
    timestamp: str

    @property
    def action_type(self) -> str:
        """Type tag of the recorded action."""
        return self.action.type


class HistoryManager:
    """Bounded undo/redo history of paired before/after snapshots.

    When more than ``max_entries`` transitions have been committed the oldest
    one is evicted, which silently reduces how far back undo can go.
    """

    def __init__(
        self,
        restore: Callable[[Scene], None],
        max_entries: int = 50,
        clock: Callable[[], str] | None = None,
    ):
        """Initialize history.

        Args:
            restore: Called with a fresh snapshot on undo/redo
            max_entries: Maximum number of entries kept
            clock: Timestamp source for entries (local time if omitted)
        """
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")

        self._restore = restore
        self._clock = clock or _local_now
        self.max_entries = max_entries
        self._entries: list[HistoryEntry] = []
        self._cursor = -1  # index of the most recently applied entry
        self._state = HistoryState.IDLE

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @property
    def state(self) -> HistoryState:
        """Current state of the history."""
        return self._state

    @property
    def is_busy(self) -> bool:
        """True while applying or replaying."""
        return self._state is not HistoryState.IDLE

    @contextmanager
    def _enter(self, state: HistoryState) -> Iterator[None]:
        if self._state is not HistoryState.IDLE:
            raise RuntimeError(
                f"Cannot start {state.value} while history is {self._state.value}"
            )
        self._state = state
        try:
            yield
        finally:
            self._state = HistoryState.IDLE

    def applying(self):
        """Context in which ``commit`` records transitions."""
        return self._enter(HistoryState.APPLYING)

    def replaying(self):
        """Context in which a snapshot is being restored."""
        return self._enter(HistoryState.REPLAYING)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def commit(self, action: Action, before: Scene, after: Scene) -> bool:
        """Record a transition.

        Discards any redo tail, then appends a new entry holding snapshots
        of both scenes. Evicts the oldest entry if over capacity.

        Args:
            action: Action that produced the transition
            before: Scene before the action
            after: Scene after the action

        Returns:
            True if recorded, False if the history is not APPLYING
        """
        if self._state is not HistoryState.APPLYING:
            logger.debug(f"Ignoring commit of {action.type} while {self._state.value}")
            return False

        del self._entries[self._cursor + 1:]
        self._entries.append(HistoryEntry(
            action=action,
            before=before.snapshot(),
            after=after.snapshot(),
            timestamp=self._clock(),
        ))
        self._cursor += 1

        if len(self._entries) > self.max_entries:
            evicted = self._entries.pop(0)
            self._cursor -= 1
            logger.debug(f"History full, evicted oldest entry ({evicted.action_type})")

        logger.debug(f"Committed {action.type} ({self.undo_depth} undoable)")
        return True

    # ------------------------------------------------------------------
    # Undo / redo
    # ------------------------------------------------------------------

    def can_undo(self) -> bool:
        """Check if there is a transition to undo."""
        return self._cursor >= 0

    def can_redo(self) -> bool:
        """Check if there is a transition to redo."""
        return self._cursor < len(self._entries) - 1

    def undo(self) -> bool:
        """Restore the scene from before the most recent transition.

        Returns:
            True if a transition was undone, False if there was none
        """
        if not self.can_undo():
            return False

        entry = self._entries[self._cursor]
        with self.replaying():
            self._cursor -= 1
            self._restore(entry.before.snapshot())

        logger.debug(f"Undid {entry.action_type}")
        return True

    def redo(self) -> bool:
        """Re-apply the next undone transition.

        Returns:
            True if a transition was redone, False if there was none
        """
        if not self.can_redo():
            return False

        entry = self._entries[self._cursor + 1]
        with self.replaying():
            self._cursor += 1
            self._restore(entry.after.snapshot())

        logger.debug(f"Redid {entry.action_type}")
        return True

    def peek_undo(self) -> HistoryEntry | None:
        """Entry that the next undo would revert."""
        return self._entries[self._cursor] if self.can_undo() else None

    def peek_redo(self) -> HistoryEntry | None:
        """Entry that the next redo would re-apply."""
        return self._entries[self._cursor + 1] if self.can_redo() else None

    def clear(self) -> None:
        """Forget all recorded transitions."""
        self._entries.clear()
        self._cursor = -1

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def entries(self) -> list[HistoryEntry]:
        """Copy of the recorded entries, oldest first."""
        return list(self._entries)

    @property
    def undo_depth(self) -> int:
        """Number of transitions that can be undone."""
        return self._cursor + 1

    @property
    def redo_depth(self) -> int:
        """Number of transitions that can be redone."""
        return len(self._entries) - self._cursor - 1

    def __len__(self) -> int:
        return len(self._entries)
