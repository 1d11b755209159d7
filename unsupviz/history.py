"""Snapshot history for backward stepping.

Provides an in-memory stack of engine state snapshots so an engine can be
rewound to any previously recorded state without recomputation.

History Structure:
- One entry is pushed before every state-changing step
- Each entry is an independent deep copy of the engine state, together with
  the random generator state at that moment
- Entries are popped in reverse order by ``step_back``
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)


@dataclass(frozen=True)
class HistoryEntry(Generic[S]):
    """A recorded engine state."""

    state: S
    random_state: dict[str, Any] | None = field(default=None, compare=False)


class HistoryStore(Generic[S]):
    """Stack of immutable engine snapshots."""

    def __init__(self, max_entries: int | None = None) -> None:
        """Initialize the history store.

        Args:
            max_entries: Keep at most this many entries, dropping the oldest.
                None keeps everything.
        """
        self.max_entries = max_entries
        self._entries: list[HistoryEntry[S]] = []

    def push(self, state: S, random_state: dict[str, Any] | None = None) -> None:
        """Record a deep copy of ``state``.

        Args:
            state: Live engine state; later mutation does not affect the copy.
            random_state: Random generator state to restore alongside.
        """
        self._entries.append(HistoryEntry(state.model_copy(deep=True), random_state))
        if self.max_entries is not None and len(self._entries) > self.max_entries:
            dropped = len(self._entries) - self.max_entries
            self._entries = self._entries[dropped:]
            logger.debug(f"History limit reached, dropped {dropped} oldest entries")

    def pop(self) -> HistoryEntry[S] | None:
        """Remove and return the most recent entry, or None if empty."""
        if not self._entries:
            return None
        return self._entries.pop()

    def peek(self) -> HistoryEntry[S] | None:
        """Return the most recent entry without removing it."""
        if not self._entries:
            return None
        return self._entries[-1]

    def clear(self) -> None:
        self._entries.clear()

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)
