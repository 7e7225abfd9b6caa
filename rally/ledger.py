from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Tuple

from rally.config import UNDO_HISTORY_LIMIT
from rally.exceptions import EmptyLedgerError

if TYPE_CHECKING:
    from rally.models import UndoEntry


@dataclass(frozen=True)
class UndoLedger:
    """
    Bounded undo history, oldest entry first.

    Holds at most `capacity` entries (50 by default). Pushing past the
    limit evicts the oldest entry, so undo depth is capped at the last
    `capacity` actions.
    """
    entries: Tuple[UndoEntry, ...] = ()
    capacity: int = UNDO_HISTORY_LIMIT

    def __post_init__(self):
        if self.capacity < 1:
            raise ValueError("capacity must be positive")

        if len(self.entries) > self.capacity:
            raise ValueError("ledger holds more entries than its capacity")

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def can_undo(self) -> bool:
        return len(self.entries) > 0

    def push(self, entry: UndoEntry) -> UndoLedger:
        """
        Return a new ledger with `entry` on top.

        Copies the entry tuple, O(n) with n bounded by `capacity`.
        """
        entries = self.entries + (entry,)

        if len(entries) > self.capacity:
            entries = entries[len(entries) - self.capacity:]

        return UndoLedger(entries=entries, capacity=self.capacity)

    def pop(self) -> Tuple[UndoEntry, UndoLedger]:
        """
        Return the most recent entry and the ledger without it.
        """
        if not self.entries:
            raise EmptyLedgerError("undo ledger is empty")

        return self.entries[-1], UndoLedger(entries=self.entries[:-1], capacity=self.capacity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "capacity": self.capacity,
            "entries": [e.to_dict() for e in self.entries],
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> UndoLedger:
        from rally.models import UndoEntry

        raw: List[Dict[str, Any]] = d.get("entries", []) or []
        return UndoLedger(
            entries=tuple(UndoEntry.from_dict(e) for e in raw),
            capacity=int(d.get("capacity", UNDO_HISTORY_LIMIT)),
        )
