from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from rally.clock import MatchClock
from rally.config import DEFAULT_BEST_OF, DEFAULT_DEUCE_ENABLED, DEFAULT_TARGET_POINTS
from rally.ledger import UndoLedger


class Side(str, Enum):
    A = "a"
    B = "b"

    @property
    def other(self) -> "Side":
        return Side.B if self is Side.A else Side.A

    @classmethod
    def parse(cls, value: Union["Side", str]) -> "Side":
        if isinstance(value, Side):
            return value

        if isinstance(value, str) and value.lower() in ("a", "b"):
            return cls(value.lower())

        raise ValueError(f"Invalid side: {value!r}")


class MatchStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class MatchResult(str, Enum):
    SIDE_A_WINS = "side_a_wins"
    SIDE_B_WINS = "side_b_wins"
    UNDETERMINED = "undetermined"


class UndoActionKind(str, Enum):
    POINT_ADDED = "point_added"
    POINT_REMOVED = "point_removed"
    SET_ADVANCED = "set_advanced"


# =========================================================
# SCORES
# =========================================================

@dataclass(frozen=True)
class SetScore:
    side_a: int = 0
    side_b: int = 0

    def __post_init__(self):
        if self.side_a < 0 or self.side_b < 0:
            raise ValueError("point counts must not be negative")

    def points(self, side: Side) -> int:
        return self.side_a if side is Side.A else self.side_b

    def with_delta(self, side: Side, delta: int) -> "SetScore":
        if side is Side.A:
            return replace(self, side_a=self.side_a + delta)
        return replace(self, side_b=self.side_b + delta)

    @property
    def leader(self) -> Optional[Side]:
        if self.side_a > self.side_b:
            return Side.A
        if self.side_b > self.side_a:
            return Side.B
        return None

    def to_dict(self) -> Dict[str, int]:
        return {"side_a": self.side_a, "side_b": self.side_b}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SetScore":
        return SetScore(side_a=int(d.get("side_a", 0)), side_b=int(d.get("side_b", 0)))

    def __str__(self) -> str:
        return f"{self.side_a}-{self.side_b}"


@dataclass(frozen=True)
class UndoEntry:
    """
    Snapshot taken immediately before a mutating action.

    Restoring `prior_current_set` reverses a point change. A set advance
    additionally restores `prior_completed_sets`.
    """
    timestamp: datetime
    kind: UndoActionKind
    prior_current_set: SetScore
    set_number: int
    prior_completed_sets: Tuple[SetScore, ...] = ()

    def __post_init__(self):
        if self.set_number < 1:
            raise ValueError("set_number is 1-based")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "prior_current_set": self.prior_current_set.to_dict(),
            "set_number": self.set_number,
            "prior_completed_sets": [s.to_dict() for s in self.prior_completed_sets],
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "UndoEntry":
        return UndoEntry(
            timestamp=datetime.fromisoformat(d["timestamp"]),
            kind=UndoActionKind(d["kind"]),
            prior_current_set=SetScore.from_dict(d["prior_current_set"]),
            set_number=int(d["set_number"]),
            prior_completed_sets=tuple(
                SetScore.from_dict(s) for s in (d.get("prior_completed_sets", []) or [])
            ),
        )


# =========================================================
# SETTINGS
# =========================================================

@dataclass(frozen=True)
class MatchSettings:
    target_points: int = DEFAULT_TARGET_POINTS
    best_of_sets: int = DEFAULT_BEST_OF
    deuce_enabled: bool = DEFAULT_DEUCE_ENABLED

    def validate(self) -> "MatchSettings":
        if self.target_points < 1:
            raise ValueError("target_points must be positive")

        if self.best_of_sets <= 0:
            raise ValueError("best_of_sets must be positive")

        if self.best_of_sets % 2 == 0:
            raise ValueError("best_of_sets must be odd")

        return self

    @property
    def sets_needed_to_win(self) -> int:
        return (self.best_of_sets + 1) // 2


# =========================================================
# LIVE SESSION
# =========================================================

@dataclass(frozen=True)
class LiveMatchSession:
    """
    Complete transient state of one in-progress match.

    Never mutated in place; every scoring operation returns a new value.
    """
    match_id: str
    clock: MatchClock
    current_set: SetScore = field(default_factory=SetScore)
    completed_sets: Tuple[SetScore, ...] = ()
    ledger: UndoLedger = field(default_factory=UndoLedger)
    target_points: int = DEFAULT_TARGET_POINTS
    best_of_sets: int = DEFAULT_BEST_OF
    deuce_enabled: bool = DEFAULT_DEUCE_ENABLED

    def __post_init__(self):
        self.settings.validate()

    @classmethod
    def new(cls, match_id: str, settings: MatchSettings, now: datetime) -> "LiveMatchSession":
        settings.validate()
        return cls(
            match_id=match_id,
            clock=MatchClock.start(now),
            target_points=settings.target_points,
            best_of_sets=settings.best_of_sets,
            deuce_enabled=settings.deuce_enabled,
        )

    @property
    def settings(self) -> MatchSettings:
        return MatchSettings(
            target_points=self.target_points,
            best_of_sets=self.best_of_sets,
            deuce_enabled=self.deuce_enabled,
        )

    @property
    def current_set_number(self) -> int:
        return len(self.completed_sets) + 1

    @property
    def sets_needed_to_win(self) -> int:
        return self.settings.sets_needed_to_win

    @property
    def can_undo(self) -> bool:
        return self.ledger.can_undo

    @property
    def is_paused(self) -> bool:
        return self.clock.is_paused

    def to_dict(self) -> Dict[str, Any]:
        return {
            "match_id": self.match_id,
            "current_set": self.current_set.to_dict(),
            "completed_sets": [s.to_dict() for s in self.completed_sets],
            "ledger": self.ledger.to_dict(),
            "clock": self.clock.to_dict(),
            "target_points": self.target_points,
            "best_of_sets": self.best_of_sets,
            "deuce_enabled": self.deuce_enabled,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "LiveMatchSession":
        return LiveMatchSession(
            match_id=str(d["match_id"]),
            clock=MatchClock.from_dict(d["clock"]),
            current_set=SetScore.from_dict(d.get("current_set", {})),
            completed_sets=tuple(SetScore.from_dict(s) for s in (d.get("completed_sets", []) or [])),
            ledger=UndoLedger.from_dict(d.get("ledger", {})),
            target_points=int(d["target_points"]),
            best_of_sets=int(d["best_of_sets"]),
            deuce_enabled=bool(d["deuce_enabled"]),
        )


@dataclass(frozen=True)
class MatchSummary:
    completed_sets: Tuple[SetScore, ...]
    result: MatchResult
    total_elapsed: timedelta


@dataclass(frozen=True)
class MatchSnapshot:
    rally_index: int
    set_number: int
    score_a: int
    score_b: int
    sets_a: int
    sets_b: int
    is_finished: bool
    winner: Optional[Side]


# =========================================================
# MATCH RECORD
# =========================================================

@dataclass(frozen=True)
class Singles:
    kind: ClassVar[str] = "singles"
    side_a: str
    side_b: str


@dataclass(frozen=True)
class Doubles:
    kind: ClassVar[str] = "doubles"
    side_a: str
    side_b: str


Participants = Union[Singles, Doubles]


def participants_to_dict(p: Participants) -> Dict[str, str]:
    return {"kind": p.kind, "side_a": p.side_a, "side_b": p.side_b}


def participants_from_dict(d: Dict[str, Any]) -> Participants:
    kinds = {Singles.kind: Singles, Doubles.kind: Doubles}
    kind = d.get("kind")
    if kind not in kinds:
        raise ValueError(f"Unknown participants kind: {kind!r}")
    return kinds[kind](side_a=str(d["side_a"]), side_b=str(d["side_b"]))


@dataclass
class MatchRecord:
    """
    What survives a finished match: the live session itself is discarded.
    """
    match_id: str
    participants: Participants
    target_points: int
    best_of_sets: int
    set_scores: Tuple[SetScore, ...]
    result: MatchResult
    duration: timedelta
    created_at: datetime
    updated_at: datetime
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "match_id": self.match_id,
            "participants": participants_to_dict(self.participants),
            "target_points": self.target_points,
            "best_of_sets": self.best_of_sets,
            "set_scores": [s.to_dict() for s in self.set_scores],
            "result": self.result.value,
            "duration": self.duration.total_seconds(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "notes": self.notes,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "MatchRecord":
        return MatchRecord(
            match_id=str(d["match_id"]),
            participants=participants_from_dict(d["participants"]),
            target_points=int(d["target_points"]),
            best_of_sets=int(d["best_of_sets"]),
            set_scores=tuple(SetScore.from_dict(s) for s in (d.get("set_scores", []) or [])),
            result=MatchResult(d["result"]),
            duration=timedelta(seconds=float(d.get("duration", 0.0))),
            created_at=datetime.fromisoformat(d["created_at"]),
            updated_at=datetime.fromisoformat(d["updated_at"]),
            notes=str(d.get("notes", "")),
        )
