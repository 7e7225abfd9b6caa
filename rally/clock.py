from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

# Injected "current instant" source. Tests pass a fake; nothing in the
# engine reads the wall clock directly.
Clock = Callable[[], datetime]

_ZERO = timedelta(0)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MatchClock:
    """
    Elapsed play time across pause/resume cycles.

    Immutable: pause() and resume() return a new clock. While paused the
    elapsed value is frozen at the instant the pause began.
    """
    started_at: datetime
    is_paused: bool = False
    paused_at: Optional[datetime] = None
    accumulated_pause: timedelta = _ZERO

    def __post_init__(self):
        if self.is_paused != (self.paused_at is not None):
            raise ValueError("paused_at must be set if and only if the clock is paused")

        if self.accumulated_pause < _ZERO:
            raise ValueError("accumulated_pause must not be negative")

    @classmethod
    def start(cls, now: datetime) -> "MatchClock":
        return cls(started_at=now)

    def pause(self, now: datetime) -> "MatchClock":
        if self.is_paused:
            return self

        return replace(self, is_paused=True, paused_at=now)

    def resume(self, now: datetime) -> "MatchClock":
        if not self.is_paused:
            return self

        # A backwards clock jump must not shrink the accumulated pause.
        paused_for = max(now - self.paused_at, _ZERO)

        return replace(
            self,
            is_paused=False,
            paused_at=None,
            accumulated_pause=self.accumulated_pause + paused_for,
        )

    def elapsed(self, now: datetime) -> timedelta:
        reference = self.paused_at if self.is_paused else now
        elapsed = reference - self.started_at - self.accumulated_pause
        return max(elapsed, _ZERO)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "is_paused": self.is_paused,
            "paused_at": self.paused_at.isoformat() if self.paused_at else None,
            "accumulated_pause": self.accumulated_pause.total_seconds(),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "MatchClock":
        paused_at = d.get("paused_at")
        return MatchClock(
            started_at=datetime.fromisoformat(d["started_at"]),
            is_paused=bool(d.get("is_paused", False)),
            paused_at=datetime.fromisoformat(paused_at) if paused_at else None,
            accumulated_pause=timedelta(seconds=float(d.get("accumulated_pause", 0.0))),
        )
