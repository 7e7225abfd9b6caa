import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional, Tuple, Union

from rally.clock import Clock, utc_now
from rally.exceptions import (
    MatchAlreadyCompleted,
    MatchPaused,
    NoPointsToRemove,
    NothingToUndo,
    ScoringError,
    SetAlreadyWon,
    SetNotYetWon,
    UndeterminedResult,
)
from rally.models import (
    LiveMatchSession,
    MatchResult,
    MatchStatus,
    MatchSummary,
    SetScore,
    Side,
    UndoActionKind,
    UndoEntry,
)

logger = logging.getLogger(__name__)

SideLike = Union[Side, str]


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of one engine operation.

    On failure `session` is the input session, untouched, and `error`
    carries the reason.
    """
    session: LiveMatchSession
    error: Optional[ScoringError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> LiveMatchSession:
        if self.error is not None:
            raise self.error
        return self.session


@dataclass(frozen=True)
class FinalizeResult:
    summary: MatchSummary
    error: Optional[ScoringError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def set_winner(score: SetScore, target_points: int, deuce_enabled: bool) -> Optional[Side]:
    """
    Side that has won `score`, or None while the set is still open.

    With the deuce rule a side needs the target and a two point lead, with
    no upper cap. Without it, the first side to the target wins outright.
    """
    for side in (Side.A, Side.B):
        points = score.points(side)
        if points < target_points:
            continue

        if not deuce_enabled:
            return side

        if points - score.points(side.other) >= 2:
            return side

    return None


class ScoringEngine:
    """
    Operation surface over LiveMatchSession.

    Responsibilities:
    - Apply point / set / undo / pause mutations
    - Enforce set and match lifecycle
    - Report domain conditions as typed results, never exceptions
    - Stay free of I/O; the caller persists returned sessions

    Sets advance only through advance_set(). A won set stays current,
    blocking further points, until the caller confirms it.
    """

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock

    # =========================================================
    # SCORING
    # =========================================================

    def add_point(self, session: LiveMatchSession, side: SideLike) -> OperationResult:
        side = Side.parse(side)

        error = self._check_scoring_allowed(session)
        if error is None and self.is_set_complete(session):
            error = SetAlreadyWon(
                f"set {session.current_set_number} is already won, advance to continue"
            )
        if error is not None:
            return self._reject("add_point", session, error)

        entry = self._record(session, UndoActionKind.POINT_ADDED)
        updated = replace(
            session,
            current_set=session.current_set.with_delta(side, 1),
            ledger=session.ledger.push(entry),
        )

        logger.debug("Match %s: point to %s, set %d at %s",
                     session.match_id, side.value, updated.current_set_number, updated.current_set)

        winner = self.pending_set_winner(updated)
        if winner is not None:
            logger.info("Match %s: set %d won by side %s (%s)",
                        session.match_id, updated.current_set_number, winner.value, updated.current_set)

        return OperationResult(updated)

    def remove_point(self, session: LiveMatchSession, side: SideLike) -> OperationResult:
        side = Side.parse(side)

        error = self._check_scoring_allowed(session)
        if error is None and session.current_set.points(side) == 0:
            error = NoPointsToRemove(f"side {side.value} has no points in the current set")
        if error is not None:
            return self._reject("remove_point", session, error)

        entry = self._record(session, UndoActionKind.POINT_REMOVED)
        updated = replace(
            session,
            current_set=session.current_set.with_delta(side, -1),
            ledger=session.ledger.push(entry),
        )

        logger.debug("Match %s: point removed from %s, set %d at %s",
                     session.match_id, side.value, updated.current_set_number, updated.current_set)

        return OperationResult(updated)

    def advance_set(self, session: LiveMatchSession) -> OperationResult:
        error = self._check_scoring_allowed(session)
        if error is None and not self.is_set_complete(session):
            error = SetNotYetWon(
                f"set {session.current_set_number} at {session.current_set} is not won yet"
            )
        if error is not None:
            return self._reject("advance_set", session, error)

        entry = self._record(session, UndoActionKind.SET_ADVANCED)
        updated = replace(
            session,
            completed_sets=session.completed_sets + (session.current_set,),
            current_set=SetScore(),
            ledger=session.ledger.push(entry),
        )

        logger.debug("Match %s: advanced past set %d (%s)",
                     session.match_id, session.current_set_number, session.current_set)

        if self.is_match_complete(updated):
            sets_a, sets_b = self.sets_won(updated)
            logger.info("Match %s: completed, sets %d-%d", session.match_id, sets_a, sets_b)

        return OperationResult(updated)

    # =========================================================
    # UNDO
    # =========================================================

    def undo(self, session: LiveMatchSession) -> OperationResult:
        if not session.can_undo:
            return self._reject("undo", session, NothingToUndo("no actions to undo"))

        entry, ledger = session.ledger.pop()
        restored = replace(session, current_set=entry.prior_current_set, ledger=ledger)

        if entry.kind is UndoActionKind.SET_ADVANCED:
            restored = replace(restored, completed_sets=entry.prior_completed_sets)

        logger.debug("Match %s: undid %s in set %d, score back to %s",
                     session.match_id, entry.kind.value, entry.set_number, restored.current_set)

        return OperationResult(restored)

    # =========================================================
    # CLOCK
    # =========================================================

    def pause(self, session: LiveMatchSession) -> OperationResult:
        if self.is_match_complete(session):
            return self._reject("pause", session, MatchAlreadyCompleted("match is already completed"))

        if session.is_paused:
            return OperationResult(session)

        logger.debug("Match %s: paused", session.match_id)
        return OperationResult(replace(session, clock=session.clock.pause(self._clock())))

    def resume(self, session: LiveMatchSession) -> OperationResult:
        if self.is_match_complete(session):
            return self._reject("resume", session, MatchAlreadyCompleted("match is already completed"))

        if not session.is_paused:
            return OperationResult(session)

        logger.debug("Match %s: resumed", session.match_id)
        return OperationResult(replace(session, clock=session.clock.resume(self._clock())))

    # =========================================================
    # FINALIZE
    # =========================================================

    def finalize(self, session: LiveMatchSession) -> FinalizeResult:
        """
        Build the persisted summary. Allowed in any status, so a match can
        be saved early. Only completed sets are counted; a won set still
        awaiting advance_set() is not.
        """
        sets_a, sets_b = self.sets_won(session)

        if sets_a > sets_b:
            result = MatchResult.SIDE_A_WINS
        elif sets_b > sets_a:
            result = MatchResult.SIDE_B_WINS
        else:
            result = MatchResult.UNDETERMINED

        summary = MatchSummary(
            completed_sets=session.completed_sets,
            result=result,
            total_elapsed=self.elapsed_duration(session),
        )

        logger.info("Match %s: finalized as %s after %d set(s)",
                    session.match_id, result.value, len(session.completed_sets))

        if result is MatchResult.UNDETERMINED:
            logger.warning("Match %s: result undetermined at sets %d-%d", session.match_id, sets_a, sets_b)
            return FinalizeResult(summary, UndeterminedResult(f"sets are level at {sets_a}-{sets_b}"))

        return FinalizeResult(summary)

    # =========================================================
    # QUERIES
    # =========================================================

    def current_set_number(self, session: LiveMatchSession) -> int:
        return session.current_set_number

    def can_undo(self, session: LiveMatchSession) -> bool:
        return session.can_undo

    def pending_set_winner(self, session: LiveMatchSession) -> Optional[Side]:
        return set_winner(session.current_set, session.target_points, session.deuce_enabled)

    def is_set_complete(self, session: LiveMatchSession) -> bool:
        return self.pending_set_winner(session) is not None

    def sets_won(self, session: LiveMatchSession) -> Tuple[int, int]:
        leaders = [s.leader for s in session.completed_sets]
        return leaders.count(Side.A), leaders.count(Side.B)

    def is_match_complete(self, session: LiveMatchSession) -> bool:
        return max(self.sets_won(session)) >= session.sets_needed_to_win

    def match_winner(self, session: LiveMatchSession) -> Optional[Side]:
        sets_a, sets_b = self.sets_won(session)
        needed = session.sets_needed_to_win

        if sets_a >= needed:
            return Side.A
        if sets_b >= needed:
            return Side.B
        return None

    def status(self, session: LiveMatchSession) -> MatchStatus:
        if self.is_match_complete(session):
            return MatchStatus.COMPLETED
        if session.is_paused:
            return MatchStatus.PAUSED
        return MatchStatus.RUNNING

    def elapsed_duration(self, session: LiveMatchSession, now: Optional[datetime] = None) -> timedelta:
        return session.clock.elapsed(now if now is not None else self._clock())

    # =========================================================
    # INTERNALS
    # =========================================================

    def _check_scoring_allowed(self, session: LiveMatchSession) -> Optional[ScoringError]:
        if self.is_match_complete(session):
            return MatchAlreadyCompleted("match is already completed")

        if session.is_paused:
            return MatchPaused("match is paused")

        return None

    def _record(self, session: LiveMatchSession, kind: UndoActionKind) -> UndoEntry:
        return UndoEntry(
            timestamp=self._clock(),
            kind=kind,
            prior_current_set=session.current_set,
            set_number=session.current_set_number,
            prior_completed_sets=session.completed_sets,
        )

    def _reject(self, operation: str, session: LiveMatchSession, error: ScoringError) -> OperationResult:
        logger.info("Match %s: %s rejected: %s", session.match_id, operation, error)
        return OperationResult(session, error)
