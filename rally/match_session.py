import logging
import uuid
from typing import Optional

from rally.clock import Clock, utc_now
from rally.engine import FinalizeResult, OperationResult, ScoringEngine, SideLike
from rally.exceptions import SessionClosedError
from rally.models import LiveMatchSession, MatchRecord, MatchSettings, Participants
from rally.storage import (
    InMemoryStore,
    KeyValueStore,
    live_key,
    load_session,
    save_record,
    save_session,
)

logger = logging.getLogger(__name__)


class MatchSession:
    """
    Single live match, owned by the scoring screen.

    Responsibilities:
    - Hold the current LiveMatchSession and apply engine operations
    - Persist the session after every successful operation
    - Keep scoring when a save fails (in-memory state stays authoritative)
    - Turn a finished session into a stored MatchRecord
    """

    def __init__(
        self,
        session: LiveMatchSession,
        participants: Participants,
        store: Optional[KeyValueStore] = None,
        clock: Clock = utc_now,
    ):
        self._session = session
        self._participants = participants
        self._store = store if store is not None else InMemoryStore()
        self._clock = clock
        self._engine = ScoringEngine(clock=clock)
        self._created_at = session.clock.started_at
        self.last_save_error: Optional[Exception] = None
        self._closed = False

    # ---------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------

    @classmethod
    def start(
        cls,
        participants: Participants,
        settings: Optional[MatchSettings] = None,
        store: Optional[KeyValueStore] = None,
        clock: Clock = utc_now,
        match_id: Optional[str] = None,
    ) -> "MatchSession":
        session = LiveMatchSession.new(
            match_id=match_id or str(uuid.uuid4()),
            settings=settings or MatchSettings(),
            now=clock(),
        )
        match_session = cls(session, participants, store=store, clock=clock)
        match_session._persist()

        logger.info("Match %s: started (%s, first to %d, best of %d, deuce %s)",
                    session.match_id, participants.kind, session.target_points,
                    session.best_of_sets, "on" if session.deuce_enabled else "off")
        return match_session

    @classmethod
    def restore(
        cls,
        store: KeyValueStore,
        match_id: str,
        participants: Participants,
        clock: Clock = utc_now,
    ) -> Optional["MatchSession"]:
        session = load_session(store, match_id)
        if session is None:
            return None

        logger.info("Match %s: restored at set %d (%s)",
                    match_id, session.current_set_number, session.current_set)
        return cls(session, participants, store=store, clock=clock)

    def finish(self, notes: str = "") -> MatchRecord:
        """
        Finalize, store the match record and drop the live session.

        An undetermined result is still saved; it is logged for review.
        Only completed sets count: a won set that has not been confirmed
        with advance_set() is left out of the record, so advance first.

        The session is closed afterwards and refuses further operations.
        """
        self._ensure_open()
        finalized: FinalizeResult = self._engine.finalize(self._session)
        summary = finalized.summary

        record = MatchRecord(
            match_id=self._session.match_id,
            participants=self._participants,
            target_points=self._session.target_points,
            best_of_sets=self._session.best_of_sets,
            set_scores=summary.completed_sets,
            result=summary.result,
            duration=summary.total_elapsed,
            created_at=self._created_at,
            updated_at=self._clock(),
            notes=notes,
        )

        save_record(self._store, record)
        self._store.delete(live_key(self._session.match_id))
        self._closed = True
        return record

    def abandon(self) -> None:
        self._ensure_open()
        self._closed = True
        self._store.delete(live_key(self._session.match_id))
        logger.info("Match %s: abandoned", self._session.match_id)

    # ---------------------------------------------------------
    # Scoring API
    # ---------------------------------------------------------

    def add_point(self, side: SideLike) -> OperationResult:
        self._ensure_open()
        return self._apply(self._engine.add_point(self._session, side))

    def remove_point(self, side: SideLike) -> OperationResult:
        self._ensure_open()
        return self._apply(self._engine.remove_point(self._session, side))

    def advance_set(self) -> OperationResult:
        self._ensure_open()
        return self._apply(self._engine.advance_set(self._session))

    def undo(self) -> OperationResult:
        self._ensure_open()
        return self._apply(self._engine.undo(self._session))

    def pause(self) -> OperationResult:
        self._ensure_open()
        return self._apply(self._engine.pause(self._session))

    def resume(self) -> OperationResult:
        self._ensure_open()
        return self._apply(self._engine.resume(self._session))

    # ---------------------------------------------------------
    # Read-only
    # ---------------------------------------------------------

    @property
    def session(self) -> LiveMatchSession:
        return self._session

    @property
    def participants(self) -> Participants:
        return self._participants

    @property
    def engine(self) -> ScoringEngine:
        return self._engine

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ---------------------------------------------------------
    # Internals
    # ---------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Match {self._session.match_id} is already finished or abandoned")

    def _apply(self, result: OperationResult) -> OperationResult:
        if not result.ok:
            return result

        changed = result.session != self._session
        self._session = result.session
        if changed:
            self._persist()

        return result

    def _persist(self) -> None:
        if self._closed:
            return

        try:
            save_session(self._store, self._session)
        except Exception as e:
            self.last_save_error = e
            logger.warning("Match %s: could not save live session, scoring continues: %s",
                           self._session.match_id, e)
        else:
            self.last_save_error = None
