from typing import Iterable, List

from rally.clock import Clock, utc_now
from rally.engine import ScoringEngine, SideLike
from rally.models import LiveMatchSession, MatchSettings, MatchSnapshot, Side


def build_match_timeline(
    settings: MatchSettings,
    winners: Iterable[SideLike],
    clock: Clock = utc_now,
) -> List[MatchSnapshot]:
    """
    Replays a match from scratch, one rally winner at a time.
    Each won set is confirmed immediately, so the snapshot after a set
    point already shows the next set.
    Stops at match completion; later rallies are ignored.
    """

    # Validate everything up front so a bad code yields no partial timeline.
    sides = [Side.parse(w) for w in winners]

    engine = ScoringEngine(clock=clock)
    session = LiveMatchSession.new(match_id="timeline", settings=settings, now=clock())

    timeline: List[MatchSnapshot] = []

    for index, side in enumerate(sides):

        session = engine.add_point(session, side).unwrap()

        if engine.is_set_complete(session):
            session = engine.advance_set(session).unwrap()

        sets_a, sets_b = engine.sets_won(session)

        snapshot = MatchSnapshot(
            rally_index=index + 1,
            set_number=session.current_set_number,
            score_a=session.current_set.side_a,
            score_b=session.current_set.side_b,
            sets_a=sets_a,
            sets_b=sets_b,
            is_finished=engine.is_match_complete(session),
            winner=engine.match_winner(session),
        )

        timeline.append(snapshot)

        if snapshot.is_finished:
            break

    return timeline
