import pytest

from rally.clock import MatchClock
from rally.engine import ScoringEngine, set_winner
from rally.models import LiveMatchSession, MatchSettings, SetScore, Side


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------

def create_session(clock, **settings):
    return LiveMatchSession.new(match_id="m1", settings=MatchSettings(**settings), now=clock())


# ---------------------------------------------------------
# Settings validation
# ---------------------------------------------------------

def test_best_of_must_be_odd(clock):
    with pytest.raises(ValueError):
        create_session(clock, best_of_sets=4)


def test_best_of_must_be_positive(clock):
    with pytest.raises(ValueError):
        create_session(clock, best_of_sets=0)


def test_target_must_be_positive(clock):
    with pytest.raises(ValueError):
        create_session(clock, target_points=0)


def test_direct_construction_is_validated(clock):
    with pytest.raises(ValueError):
        LiveMatchSession(match_id="m1", clock=MatchClock.start(clock()), best_of_sets=2)


def test_sets_needed_to_win():
    assert MatchSettings(best_of_sets=1).sets_needed_to_win == 1
    assert MatchSettings(best_of_sets=3).sets_needed_to_win == 2
    assert MatchSettings(best_of_sets=7).sets_needed_to_win == 4


# ---------------------------------------------------------
# Set-win rule
# ---------------------------------------------------------

@pytest.mark.parametrize("a, b, deuce, expected", [
    (11, 9, True, Side.A),
    (11, 10, True, None),
    (12, 10, True, Side.A),
    (10, 12, True, Side.B),
    (10, 10, True, None),
    (11, 10, False, Side.A),
    (10, 11, False, Side.B),
    (10, 0, False, None),
])
def test_set_winner(a, b, deuce, expected):
    assert set_winner(SetScore(a, b), 11, deuce) is expected


def test_negative_points_rejected():
    with pytest.raises(ValueError):
        SetScore(-1, 0)


# ---------------------------------------------------------
# Match results
# ---------------------------------------------------------

@pytest.mark.parametrize("sequence, expected_winner", [
    ("aaa", Side.A),
    ("aaba", Side.A),
    ("ababa", Side.A),
    ("bbb", Side.B),
    ("abbb", Side.B),
    ("ababb", Side.B),
])
def test_best_of_five_outcomes(clock, sequence, expected_winner):
    engine = ScoringEngine(clock=clock)
    session = create_session(clock, target_points=11, best_of_sets=5)

    for set_winner_side in sequence:
        for _ in range(11):
            session = engine.add_point(session, set_winner_side).unwrap()
        session = engine.advance_set(session).unwrap()

    assert engine.is_match_complete(session)
    assert engine.match_winner(session) is expected_winner
    assert len(session.completed_sets) == len(sequence)


# ---------------------------------------------------------
# Value semantics
# ---------------------------------------------------------

def test_operations_never_mutate_input(clock):
    engine = ScoringEngine(clock=clock)
    session = create_session(clock, target_points=11)
    snapshot = session.to_dict()

    engine.add_point(session, "a")
    engine.pause(session)
    engine.undo(session)

    assert session.to_dict() == snapshot


def test_undo_entry_records_prior_state(clock):
    engine = ScoringEngine(clock=clock)
    session = create_session(clock, target_points=11)
    session = engine.add_point(session, "a").unwrap()
    clock.advance(5)

    session = engine.add_point(session, "b").unwrap()
    entry = session.ledger.entries[-1]

    assert entry.prior_current_set == SetScore(1, 0)
    assert entry.set_number == 1
    assert entry.timestamp == clock()


def test_side_parse_accepts_strings():
    assert Side.parse("A") is Side.A
    assert Side.parse("b") is Side.B
    assert Side.parse(Side.B) is Side.B
    assert Side.A.other is Side.B
