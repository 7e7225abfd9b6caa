from datetime import datetime, timezone

import pytest

from rally.config import UNDO_HISTORY_LIMIT
from rally.exceptions import EmptyLedgerError
from rally.ledger import UndoLedger
from rally.models import SetScore, UndoActionKind, UndoEntry


T0 = datetime(2025, 9, 23, 18, 0, tzinfo=timezone.utc)


def entry(points_a):
    return UndoEntry(
        timestamp=T0,
        kind=UndoActionKind.POINT_ADDED,
        prior_current_set=SetScore(points_a, 0),
        set_number=1,
    )


def test_empty_ledger_cannot_undo():
    ledger = UndoLedger()

    assert not ledger.can_undo
    assert len(ledger) == 0


def test_pop_empty_raises():
    with pytest.raises(EmptyLedgerError):
        UndoLedger().pop()


def test_pop_returns_most_recent():
    ledger = UndoLedger().push(entry(0)).push(entry(1))

    last, rest = ledger.pop()

    assert last.prior_current_set == SetScore(1, 0)
    assert len(rest) == 1
    assert len(ledger) == 2  # pushed ledger unchanged


def test_default_capacity_is_fifty():
    assert UndoLedger().capacity == UNDO_HISTORY_LIMIT == 50


def test_push_past_capacity_evicts_oldest():
    ledger = UndoLedger()
    for i in range(60):
        ledger = ledger.push(entry(i))

    assert len(ledger) == 50
    assert ledger.entries[0].prior_current_set == SetScore(10, 0)
    assert ledger.entries[-1].prior_current_set == SetScore(59, 0)


def test_small_capacity():
    ledger = UndoLedger(capacity=2).push(entry(0)).push(entry(1)).push(entry(2))

    assert [e.prior_current_set.side_a for e in ledger.entries] == [1, 2]


def test_invalid_capacity():
    with pytest.raises(ValueError):
        UndoLedger(capacity=0)
