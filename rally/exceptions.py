class ScoringError(Exception):
    """
    Base class for expected, user-triggerable scoring conditions.

    The engine never raises these. It hands them back inside an
    OperationResult so the caller can treat them as UI no-ops.
    """
    pass


class MatchAlreadyCompleted(ScoringError):
    pass


class MatchPaused(ScoringError):
    pass


class NoPointsToRemove(ScoringError):
    pass


class SetNotYetWon(ScoringError):
    pass


class SetAlreadyWon(ScoringError):
    pass


class NothingToUndo(ScoringError):
    pass


class UndeterminedResult(ScoringError):
    pass


class EmptyLedgerError(Exception):
    pass


class StorageError(Exception):
    pass


class SessionClosedError(RuntimeError):
    pass
