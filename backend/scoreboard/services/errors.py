class ScoreboardError(Exception):
    """Base class for failures reported back to the operator."""


class StoreError(ScoreboardError):
    """A database call failed; the transaction was rolled back."""


class InvalidTransition(ScoreboardError):
    """A lifecycle operation was requested from the wrong state."""


class TeamNotFound(ScoreboardError, LookupError):
    pass


class SessionNotFound(ScoreboardError, LookupError):
    pass
