"""
Error taxonomy shared by the state machines, the service layer and the web app.

Every error carries a short human-readable message and the HTTP status the
web layer answers with. Validation errors are raised before any mutation,
so a raised error always means "nothing was persisted".
"""

from __future__ import annotations


class UnfairChessError(Exception):
    """Base class for every error surfaced to API callers."""

    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFound(UnfairChessError):
    status_code = 404


class IllegalMove(UnfairChessError):
    """Rejected by strict legality or by the king-safety invariant."""


class OutOfTurn(UnfairChessError):
    pass


class GameAlreadyOver(UnfairChessError):
    pass


class WrongPhase(UnfairChessError):
    """Action does not fit the current duel phase (RPS vs. playing)."""


class InvalidRequest(UnfairChessError):
    pass


class NotAParticipant(UnfairChessError):
    status_code = 403


class AiProviderFailure(UnfairChessError):
    """Every AI strategy, including the random fallback, produced nothing usable."""

    status_code = 503
