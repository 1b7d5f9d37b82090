"""
Exceptions raised by the Rheinhessen package.

The pure engine functions report rejected actions as return values; these
exceptions are for callers that drive a match and cannot continue.
"""


class RheinhessenError(Exception):
    """Base class for all errors raised by this package."""


class InvalidActionError(RheinhessenError, ValueError):
    """An action cannot be carried out in the current match state."""

    def __init__(self, message: str, player_id: int = -1):
        super().__init__(message)
        self.player_id = player_id
