"""Error types shared between services and routers."""

from __future__ import annotations


class NotFoundError(LookupError):
    """Raised when a requested entity does not exist for the current user."""


class PlaylistValidationError(ValueError):
    """Raised when an import payload cannot be interpreted as a playlist."""


class UpstreamUnavailableError(RuntimeError):
    """Raised when the YouTube Data API or the suggestion backend cannot be reached."""


class QuotaExhaustedError(RuntimeError):
    """Raised by metered API calls when the quota ledger refuses a reservation."""

    def __init__(self, cost: int, remaining: int) -> None:
        self.cost = cost
        self.remaining = remaining
        super().__init__(f"Quota exhausted: need {cost} units, {remaining} remaining")
