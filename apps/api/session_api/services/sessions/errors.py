from __future__ import annotations


class SessionTicketError(Exception):
    """Base class for errors surfaced by session ticket allocation."""


class ValidationError(SessionTicketError):
    """Caller supplied a missing, malformed or non-future expiry."""


class AllocationExhaustedError(SessionTicketError):
    """Every attempt collided with a live code; retry the whole call later."""

    def __init__(self, attempts: int) -> None:
        super().__init__("could not allocate code, try again")
        self.attempts = attempts


class StoreUnavailableError(SessionTicketError):
    """The key-value store could not be reached or refused the operation."""
