from __future__ import annotations

"""
Error taxonomy for the ledger core.

Each subsystem surfaces exactly one of these at the point of failure:
- startup:       ConfigurationError
- identity:      AuthError
- subscription:  SubscriptionError (terminal for that subscription)
- mutation:      ValidationError (local), WriteError (store), MutationInFlightError
"""


class LedgerError(RuntimeError):
    pass


class ConfigurationError(LedgerError):
    """Required connection parameters are missing or malformed."""


class AuthError(LedgerError):
    """Identity handshake failed (or never produced a uid)."""


class SubscriptionError(LedgerError):
    """The change stream failed or was denied."""


class ValidationError(LedgerError, ValueError):
    """Malformed mutation input. Never reaches the store."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class WriteError(LedgerError):
    """The store rejected or could not complete a mutation."""


class MutationInFlightError(LedgerError):
    """A mutation was submitted while another one is still in flight."""
