"""
Exception types used across tagmigrate.

Per-resource skips and failures are reported as outcomes, not exceptions.
The classes here cover the conditions that stop a run.
"""


class TagMigrateError(Exception):
    """Base class for tagmigrate errors."""


class SetupError(TagMigrateError):
    """Raised before any mutation when the run cannot start (no session, bad input)."""


class LedgerError(SetupError):
    """Raised when a backup ledger is missing, unreadable or has the wrong columns."""


class TransientServiceError(TagMigrateError):
    """Raised by providers when a query call fails and may succeed on retry."""


class DiscoveryError(TagMigrateError):
    """Raised when a discovery query still fails after all retry attempts."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts
