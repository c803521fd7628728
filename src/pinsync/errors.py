"""Exception types raised by the sync engine."""

from __future__ import annotations


class PinSyncError(Exception):
    """Base class for pinsync errors."""


class ConfigurationError(PinSyncError, ValueError):
    """The engine cannot be built or reconfigured with the given options."""


class NotRunningError(PinSyncError, RuntimeError):
    """A sync was requested while the service is stopped."""


class LedgerError(PinSyncError):
    """The ledger answered with a non-success status or an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
