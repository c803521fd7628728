"""LedgerClient protocol - source of truth for storage obligations."""

from __future__ import annotations

from typing import Protocol

from pinsync.models.contract import Contract


class LedgerClient(Protocol):
    """Fetches the contracts an account is obligated to store.

    ``last_fetch_failed`` tells an empty ledger apart from a fetch that
    gave up: both return ``[]``, only the latter sets the flag.
    """

    last_fetch_failed: bool

    async def fetch_contracts(self, account: str) -> list[Contract]:
        """Return the account's current contracts; an empty list on failure."""
        ...
