"""ContentStore protocol - pin-set operations on the local content store."""

from __future__ import annotations

from typing import Protocol

from pinsync.models.records import PinnedObject, PinResult


class ContentStore(Protocol):
    """The pin-set capability the sync engine drives.

    The engine never reads or writes object bytes, only pin membership.
    """

    async def list_pinned(self) -> list[PinnedObject]:
        """Return everything currently pinned in the store."""
        ...

    async def pin(self, cid: str) -> PinResult:
        """Pin a CID, fetching it from the network if needed."""
        ...

    async def unpin(self, cid: str) -> PinResult:
        """Remove a pin. A CID that is not pinned counts as success."""
        ...

    def is_valid_cid(self, value: str) -> bool:
        """Return True if ``value`` is a well-formed CID."""
        ...
