"""Pin ownership tracker - the CIDs this engine pinned itself."""

from __future__ import annotations


class PinOwnershipTracker:
    """In-memory set of CIDs pinned by this engine.

    Only CIDs in this set may ever be unpinned by the engine; content
    pinned by anything else is left alone. Lives for the process only.
    """

    def __init__(self) -> None:
        self._cids: set[str] = set()

    def mark_pinned(self, cid: str) -> None:
        self._cids.add(cid)

    def mark_unpinned(self, cid: str) -> None:
        self._cids.discard(cid)

    def contains(self, cid: str) -> bool:
        return cid in self._cids

    def all(self) -> frozenset[str]:
        return frozenset(self._cids)

    def __contains__(self, cid: object) -> bool:
        return cid in self._cids

    def __len__(self) -> int:
        return len(self._cids)
