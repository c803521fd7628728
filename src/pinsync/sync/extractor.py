"""CID extraction - every content identifier a contract obliges us to hold."""

from __future__ import annotations

from typing import Callable

from pinsync.models.contract import Contract

CIDValidator = Callable[[str], bool]


def extract_cids(contract: Contract, is_valid_cid: CIDValidator) -> list[str]:
    """Return the contract's CIDs, deduplicated, in first-seen order.

    Sources, in order: the primary CID, the file list, the metadata
    ``thumbnails`` list, then any string metadata value that is itself a
    valid CID. Each candidate must pass ``is_valid_cid``.
    """
    cids: dict[str, None] = {}

    def _add(value: object) -> None:
        if isinstance(value, str) and value and is_valid_cid(value):
            cids.setdefault(value, None)

    _add(contract.cid)

    for cid in contract.files:
        _add(cid)

    metadata = contract.metadata
    thumbnails = metadata.get("thumbnails")
    if isinstance(thumbnails, list):
        for cid in thumbnails:
            _add(cid)

    for value in metadata.values():
        if isinstance(value, str):
            _add(value)

    return list(cids)
