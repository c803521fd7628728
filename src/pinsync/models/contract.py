"""Ledger contract model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Contract:
    """A storage obligation returned by the ledger.

    Only the fields the sync engine reads are modelled; everything else
    in the ledger record is kept in ``raw``.
    """

    id: str
    owner: str = ""
    expires: str | int | None = None
    cid: str | None = None
    files: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    raw: dict[str, Any] = field(default_factory=dict, hash=False, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Contract:
        files: list[str] = []
        raw_files = data.get("files")
        for entry in raw_files if isinstance(raw_files, list) else ():
            if isinstance(entry, dict):
                value = entry.get("cid")
            else:
                value = entry
            if isinstance(value, str) and value:
                files.append(value)

        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}

        cid = data.get("cid")
        return cls(
            id=str(data.get("id") or ""),
            owner=str(data.get("owner") or data.get("account") or data.get("t") or ""),
            expires=data.get("expires", data.get("e")),
            cid=cid if isinstance(cid, str) and cid else None,
            files=tuple(files),
            metadata=metadata,
            raw=data,
        )
