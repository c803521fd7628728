"""Event names and payloads published on the engine's event bus."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

SYNC_START = "sync-start"
SYNC_COMPLETE = "sync-complete"
FILE_PINNED = "file-pinned"
FILE_UNPINNED = "file-unpinned"
ERROR = "error"
LOG = "log"
STARTED = "started"
STOPPED = "stopped"

EVENT_NAMES = (SYNC_START, SYNC_COMPLETE, FILE_PINNED, FILE_UNPINNED, ERROR, LOG, STARTED, STOPPED)


@dataclass(frozen=True)
class SyncStartEvent:
    def as_payload(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True)
class SyncCompleteEvent:
    contracts: int
    new_pins: int
    removed_pins: int

    def as_payload(self) -> dict[str, Any]:
        return {
            "contracts": self.contracts,
            "newPins": self.new_pins,
            "removedPins": self.removed_pins,
        }


@dataclass(frozen=True)
class FilePinnedEvent:
    cid: str
    contract_id: str

    def as_payload(self) -> dict[str, Any]:
        return {"cid": self.cid, "contractId": self.contract_id}


@dataclass(frozen=True)
class FileUnpinnedEvent:
    cid: str

    def as_payload(self) -> dict[str, Any]:
        return {"cid": self.cid}


@dataclass(frozen=True)
class ErrorEvent:
    """A failure surfaced to observers.

    Per-CID failures carry the CID, the operation ("pin" or "unpin") and,
    for pins, the originating contract.
    """

    message: str
    cid: str | None = None
    contract_id: str | None = None
    operation: str | None = None

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"message": self.message}
        if self.cid is not None:
            payload["cid"] = self.cid
        if self.contract_id is not None:
            payload["contractId"] = self.contract_id
        if self.operation is not None:
            payload["operation"] = self.operation
        return payload


@dataclass(frozen=True)
class LogEvent:
    level: str
    message: str

    def as_payload(self) -> dict[str, Any]:
        return {"level": self.level, "message": self.message}


@dataclass(frozen=True)
class LifecycleEvent:
    """Emitted as ``started`` / ``stopped``."""

    account: str

    def as_payload(self) -> dict[str, Any]:
        return {"account": self.account}
