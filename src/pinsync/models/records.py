"""Record types for store operations, sync results and statistics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class PinResult:
    """Result of a pin or unpin call against the content store."""

    success: bool
    cid: str
    error: str | None = None
    duration_ms: int = 0


@dataclass(frozen=True)
class PinnedObject:
    """One entry of the store's pin listing."""

    cid: str
    type: str = "recursive"


@dataclass(frozen=True)
class PinTask:
    """A CID waiting to be pinned, with the contract that requires it."""

    cid: str
    contract_id: str


@dataclass
class SyncResult:
    """Outcome of one reconciliation pass."""

    pinned: int = 0
    unpinned: int = 0
    errors: int = 0


@dataclass
class SyncStats:
    """Cumulative counters maintained by the sync service."""

    sync_count: int = 0
    total_contracts: int = 0  # contracts seen by the last cycle
    total_pinned: int = 0
    total_unpinned: int = 0
    operation_errors: int = 0  # per-CID pin/unpin failures
    error_count: int = 0  # cycle-level failures
    last_error: str | None = None
    last_sync: datetime | None = None
    last_result: SyncResult | None = None
    tracked_pins: int = 0


@dataclass
class CycleReport:
    """One sync cycle as recorded in the history store."""

    cycle_id: int = 0
    started_at: str = ""
    completed_at: str = ""
    contracts: int = 0
    desired_cids: int = 0
    pinned: int = 0
    unpinned: int = 0
    errors: int = 0
    duration_ms: int = 0
    error: str | None = None  # set when the cycle itself failed


@dataclass
class StatusSnapshot:
    """Service status for CLI and UI consumers."""

    running: bool
    account: str
    ledger_url: str
    sync_interval_ms: int
    tracked_pins: int
    last_sync: datetime | None
    stats: SyncStats = field(default_factory=SyncStats)
