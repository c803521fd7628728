"""Sync engine - CID extraction, ownership tracking, reconciliation."""

from pinsync.sync.extractor import extract_cids
from pinsync.sync.scheduler import ReconciliationScheduler, compute_deltas, interleave
from pinsync.sync.service import FileSyncService
from pinsync.sync.tracker import PinOwnershipTracker

__all__ = [
    "FileSyncService",
    "PinOwnershipTracker",
    "ReconciliationScheduler",
    "compute_deltas",
    "extract_cids",
    "interleave",
]
