"""Data models for the pinsync engine."""

from pinsync.models.config import DaemonConfig, SyncConfig
from pinsync.models.contract import Contract
from pinsync.models.events import (
    ErrorEvent,
    FilePinnedEvent,
    FileUnpinnedEvent,
    LifecycleEvent,
    LogEvent,
    SyncCompleteEvent,
    SyncStartEvent,
)
from pinsync.models.records import (
    CycleReport,
    PinnedObject,
    PinResult,
    PinTask,
    StatusSnapshot,
    SyncResult,
    SyncStats,
)

__all__ = [
    "DaemonConfig", "SyncConfig",
    "Contract",
    "ErrorEvent", "FilePinnedEvent", "FileUnpinnedEvent", "LifecycleEvent",
    "LogEvent", "SyncCompleteEvent", "SyncStartEvent",
    "CycleReport", "PinnedObject", "PinResult", "PinTask",
    "StatusSnapshot", "SyncResult", "SyncStats",
]
