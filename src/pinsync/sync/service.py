"""File sync service - periodic fetch, diff and reconcile cycles."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from datetime import datetime, timezone

from pinsync.errors import ConfigurationError, NotRunningError
from pinsync.events import EventBus
from pinsync.interfaces.history import CycleHistory
from pinsync.interfaces.ledger import LedgerClient
from pinsync.interfaces.store import ContentStore
from pinsync.ledger.client import HttpLedgerClient
from pinsync.models.config import SyncConfig
from pinsync.models.contract import Contract
from pinsync.models.events import (
    ERROR,
    LOG,
    STARTED,
    STOPPED,
    SYNC_COMPLETE,
    SYNC_START,
    ErrorEvent,
    LifecycleEvent,
    LogEvent,
    SyncCompleteEvent,
    SyncStartEvent,
)
from pinsync.models.records import CycleReport, StatusSnapshot, SyncResult, SyncStats
from pinsync.sync.extractor import extract_cids
from pinsync.sync.scheduler import ReconciliationScheduler
from pinsync.sync.tracker import PinOwnershipTracker

log = logging.getLogger(__name__)


class FileSyncService:
    """Keeps the local pin set in line with the account's ledger contracts.

    Each cycle fetches the account's contracts, extracts their CIDs, pins
    what is missing and unpins what this service pinned earlier but is no
    longer owed. Cycles never overlap: a periodic tick that lands while a
    cycle is in flight is skipped, and ``force_sync`` waits its turn.

    Every instance owns its own tracker, statistics and event bus.
    """

    def __init__(
        self,
        config: SyncConfig,
        store: ContentStore | None,
        ledger: LedgerClient | None = None,
        events: EventBus | None = None,
        history: CycleHistory | None = None,
    ) -> None:
        if store is None:
            raise ConfigurationError("a content store is required for file sync")
        config = dataclasses.replace(config)
        config.validate()

        self._config = config
        self._store = store
        self.events = events or EventBus()
        self._ledger = ledger or HttpLedgerClient(config, events=self.events)
        self._history = history
        self._tracker = PinOwnershipTracker()
        self._stats = SyncStats()

        self._running = False
        self._timer_task: asyncio.Task | None = None
        self._cycle_lock = asyncio.Lock()
        self._inflight: asyncio.Future | None = None

    # ── Lifecycle ─────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def ledger(self) -> LedgerClient:
        return self._ledger

    @property
    def config(self) -> SyncConfig:
        return dataclasses.replace(self._config)

    async def start(self) -> None:
        """Run one cycle immediately, then arm the periodic timer.

        The timer is armed even if the first cycle fails; that failure is
        still raised to the caller.
        """
        if self._running:
            return

        self._running = True
        log.info(
            "File sync started for %s (interval=%dms, max_concurrent_pins=%d)",
            self._config.account, self._config.sync_interval_ms,
            self._config.max_concurrent_pins,
        )
        self._log("info", f"File sync started for {self._config.account}")
        try:
            await self.perform_sync()
        finally:
            if self._running:
                self._arm_timer()
        self.events.emit(STARTED, LifecycleEvent(account=self._config.account))

    async def stop(self) -> None:
        """Clear the periodic timer. A cycle already in flight runs to completion."""
        if not self._running:
            return

        self._running = False
        await self._disarm_timer()
        log.info("File sync stopped")
        self._log("info", "File sync stopped")
        self.events.emit(STOPPED, LifecycleEvent(account=self._config.account))

    async def wait_idle(self) -> None:
        """Wait until no cycle is in flight."""
        async with self._cycle_lock:
            pass

    async def force_sync(self) -> SyncResult:
        """Run a cycle now. Raises NotRunningError while stopped."""
        if not self._running:
            raise NotRunningError("file sync service is not running")
        return await self.perform_sync()

    def update_configuration(self, partial: dict | None = None, **options) -> SyncConfig:
        """Apply option changes immediately.

        Accepts the camelCase names (``syncIntervalMs``) or the field
        names (``sync_interval_ms``). A changed interval re-arms the timer
        of a running service.
        """
        changes = SyncConfig.normalize({**(partial or {}), **options})
        updated = dataclasses.replace(self._config, **changes)
        updated.validate()

        interval_changed = updated.sync_interval_ms != self._config.sync_interval_ms
        # mutate in place: the ledger client holds a reference to this config
        for name, value in changes.items():
            setattr(self._config, name, value)
        log.info("Configuration updated: %s", ", ".join(sorted(changes)) or "(nothing)")

        if interval_changed and self._running and self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None
            self._arm_timer()
            log.info("Sync timer re-armed at %dms", self._config.sync_interval_ms)
        return self.config

    # ── Cycle ─────────────────────────────────────────────

    async def perform_sync(self) -> SyncResult:
        """One full fetch -> extract -> reconcile pass.

        Failures are counted, recorded, emitted as ``error`` and raised.
        """
        async with self._cycle_lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> SyncResult:
        started = datetime.now(timezone.utc)
        start_time = time.monotonic()
        self.events.emit(SYNC_START, SyncStartEvent())

        contracts: list[Contract] = []
        desired: dict[str, list[str]] = {}
        try:
            contracts = await self._ledger.fetch_contracts(self._config.account)
            if getattr(self._ledger, "last_fetch_failed", False):
                # an unreachable ledger must not read as "nothing is owed"
                log.warning("Ledger unavailable, leaving pins untouched this cycle")
                result = SyncResult()
            else:
                desired = self.build_desired(contracts)
                scheduler = ReconciliationScheduler(
                    self._store,
                    self._tracker,
                    events=self.events,
                    max_concurrent=self._config.max_concurrent_pins,
                    pin_timeout=self._config.pin_timeout,
                )
                result = await scheduler.reconcile(desired)
        except Exception as exc:
            self._stats.error_count += 1
            self._stats.last_error = str(exc) or type(exc).__name__
            log.error("Sync cycle failed: %s", exc, exc_info=True)
            self.events.emit(ERROR, ErrorEvent(message=f"Sync cycle failed: {self._stats.last_error}"))
            await self._record(CycleReport(
                started_at=started.isoformat(),
                completed_at=datetime.now(timezone.utc).isoformat(),
                contracts=len(contracts),
                desired_cids=sum(len(c) for c in desired.values()),
                errors=1,
                duration_ms=int((time.monotonic() - start_time) * 1000),
                error=self._stats.last_error,
            ))
            raise

        completed = datetime.now(timezone.utc)
        self._stats.sync_count += 1
        self._stats.total_contracts = len(contracts)
        self._stats.total_pinned += result.pinned
        self._stats.total_unpinned += result.unpinned
        self._stats.operation_errors += result.errors
        self._stats.last_sync = completed
        self._stats.last_result = result
        self._stats.tracked_pins = len(self._tracker)

        self.events.emit(SYNC_COMPLETE, SyncCompleteEvent(
            contracts=len(contracts),
            new_pins=result.pinned,
            removed_pins=result.unpinned,
        ))
        await self._record(CycleReport(
            started_at=started.isoformat(),
            completed_at=completed.isoformat(),
            contracts=len(contracts),
            desired_cids=sum(len(c) for c in desired.values()),
            pinned=result.pinned,
            unpinned=result.unpinned,
            errors=result.errors,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        ))
        return result

    def build_desired(self, contracts: list[Contract]) -> dict[str, list[str]]:
        """Map each contract ID to its CIDs, preserving ledger order."""
        desired: dict[str, list[str]] = {}
        for contract in contracts:
            cids = extract_cids(contract, self._store.is_valid_cid)
            bucket = desired.setdefault(contract.id or "unknown", [])
            bucket.extend(cid for cid in cids if cid not in bucket)
        return desired

    async def _record(self, report: CycleReport) -> None:
        if self._history is None:
            return
        try:
            await self._history.save_cycle_report(report)
        except Exception as exc:
            log.warning("Could not record sync cycle: %s", exc)

    # ── Timer ─────────────────────────────────────────────

    def _arm_timer(self) -> None:
        self._timer_task = asyncio.create_task(self._timer_loop(self._config.sync_interval))

    async def _disarm_timer(self) -> None:
        if self._timer_task is None:
            return
        task, self._timer_task = self._timer_task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _timer_loop(self, interval: float) -> None:
        """Fire a cycle every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            if self._cycle_lock.locked():
                log.info("Previous sync still running, skipping this tick")
                self._log("warning", "Previous sync still running, skipping this tick")
                continue
            # shielded so stop() never interrupts a cycle mid-flight
            self._inflight = asyncio.ensure_future(self._periodic_cycle())
            await asyncio.shield(self._inflight)

    async def _periodic_cycle(self) -> None:
        try:
            await self.perform_sync()
        except Exception:
            # already counted, logged and emitted by the cycle itself
            pass

    def _log(self, level: str, message: str) -> None:
        self.events.emit(LOG, LogEvent(level=level, message=message))

    # ── Inspection ────────────────────────────────────────

    @property
    def stats(self) -> SyncStats:
        snapshot = dataclasses.replace(self._stats)
        snapshot.tracked_pins = len(self._tracker)
        return snapshot

    def pinned_cids(self) -> list[str]:
        return sorted(self._tracker.all())

    def is_pinned_by_service(self, cid: str) -> bool:
        return self._tracker.contains(cid)

    def get_status(self) -> StatusSnapshot:
        return StatusSnapshot(
            running=self._running,
            account=self._config.account,
            ledger_url=self._config.ledger_url,
            sync_interval_ms=self._config.sync_interval_ms,
            tracked_pins=len(self._tracker),
            last_sync=self._stats.last_sync,
            stats=self.stats,
        )
