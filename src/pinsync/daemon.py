"""Main daemon - wires the sync service to Kubo, the ledger and history."""

from __future__ import annotations

import asyncio
import logging
import signal

from pinsync.events import EventBus
from pinsync.interfaces.ledger import LedgerClient
from pinsync.interfaces.store import ContentStore
from pinsync.ipfs.store import KuboContentStore
from pinsync.models.config import DaemonConfig
from pinsync.models.events import ERROR, FILE_PINNED, FILE_UNPINNED, SYNC_COMPLETE
from pinsync.storage.sqlite import SQLiteHistoryStore
from pinsync.sync.service import FileSyncService

log = logging.getLogger(__name__)


class SyncDaemon:
    """Storage-node sync daemon.

    Runs the file sync service against a local Kubo node until stopped,
    journaling every cycle to SQLite.
    """

    def __init__(
        self,
        cfg: DaemonConfig,
        store: ContentStore | None = None,
        ledger: LedgerClient | None = None,
    ) -> None:
        self._cfg = cfg
        self._stop_event = asyncio.Event()

        # Core components
        self.events = EventBus()
        self.history = SQLiteHistoryStore(cfg.db_path)
        self.store = store or KuboContentStore(
            cfg.kubo_rpc_url, cfg.sync.pin_timeout, cfg.request_timeout,
        )
        self.service = FileSyncService(
            cfg.sync,
            self.store,
            ledger=ledger,
            events=self.events,
            history=self.history,
        )

        self.events.subscribe(SYNC_COMPLETE, self._on_sync_complete)
        self.events.subscribe(FILE_PINNED, lambda e: log.debug("file-pinned %s", e.as_payload()))
        self.events.subscribe(FILE_UNPINNED, lambda e: log.debug("file-unpinned %s", e.as_payload()))
        self.events.subscribe(ERROR, lambda e: log.debug("error %s", e.as_payload()))

    async def start(self) -> None:
        """Initialize components and run until stop() is called."""
        log.info("Starting pinsync daemon")
        log.info("  Account: %s", self._cfg.sync.account)
        log.info("  Ledger: %s", self._cfg.sync.ledger_url)
        log.info("  Kubo: %s", self._cfg.kubo_rpc_url)
        log.info("  Interval: %dms", self._cfg.sync.sync_interval_ms)

        await self.history.initialize()
        try:
            try:
                await self.service.start()
            except Exception as exc:
                # the timer is armed regardless; later cycles may recover
                log.error("Initial sync failed: %s", exc)
            await self._stop_event.wait()
        finally:
            await self.service.stop()
            await self.service.wait_idle()
            await self.history.close()
            log.info("Daemon shut down cleanly")

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._stop_event.set()

    def _on_sync_complete(self, event) -> None:
        payload = event.as_payload()
        log.info(
            "Sync complete: %d contracts, %d new pins, %d removed",
            payload["contracts"], payload["newPins"], payload["removedPins"],
        )


async def run_daemon(cfg: DaemonConfig) -> None:
    """Entry point for running the daemon."""
    daemon = SyncDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
