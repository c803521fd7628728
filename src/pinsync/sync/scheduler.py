"""Reconciliation scheduler - drives the store's pin set toward the desired set."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable, Mapping, Sequence

from pinsync.events import EventBus
from pinsync.interfaces.store import ContentStore
from pinsync.models.events import (
    ERROR,
    FILE_PINNED,
    FILE_UNPINNED,
    ErrorEvent,
    FilePinnedEvent,
    FileUnpinnedEvent,
)
from pinsync.models.records import PinResult, PinTask, SyncResult
from pinsync.sync.tracker import PinOwnershipTracker

log = logging.getLogger(__name__)


def compute_deltas(
    desired: Iterable[str],
    store_pinned: Iterable[str],
    tracked: Iterable[str],
) -> tuple[list[str], list[str]]:
    """Split the work of one pass into (to_pin, to_unpin).

    ``to_pin`` keeps the order of ``desired``. ``to_unpin`` only ever
    contains tracked CIDs, sorted for a stable unpin order.
    """
    desired_order = list(dict.fromkeys(desired))
    desired_set = set(desired_order)
    pinned = set(store_pinned)
    to_pin = [cid for cid in desired_order if cid not in pinned]
    to_unpin = sorted(cid for cid in set(tracked) if cid not in desired_set)
    return to_pin, to_unpin


def interleave(groups: Mapping[str, Sequence[str]]) -> list[PinTask]:
    """Scatter-shot ordering: take index 0 of every group, then index 1, ...

    Keeps one large contract from occupying every slot while the others
    wait at the tail of the queue.
    """
    ordered: list[PinTask] = []
    longest = max((len(cids) for cids in groups.values()), default=0)
    for i in range(longest):
        for contract_id, cids in groups.items():
            if i < len(cids):
                ordered.append(PinTask(cid=cids[i], contract_id=contract_id))
    return ordered


class ReconciliationScheduler:
    """Pins new CIDs with bounded concurrency, then unpins stale ones.

    A pass:
    1. Reads the store's pin listing and diffs it against the desired set
       and the ownership tracker
    2. Orders the pins by interleaving contracts
    3. Admits pin tasks while fewer than ``max_concurrent`` are in flight
    4. After every pin has settled, unpins tracked CIDs that are no
       longer desired, one at a time

    One CID's failure is counted and reported but never stops the others.
    """

    def __init__(
        self,
        store: ContentStore,
        tracker: PinOwnershipTracker,
        events: EventBus | None = None,
        max_concurrent: int = 50,
        pin_timeout: float | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
        self._store = store
        self._tracker = tracker
        self._events = events or EventBus()
        self._max_concurrent = max_concurrent
        self._pin_timeout = pin_timeout or None

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    async def reconcile(self, desired: Mapping[str, Sequence[str]]) -> SyncResult:
        """Run one pass. ``desired`` maps contract ID to its CIDs, in ledger order.

        A CID named by several contracts belongs to the first one.
        """
        owners: dict[str, str] = {}
        for contract_id, cids in desired.items():
            for cid in cids:
                owners.setdefault(cid, contract_id)

        listing = await self._store.list_pinned()
        to_pin, to_unpin = compute_deltas(
            owners, (p.cid for p in listing), self._tracker.all(),
        )

        groups: dict[str, list[str]] = {}
        for cid in to_pin:
            groups.setdefault(owners[cid], []).append(cid)

        log.info(
            "Reconciling: %d desired, %d to pin across %d contracts, %d to unpin",
            len(owners), len(to_pin), len(groups), len(to_unpin),
        )

        result = SyncResult()
        start = time.monotonic()
        await self._pin_all(interleave(groups), result)
        await self._unpin_all(to_unpin, result)
        duration = int((time.monotonic() - start) * 1000)

        log.info(
            "Reconcile complete: %d pinned, %d unpinned, %d errors in %dms",
            result.pinned, result.unpinned, result.errors, duration,
        )
        return result

    # ── Pin phase ─────────────────────────────────────────

    async def _pin_all(self, tasks: list[PinTask], result: SyncResult) -> None:
        semaphore = asyncio.Semaphore(self._max_concurrent)
        in_flight: set[asyncio.Task] = set()

        for task in tasks:
            # Blocks while max_concurrent pins are outstanding
            await semaphore.acquire()
            t = asyncio.create_task(self._pin_one(task, result, semaphore))
            in_flight.add(t)
            t.add_done_callback(in_flight.discard)

        if in_flight:
            await asyncio.gather(*in_flight)

    async def _pin_one(
        self, task: PinTask, result: SyncResult, semaphore: asyncio.Semaphore,
    ) -> None:
        try:
            outcome = await self._call(self._store.pin, task.cid)
        except Exception as exc:
            outcome = PinResult(success=False, cid=task.cid, error=self._describe(exc))
        finally:
            semaphore.release()

        if outcome.success:
            self._tracker.mark_pinned(task.cid)
            result.pinned += 1
            log.debug("Pinned %s for contract %s", task.cid, task.contract_id)
            self._events.emit(FILE_PINNED, FilePinnedEvent(cid=task.cid, contract_id=task.contract_id))
        else:
            result.errors += 1
            log.warning("Failed to pin CID %s: %s", task.cid, outcome.error)
            self._events.emit(ERROR, ErrorEvent(
                message=f"Failed to pin CID {task.cid}: {outcome.error}",
                cid=task.cid,
                contract_id=task.contract_id,
                operation="pin",
            ))

    # ── Unpin phase ───────────────────────────────────────

    async def _unpin_all(self, cids: list[str], result: SyncResult) -> None:
        for cid in cids:
            try:
                outcome = await self._call(self._store.unpin, cid)
            except Exception as exc:
                outcome = PinResult(success=False, cid=cid, error=self._describe(exc))

            if outcome.success:
                self._tracker.mark_unpinned(cid)
                result.unpinned += 1
                log.debug("Unpinned %s", cid)
                self._events.emit(FILE_UNPINNED, FileUnpinnedEvent(cid=cid))
            else:
                # stays tracked, retried next cycle
                result.errors += 1
                log.warning("Failed to unpin CID %s: %s", cid, outcome.error)
                self._events.emit(ERROR, ErrorEvent(
                    message=f"Failed to unpin CID {cid}: {outcome.error}",
                    cid=cid,
                    operation="unpin",
                ))

    # ── Helpers ───────────────────────────────────────────

    async def _call(self, op: Callable[[str], Awaitable[PinResult]], cid: str) -> PinResult:
        if self._pin_timeout is None:
            return await op(cid)
        return await asyncio.wait_for(op(cid), self._pin_timeout)

    def _describe(self, exc: Exception) -> str:
        if isinstance(exc, asyncio.TimeoutError):
            return f"timed out after {self._pin_timeout}s"
        return str(exc) or type(exc).__name__
