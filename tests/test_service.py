"""FileSyncService: cycles, lifecycle, timer, events, configuration."""

from __future__ import annotations

import asyncio

import pytest

from pinsync.errors import ConfigurationError, NotRunningError
from pinsync.models.contract import Contract
from pinsync.sync.service import FileSyncService

from tests.conftest import TEST_ACCOUNT, make_test_config
from tests.factories import make_contract
from tests.mocks import EventRecorder, MockContentStore, MockLedger


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
async def make_service():
    """Factory for services with custom config; all are stopped at teardown."""
    created: list[FileSyncService] = []

    def _make(store=None, ledger=None, history=None, **overrides):
        svc = FileSyncService(
            make_test_config(**overrides),
            store if store is not None else MockContentStore(),
            ledger=ledger if ledger is not None else MockLedger(),
            history=history,
        )
        created.append(svc)
        return svc

    yield _make
    for svc in created:
        await svc.stop()
        await svc.wait_idle()


# ── Construction ──────────────────────────────────────────────────


def test_requires_store():
    with pytest.raises(ConfigurationError):
        FileSyncService(make_test_config(), None, ledger=MockLedger())


def test_requires_account():
    with pytest.raises(ConfigurationError):
        FileSyncService(make_test_config(account=""), MockContentStore(), ledger=MockLedger())


def test_rejects_invalid_options():
    with pytest.raises(ConfigurationError):
        FileSyncService(
            make_test_config(max_concurrent_pins=0), MockContentStore(), ledger=MockLedger(),
        )


def test_config_is_copied():
    config = make_test_config()
    svc = FileSyncService(config, MockContentStore(), ledger=MockLedger())
    config.max_concurrent_pins = 1
    assert svc.config.max_concurrent_pins == 50


# ── One cycle ─────────────────────────────────────────────────────


async def test_first_cycle_pins_everything(service, mock_store, mock_ledger, recorder):
    mock_ledger.contracts = [
        make_contract(id="c1", cid="QmA", files=["QmB"]),
        make_contract(id="c2", cid="QmC", metadata={"thumbnails": ["QmD"]}),
    ]

    result = await service.perform_sync()

    assert result.pinned == 4
    assert result.unpinned == 0
    assert result.errors == 0
    assert mock_store.pinned == {"QmA", "QmB", "QmC", "QmD"}
    assert service.pinned_cids() == ["QmA", "QmB", "QmC", "QmD"]
    assert mock_ledger.calls == [TEST_ACCOUNT]

    names = recorder.names()
    assert names[0] == "sync-start"
    assert names[-1] == "sync-complete"
    assert names.count("file-pinned") == 4
    assert recorder.payloads("sync-complete") == [
        {"contracts": 2, "newPins": 4, "removedPins": 0},
    ]


async def test_second_cycle_is_idempotent(service, mock_store, mock_ledger):
    mock_ledger.contracts = [make_contract(id="c1", cid="QmA", files=["QmB"])]

    await service.perform_sync()
    mock_store.pin_calls.clear()
    result = await service.perform_sync()

    assert result.pinned == 0
    assert result.unpinned == 0
    assert mock_store.pin_calls == []
    assert mock_store.unpin_calls == []


async def test_expired_contract_content_is_unpinned(service, mock_store, mock_ledger, recorder):
    mock_ledger.contracts = [
        make_contract(id="c1", cid="QmA"),
        make_contract(id="c2", cid="QmB", files=["QmC"]),
    ]
    await service.perform_sync()

    mock_ledger.contracts = [make_contract(id="c1", cid="QmA")]
    result = await service.perform_sync()

    assert result.unpinned == 2
    assert sorted(mock_store.unpin_calls) == ["QmB", "QmC"]
    assert mock_store.pinned == {"QmA"}
    assert service.pinned_cids() == ["QmA"]
    assert recorder.payloads("sync-complete")[-1] == {
        "contracts": 1, "newPins": 0, "removedPins": 2,
    }


async def test_content_pinned_elsewhere_is_never_unpinned(service, mock_store, mock_ledger):
    mock_store.pinned = {"QmForeign", "QmShared"}
    mock_ledger.contracts = [make_contract(id="c1", cid="QmShared")]

    await service.perform_sync()
    assert not service.is_pinned_by_service("QmShared")

    mock_ledger.contracts = []
    await service.perform_sync()

    assert mock_store.unpin_calls == []
    assert mock_store.pinned == {"QmForeign", "QmShared"}


async def test_empty_ledger_unpins_everything_owned(service, mock_store, mock_ledger):
    mock_ledger.contracts = [make_contract(id="c1", cid="QmA", files=["QmB"])]
    await service.perform_sync()

    mock_ledger.contracts = []
    result = await service.perform_sync()

    assert result.unpinned == 2
    assert service.pinned_cids() == []


async def test_unreachable_ledger_leaves_pins_alone(service, mock_store, mock_ledger):
    mock_ledger.contracts = [make_contract(id="c1", cid="QmA")]
    await service.perform_sync()

    mock_ledger.fail = True
    result = await service.perform_sync()

    assert result.pinned == result.unpinned == result.errors == 0
    assert mock_store.unpin_calls == []
    assert service.is_pinned_by_service("QmA")


async def test_contract_without_id_is_attributed_to_unknown(service, mock_ledger, recorder):
    mock_ledger.contracts = [make_contract(id="", cid="QmA")]

    await service.perform_sync()

    assert recorder.payloads("file-pinned") == [{"cid": "QmA", "contractId": "unknown"}]


async def test_contract_with_null_id_is_attributed_to_unknown(service, mock_ledger, recorder):
    mock_ledger.contracts = [Contract.from_dict({"id": None, "cid": "QmA"})]

    await service.perform_sync()

    assert recorder.payloads("file-pinned") == [{"cid": "QmA", "contractId": "unknown"}]


async def test_per_cid_failures_do_not_fail_the_cycle(service, mock_store, mock_ledger, recorder):
    mock_store.fail_pins = {"QmB"}
    mock_ledger.contracts = [make_contract(id="c1", cid="QmA", files=["QmB", "QmC"])]

    result = await service.perform_sync()

    assert result.pinned == 2
    assert result.errors == 1
    assert service.stats.operation_errors == 1
    assert service.stats.error_count == 0
    assert recorder.payloads("error")[0]["cid"] == "QmB"

    # retried on the next cycle
    mock_store.fail_pins = set()
    result = await service.perform_sync()
    assert result.pinned == 1
    assert service.is_pinned_by_service("QmB")


async def test_cycle_failure_is_counted_emitted_and_raised(service, mock_store, mock_ledger, recorder):
    mock_ledger.contracts = [make_contract(id="c1", cid="QmA")]
    mock_store.list_error = RuntimeError("kubo is down")

    with pytest.raises(RuntimeError, match="kubo is down"):
        await service.perform_sync()

    stats = service.stats
    assert stats.error_count == 1
    assert stats.last_error == "kubo is down"
    assert stats.sync_count == 0
    assert recorder.payloads("error") == [{"message": "Sync cycle failed: kubo is down"}]
    assert "sync-complete" not in recorder.names()


async def test_pin_concurrency_follows_config(make_service):
    store = MockContentStore(delay=0.01)
    ledger = MockLedger([make_contract(id=f"c{i}", cid=f"Qm{i}") for i in range(8)])
    svc = make_service(store=store, ledger=ledger, max_concurrent_pins=2)

    await svc.perform_sync()

    assert store.max_in_flight == 2
    assert len(store.pinned) == 8


# ── Statistics and inspection ─────────────────────────────────────


async def test_stats_accumulate(service, mock_ledger):
    mock_ledger.contracts = [make_contract(id="c1", cid="QmA"), make_contract(id="c2", cid="QmB")]
    await service.perform_sync()
    mock_ledger.contracts = [make_contract(id="c1", cid="QmA")]
    await service.perform_sync()

    stats = service.stats
    assert stats.sync_count == 2
    assert stats.total_contracts == 1
    assert stats.total_pinned == 2
    assert stats.total_unpinned == 1
    assert stats.tracked_pins == 1
    assert stats.last_sync is not None
    assert stats.last_result.unpinned == 1


async def test_stats_is_a_copy(service, mock_ledger):
    snapshot = service.stats
    snapshot.sync_count = 99
    assert service.stats.sync_count == 0


async def test_get_status(service, mock_ledger):
    mock_ledger.contracts = [make_contract(id="c1", cid="QmA")]
    await service.start()

    status = service.get_status()

    assert status.running
    assert status.account == TEST_ACCOUNT
    assert status.sync_interval_ms == 60_000
    assert status.tracked_pins == 1
    assert status.last_sync is not None
    assert status.stats.sync_count == 1


# ── Lifecycle ─────────────────────────────────────────────────────


async def test_start_runs_a_cycle_immediately(service, mock_ledger, recorder):
    mock_ledger.contracts = [make_contract(id="c1", cid="QmA")]

    await service.start()

    assert service.is_running
    assert mock_ledger.calls == [TEST_ACCOUNT]
    assert service.is_pinned_by_service("QmA")
    assert recorder.payloads("started") == [{"account": TEST_ACCOUNT}]


async def test_start_and_stop_are_idempotent(service, mock_ledger, recorder):
    await service.start()
    await service.start()
    assert len(mock_ledger.calls) == 1

    await service.stop()
    await service.stop()
    assert not service.is_running
    assert len(recorder.payloads("started")) == 1
    assert len(recorder.payloads("stopped")) == 1


async def test_force_sync_requires_running(service):
    with pytest.raises(NotRunningError):
        await service.force_sync()

    await service.start()
    result = await service.force_sync()
    assert result.errors == 0

    await service.stop()
    with pytest.raises(NotRunningError):
        await service.force_sync()


async def test_lifecycle_log_events(service, recorder):
    await service.start()
    await service.stop()

    messages = [p["message"] for p in recorder.payloads("log")]
    assert any("File sync started" in m for m in messages)
    assert "File sync stopped" in messages


async def test_restart_after_stop(service, mock_ledger):
    await service.start()
    await service.stop()
    await service.start()

    assert service.is_running
    assert len(mock_ledger.calls) == 2


# ── Periodic timer ────────────────────────────────────────────────


async def test_timer_runs_cycles(make_service):
    ledger = MockLedger()
    svc = make_service(ledger=ledger, sync_interval_ms=20)

    await svc.start()
    await wait_until(lambda: len(ledger.calls) >= 3)

    await svc.stop()
    await svc.wait_idle()
    calls = len(ledger.calls)
    await asyncio.sleep(0.06)
    assert len(ledger.calls) == calls


async def test_timer_survives_failing_cycles(make_service):
    ledger = MockLedger()
    ledger.error = RuntimeError("ledger exploded")
    svc = make_service(ledger=ledger, sync_interval_ms=20)

    with pytest.raises(RuntimeError):
        await svc.start()

    # armed even though the first cycle failed
    assert svc.is_running
    await wait_until(lambda: svc.stats.error_count >= 3)

    ledger.error = None
    await wait_until(lambda: svc.stats.sync_count >= 1)


async def test_update_interval_rearms_timer(service, mock_ledger):
    await service.start()
    assert len(mock_ledger.calls) == 1

    service.update_configuration(syncIntervalMs=20)

    await wait_until(lambda: len(mock_ledger.calls) >= 3)


async def test_tick_during_cycle_is_skipped(make_service):
    store = MockContentStore(delay=0.15)
    ledger = MockLedger()
    svc = make_service(store=store, ledger=ledger, sync_interval_ms=20)
    recorder = EventRecorder(svc.events)

    await svc.start()
    ledger.contracts = [make_contract(id="c1", cid="QmSlow")]
    await svc.force_sync()

    warnings = [p for p in recorder.payloads("log") if p["level"] == "warning"]
    assert any("skipping this tick" in p["message"] for p in warnings)
    assert store.pin_calls == ["QmSlow"]


async def test_stop_lets_inflight_cycle_finish(make_service):
    store = MockContentStore(delay=0.1)
    ledger = MockLedger()
    svc = make_service(store=store, ledger=ledger, sync_interval_ms=20)
    recorder = EventRecorder(svc.events)

    await svc.start()
    ledger.contracts = [make_contract(id="c1", cid="QmA", files=["QmB"])]
    await wait_until(lambda: store.in_flight > 0)

    await svc.stop()
    await svc.wait_idle()

    assert store.pinned == {"QmA", "QmB"}
    assert svc.pinned_cids() == ["QmA", "QmB"]
    assert recorder.payloads("sync-complete")[-1]["newPins"] == 2


async def test_cycles_never_overlap(make_service):
    store = MockContentStore(delay=0.02)
    ledger = MockLedger([make_contract(id="c1", cid="QmA", files=["QmB", "QmC"])])
    svc = make_service(store=store, ledger=ledger)

    first, second = await asyncio.gather(svc.perform_sync(), svc.perform_sync())

    assert first.pinned == 3
    assert second.pinned == 0
    assert sorted(store.pin_calls) == ["QmA", "QmB", "QmC"]


# ── Configuration updates ─────────────────────────────────────────


async def test_update_configuration_accepts_both_spellings(service):
    updated = service.update_configuration({"maxConcurrentPins": 5}, max_retries=7)

    assert updated.max_concurrent_pins == 5
    assert updated.max_retries == 7
    assert service.config.max_concurrent_pins == 5


async def test_update_configuration_applies_to_next_cycle(service, mock_store, mock_ledger):
    mock_store.delay = 0.01
    mock_ledger.contracts = [make_contract(id=f"c{i}", cid=f"Qm{i}") for i in range(6)]

    service.update_configuration(maxConcurrentPins=1)
    await service.perform_sync()

    assert mock_store.max_in_flight == 1


async def test_update_configuration_rejects_unknown_and_invalid(service):
    with pytest.raises(ConfigurationError):
        service.update_configuration(bogusOption=1)
    with pytest.raises(ConfigurationError):
        service.update_configuration(syncIntervalMs=0)

    assert service.config.sync_interval_ms == 60_000


# ── History ───────────────────────────────────────────────────────


async def test_cycles_are_recorded(make_service, history):
    store = MockContentStore()
    ledger = MockLedger([make_contract(id="c1", cid="QmA", files=["QmB"])])
    svc = make_service(store=store, ledger=ledger, history=history)

    await svc.perform_sync()
    store.list_error = RuntimeError("kubo is down")
    with pytest.raises(RuntimeError):
        await svc.perform_sync()

    reports = await history.get_cycle_history()
    assert len(reports) == 2
    failed, ok = reports
    assert failed.error == "kubo is down"
    assert failed.errors == 1
    assert ok.error is None
    assert ok.contracts == 1
    assert ok.desired_cids == 2
    assert ok.pinned == 2


async def test_broken_history_does_not_fail_cycle(make_service):
    class BrokenHistory:
        async def save_cycle_report(self, report):
            raise OSError("disk full")

        async def get_cycle_history(self, limit=10):
            return []

    svc = make_service(
        ledger=MockLedger([make_contract(id="c1", cid="QmA")]), history=BrokenHistory(),
    )

    result = await svc.perform_sync()
    assert result.pinned == 1


# ── Isolation ─────────────────────────────────────────────────────


async def test_instances_are_independent(make_service):
    store_a, store_b = MockContentStore(), MockContentStore()
    a = make_service(store=store_a, ledger=MockLedger([make_contract(id="c1", cid="QmA")]))
    b = make_service(store=store_b, ledger=MockLedger([make_contract(id="c2", cid="QmB")]))
    rec_a, rec_b = EventRecorder(a.events), EventRecorder(b.events)

    await a.perform_sync()

    assert a.pinned_cids() == ["QmA"]
    assert b.pinned_cids() == []
    assert rec_a.payloads("file-pinned")
    assert rec_b.events == []
    assert store_b.pin_calls == []
