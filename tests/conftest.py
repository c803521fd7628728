"""Shared fixtures for pinsync tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from pinsync.models.config import SyncConfig
from pinsync.storage.sqlite import SQLiteHistoryStore
from pinsync.sync.service import FileSyncService

from tests.mocks import EventRecorder, MockContentStore, MockLedger

TEST_ACCOUNT = "testuser"
TEST_LEDGER_URL = "https://ledger.test"


# ── Report metadata ───────────────────────────────────────────────


def pytest_configure(config):
    """Add engine info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Account"] = TEST_ACCOUNT
    meta["Ledger"] = TEST_LEDGER_URL


def make_test_config(**overrides) -> SyncConfig:
    """Build a SyncConfig suitable for testing."""
    defaults = dict(
        account=TEST_ACCOUNT,
        ledger_url=TEST_LEDGER_URL,
        sync_interval_ms=60_000,
        max_retries=3,
        retry_base_delay_ms=10,
        max_concurrent_pins=50,
        pin_timeout=0,
    )
    defaults.update(overrides)
    return SyncConfig(**defaults)


@pytest.fixture
def test_config():
    """Default SyncConfig for tests."""
    return make_test_config()


@pytest.fixture
def mock_store():
    return MockContentStore()


@pytest.fixture
def mock_ledger():
    return MockLedger()


@pytest.fixture
async def history():
    """Initialized in-memory SQLiteHistoryStore."""
    h = SQLiteHistoryStore(":memory:")
    await h.initialize()
    yield h
    await h.close()


@pytest.fixture
async def service(test_config, mock_store, mock_ledger):
    """FileSyncService wired to mocked store and ledger."""
    s = FileSyncService(test_config, mock_store, ledger=mock_ledger)
    yield s
    await s.stop()
    await s.wait_idle()


@pytest.fixture
def recorder(service):
    return EventRecorder(service.events)
