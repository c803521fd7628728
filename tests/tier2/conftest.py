"""Tier 2 fixtures: a real Kubo daemon on localhost."""

from __future__ import annotations

import httpx
import pytest

from pinsync.ipfs.store import KuboContentStore

KUBO_RPC = "http://127.0.0.1:5001"


@pytest.fixture(scope="session")
def kubo_available():
    """Check if local Kubo daemon is running. Skip tier2 tests if not."""
    try:
        r = httpx.post(f"{KUBO_RPC}/api/v0/id", timeout=3)
        if r.status_code == 200:
            return True
        pytest.skip(f"Kubo daemon not available at {KUBO_RPC}")
    except (httpx.ConnectError, httpx.TimeoutException):
        pytest.skip(f"Kubo daemon not available at {KUBO_RPC}")


@pytest.fixture
async def local_content(kubo_available):
    """Add throwaway content to Kubo without pinning it.

    Yields the CID; any pin left behind is removed at teardown.
    """
    content = b"pinsync-tier2-content"
    async with httpx.AsyncClient() as client:
        resp = await client.post(
            f"{KUBO_RPC}/api/v0/add",
            params={"pin": "false"},
            files={"file": ("sample.txt", content)},
        )
        cid = resp.json()["Hash"]
        yield cid
        await client.post(f"{KUBO_RPC}/api/v0/pin/rm", params={"arg": cid})


@pytest.fixture
def kubo_store(kubo_available):
    return KuboContentStore(KUBO_RPC, pin_timeout=30, request_timeout=10)
