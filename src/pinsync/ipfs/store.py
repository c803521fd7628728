"""Kubo content store - pin-set operations via the Kubo HTTP RPC."""

from __future__ import annotations

import logging
import re
import time

import httpx

from pinsync.models.records import PinnedObject, PinResult

log = logging.getLogger(__name__)

_CID_V0 = re.compile(r"^Qm[1-9A-HJ-NP-Za-km-z]{44}$")
_CID_V1 = re.compile(r"^bafy[a-z0-9]{50,}$")


def is_valid_cid(value: object) -> bool:
    """Shape check for CIDv0 (base58 ``Qm...``) and CIDv1 (base32 ``bafy...``)."""
    if not isinstance(value, str):
        return False
    return bool(_CID_V0.match(value) or _CID_V1.match(value))


def _kubo_message(resp: httpx.Response) -> str:
    """Extract the error message from a Kubo RPC error body."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(data, dict) and data.get("Message"):
        return str(data["Message"])
    return resp.text[:200]


class KuboContentStore:
    """ContentStore backed by a local Kubo node.

    Uses the Kubo HTTP RPC API at /api/v0/ for:
    - pin/ls: List recursive pins
    - pin/add: Pin a CID (fetches content from the network)
    - pin/rm: Remove a pin
    """

    def __init__(
        self,
        kubo_rpc_url: str = "http://127.0.0.1:5001",
        pin_timeout: float = 120,
        request_timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = kubo_rpc_url.rstrip("/")
        self._pin_timeout = pin_timeout or None
        self._request_timeout = request_timeout
        self._transport = transport

    def _url(self, endpoint: str) -> str:
        return f"{self._base_url}/api/v0/{endpoint}"

    def _client(self, timeout: float | None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def is_valid_cid(self, value: str) -> bool:
        return is_valid_cid(value)

    async def list_pinned(self) -> list[PinnedObject]:
        """List recursive pins. Raises on transport or RPC failure."""
        async with self._client(self._request_timeout) as client:
            resp = await client.post(self._url("pin/ls"), params={"type": "recursive"})
            resp.raise_for_status()
            data = resp.json()

        keys = data.get("Keys") or {}
        pins = [
            PinnedObject(cid=cid, type=(info or {}).get("Type", "recursive"))
            for cid, info in keys.items()
        ]
        log.debug("Kubo reports %d recursive pins", len(pins))
        return pins

    async def pin(self, cid: str) -> PinResult:
        """Pin a CID on the local node."""
        start = time.monotonic()
        try:
            async with self._client(self._pin_timeout) as client:
                resp = await client.post(self._url("pin/add"), params={"arg": cid})
        except httpx.TimeoutException:
            duration = int((time.monotonic() - start) * 1000)
            log.error("Pin timed out for %s after %dms", cid, duration)
            return PinResult(success=False, cid=cid, error="pin timeout", duration_ms=duration)
        except httpx.HTTPError as exc:
            duration = int((time.monotonic() - start) * 1000)
            log.error("Pin error for %s: %s", cid, exc)
            return PinResult(success=False, cid=cid, error=str(exc), duration_ms=duration)

        duration = int((time.monotonic() - start) * 1000)
        if resp.status_code != 200:
            error = f"kubo HTTP {resp.status_code}: {_kubo_message(resp)}"
            log.warning("Pin failed for %s: %s", cid, error)
            return PinResult(success=False, cid=cid, error=error, duration_ms=duration)

        log.info("Pinned %s in %dms", cid, duration)
        return PinResult(success=True, cid=cid, duration_ms=duration)

    async def unpin(self, cid: str) -> PinResult:
        """Remove a pin from the local node."""
        start = time.monotonic()
        try:
            async with self._client(self._request_timeout) as client:
                resp = await client.post(self._url("pin/rm"), params={"arg": cid})
        except httpx.HTTPError as exc:
            duration = int((time.monotonic() - start) * 1000)
            log.error("Unpin error for %s: %s", cid, exc)
            return PinResult(success=False, cid=cid, error=str(exc), duration_ms=duration)

        duration = int((time.monotonic() - start) * 1000)
        if resp.status_code == 200:
            log.info("Unpinned %s", cid)
            return PinResult(success=True, cid=cid, duration_ms=duration)
        # 500 with "not pinned" is also acceptable
        message = _kubo_message(resp)
        if "not pinned" in message.lower():
            log.debug("CID %s was not pinned", cid)
            return PinResult(success=True, cid=cid, duration_ms=duration)
        error = f"kubo HTTP {resp.status_code}: {message}"
        log.warning("Unpin failed for %s: %s", cid, error)
        return PinResult(success=False, cid=cid, error=error, duration_ms=duration)
