"""HTTP ledger client - fetches the contracts a storage node must hold."""

from __future__ import annotations

import asyncio
import logging

import httpx

from pinsync.errors import LedgerError
from pinsync.events import EventBus
from pinsync.models.config import SyncConfig
from pinsync.models.contract import Contract
from pinsync.models.events import LOG, LogEvent

log = logging.getLogger(__name__)

CONTRACTS_PATH = "/api/spk/contracts/stored-by/{account}"


def parse_contracts(data: object) -> list[Contract]:
    """Turn a ``{"contracts": [...]}`` payload into Contract models."""
    if not isinstance(data, dict):
        raise LedgerError(f"expected a JSON object, got {type(data).__name__}")

    raw = data.get("contracts") or []
    if not isinstance(raw, list):
        raise LedgerError("'contracts' is not a list")

    contracts: list[Contract] = []
    for entry in raw:
        if not isinstance(entry, dict):
            log.warning("Skipping malformed contract entry: %r", entry)
            continue
        try:
            contracts.append(Contract.from_dict(entry))
        except (TypeError, ValueError) as exc:
            log.warning("Skipping unreadable contract %r: %s", entry.get("id"), exc)
    return contracts


class HttpLedgerClient:
    """Fetches stored-by contracts with linear-backoff retry.

    Retry settings are read from ``config`` on every call, so a
    configuration update applies to the next fetch. When every attempt
    fails the client logs, emits a ``log`` event, sets
    ``last_fetch_failed`` and returns an empty list.
    """

    def __init__(
        self,
        config: SyncConfig,
        events: EventBus | None = None,
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._events = events
        self._timeout = timeout
        self._transport = transport
        self.last_fetch_failed = False

    def contracts_url(self, account: str) -> str:
        base = self._config.ledger_url.rstrip("/")
        return base + CONTRACTS_PATH.format(account=account)

    async def fetch_contracts(self, account: str) -> list[Contract]:
        url = self.contracts_url(account)
        max_retries = self._config.max_retries
        last_error: Exception | None = None

        for attempt in range(1, max_retries + 1):
            try:
                contracts = await self._fetch_once(url)
                self.last_fetch_failed = False
                log.debug(
                    "Fetched %d contracts for %s (attempt %d)", len(contracts), account, attempt,
                )
                return contracts
            except (httpx.HTTPError, LedgerError, ValueError) as exc:
                last_error = exc
                if attempt < max_retries:
                    delay = self._config.retry_base_delay * attempt
                    log.warning(
                        "Contract fetch failed for %s (attempt %d/%d): %s; retrying in %.1fs",
                        account, attempt, max_retries, exc, delay,
                    )
                    await asyncio.sleep(delay)

        self.last_fetch_failed = True
        message = f"Failed to fetch contracts after {max_retries} attempts: {last_error}"
        log.error("%s", message)
        if self._events is not None:
            self._events.emit(LOG, LogEvent(level="error", message=message))
        return []

    async def _fetch_once(self, url: str) -> list[Contract]:
        async with httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            resp = await client.get(url)
            if resp.status_code < 200 or resp.status_code >= 300:
                raise LedgerError(
                    f"ledger returned HTTP {resp.status_code}", status_code=resp.status_code,
                )
            return parse_contracts(resp.json())
