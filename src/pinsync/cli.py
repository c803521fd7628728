"""CLI entry point for the pinsync daemon."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from pinsync.config import load_config
from pinsync.daemon import run_daemon
from pinsync.ipfs.store import KuboContentStore
from pinsync.ledger.client import HttpLedgerClient
from pinsync.models.events import ERROR
from pinsync.storage.sqlite import SQLiteHistoryStore
from pinsync.sync.extractor import extract_cids
from pinsync.sync.service import FileSyncService


def _require_account(cfg):
    """Exit with error if no account is configured."""
    if not cfg.sync.account:
        click.echo("Error: No account configured.", err=True)
        click.echo("Set PINSYNC_ACCOUNT env var or [sync] account in config.", err=True)
        sys.exit(1)


def _kubo_store(cfg) -> KuboContentStore:
    return KuboContentStore(cfg.kubo_rpc_url, cfg.sync.pin_timeout, cfg.request_timeout)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """pinsync - keep a storage node's pins in line with its ledger contracts."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the sync daemon."""
    cfg = load_config(ctx.obj["config_path"])
    _require_account(cfg)

    click.echo(f"Starting pinsync daemon for {cfg.sync.account}")
    asyncio.run(run_daemon(cfg))


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show daemon configuration."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"Account:      {cfg.sync.account or '(not set)'}")
    click.echo(f"Ledger:       {cfg.sync.ledger_url}")
    click.echo(f"Interval:     {cfg.sync.sync_interval_ms}ms")
    click.echo(f"Retries:      {cfg.sync.max_retries} (base delay {cfg.sync.retry_base_delay_ms}ms)")
    click.echo(f"Concurrency:  {cfg.sync.max_concurrent_pins} pins")
    click.echo(f"Pin timeout:  {cfg.sync.pin_timeout or 'none'}")
    click.echo(f"Kubo RPC:     {cfg.kubo_rpc_url}")
    click.echo(f"DB path:      {cfg.db_path}")


@cli.command()
@click.pass_context
def contracts(ctx: click.Context) -> None:
    """List the account's contracts and the CIDs they require (no pinning)."""
    cfg = load_config(ctx.obj["config_path"])
    _require_account(cfg)

    async def _contracts():
        ledger = HttpLedgerClient(cfg.sync)
        store = _kubo_store(cfg)
        result = await ledger.fetch_contracts(cfg.sync.account)
        if ledger.last_fetch_failed:
            click.echo("Error: ledger unreachable.", err=True)
            sys.exit(1)
        if not result:
            click.echo("No contracts.")
            return
        total = 0
        for contract in result:
            cids = extract_cids(contract, store.is_valid_cid)
            total += len(cids)
            click.echo(f"{contract.id}  owner={contract.owner or '?'}  expires={contract.expires}")
            for cid in cids:
                click.echo(f"  {cid}")
        click.echo(f"\n{len(result)} contracts, {total} CIDs")

    asyncio.run(_contracts())


# ── One-shot sync ──────────────────────────────────────


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Run a single reconciliation cycle and exit.

    Pins missing content only: a fresh process has pinned nothing
    itself, so there is nothing it may unpin.
    """
    cfg = load_config(ctx.obj["config_path"])
    _require_account(cfg)

    async def _sync():
        history = SQLiteHistoryStore(cfg.db_path)
        await history.initialize()
        try:
            service = FileSyncService(cfg.sync, _kubo_store(cfg), history=history)
            service.events.subscribe(
                ERROR, lambda e: click.echo(f"  ! {e.message}", err=True),
            )
            try:
                result = await service.perform_sync()
            except Exception as exc:
                click.echo(f"Sync failed: {exc}", err=True)
                sys.exit(1)
            stats = service.stats
            click.echo(
                f"Synced {stats.total_contracts} contracts: "
                f"{result.pinned} pinned, {result.unpinned} unpinned, {result.errors} errors"
            )
        finally:
            await history.close()

    asyncio.run(_sync())


@cli.command()
@click.option("-n", "--limit", default=10, show_default=True, help="Number of cycles to show")
@click.pass_context
def history(ctx: click.Context, limit: int) -> None:
    """Show recent sync cycles recorded by the daemon."""
    cfg = load_config(ctx.obj["config_path"])

    async def _history():
        store = SQLiteHistoryStore(cfg.db_path)
        await store.initialize()
        try:
            reports = await store.get_cycle_history(limit)
        finally:
            await store.close()

        if not reports:
            click.echo("No sync cycles recorded.")
            return
        for r in reports:
            line = (
                f"#{r.cycle_id}  {r.started_at}  contracts={r.contracts} cids={r.desired_cids}"
                f"  +{r.pinned} -{r.unpinned}  errors={r.errors}  {r.duration_ms}ms"
            )
            if r.error:
                line += f"  FAILED: {r.error}"
            click.echo(line)

    asyncio.run(_history())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
