"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from pinsync.models.config import DaemonConfig, SyncConfig


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "PINSYNC_",
) -> DaemonConfig:
    """Load daemon configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (PINSYNC_ACCOUNT, etc.)
        2. TOML config file
        3. Defaults from DaemonConfig / SyncConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = DaemonConfig(sync=SyncConfig())

    # ── Daemon section ─────────────────────────────────────
    daemon = raw.get("daemon", {})
    if v := daemon.get("log_level"):
        cfg.log_level = str(v)

    # ── Sync section ───────────────────────────────────────
    sync = raw.get("sync", {})
    if v := sync.get("account"):
        cfg.sync.account = str(v)
    if v := sync.get("ledger_url"):
        cfg.sync.ledger_url = str(v)
    if v := sync.get("sync_interval_ms"):
        cfg.sync.sync_interval_ms = int(v)
    if v := sync.get("max_retries"):
        cfg.sync.max_retries = int(v)
    if (v := sync.get("retry_base_delay_ms")) is not None:
        cfg.sync.retry_base_delay_ms = int(v)
    if v := sync.get("max_concurrent_pins"):
        cfg.sync.max_concurrent_pins = int(v)
    if (v := sync.get("pin_timeout")) is not None:
        cfg.sync.pin_timeout = float(v)

    # ── IPFS section ───────────────────────────────────────
    ipfs = raw.get("ipfs", {})
    if v := ipfs.get("kubo_rpc_url"):
        cfg.kubo_rpc_url = str(v)
    if v := ipfs.get("request_timeout"):
        cfg.request_timeout = int(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    if account := os.environ.get(f"{env_prefix}ACCOUNT"):
        cfg.sync.account = account
    if url := os.environ.get(f"{env_prefix}LEDGER_URL"):
        cfg.sync.ledger_url = url
    if kubo := os.environ.get(f"{env_prefix}KUBO_RPC_URL"):
        cfg.kubo_rpc_url = kubo
    if interval := os.environ.get(f"{env_prefix}SYNC_INTERVAL_MS"):
        cfg.sync.sync_interval_ms = int(interval)
    if pins := os.environ.get(f"{env_prefix}MAX_CONCURRENT_PINS"):
        cfg.sync.max_concurrent_pins = int(pins)
    if db_path := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db_path

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg
