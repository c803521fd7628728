"""Configuration models for the sync engine and daemon."""

from __future__ import annotations

from dataclasses import dataclass, field, fields

from pinsync.errors import ConfigurationError

# camelCase option names accepted by update_configuration()
OPTION_ALIASES = {
    "account": "account",
    "ledgerUrl": "ledger_url",
    "syncIntervalMs": "sync_interval_ms",
    "maxRetries": "max_retries",
    "retryBaseDelayMs": "retry_base_delay_ms",
    "maxConcurrentPins": "max_concurrent_pins",
    "pinTimeout": "pin_timeout",
}


@dataclass
class SyncConfig:
    """Options recognized by the reconciliation engine."""

    account: str = ""
    ledger_url: str = "https://spktest.dlux.io"
    sync_interval_ms: int = 60_000
    max_retries: int = 3
    retry_base_delay_ms: int = 1_000
    max_concurrent_pins: int = 50
    pin_timeout: float = 120  # seconds per pin/unpin call, 0 disables

    @property
    def sync_interval(self) -> float:
        return self.sync_interval_ms / 1000

    @property
    def retry_base_delay(self) -> float:
        return self.retry_base_delay_ms / 1000

    def validate(self) -> None:
        if not self.account:
            raise ConfigurationError("account is required for file sync")
        if self.sync_interval_ms <= 0:
            raise ConfigurationError(f"sync_interval_ms must be positive, got {self.sync_interval_ms}")
        if self.max_retries < 1:
            raise ConfigurationError(f"max_retries must be at least 1, got {self.max_retries}")
        if self.retry_base_delay_ms < 0:
            raise ConfigurationError("retry_base_delay_ms cannot be negative")
        if self.max_concurrent_pins < 1:
            raise ConfigurationError(
                f"max_concurrent_pins must be at least 1, got {self.max_concurrent_pins}"
            )
        if self.pin_timeout < 0:
            raise ConfigurationError("pin_timeout cannot be negative")

    @staticmethod
    def normalize(partial: dict) -> dict:
        """Map camelCase or snake_case option names onto field names."""
        known = {f.name for f in fields(SyncConfig)}
        out = {}
        for key, value in partial.items():
            name = OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(f"unknown sync option: {key}")
            out[name] = value
        return out


@dataclass
class DaemonConfig:
    """Complete daemon configuration."""

    # Daemon
    log_level: str = "info"

    # Sync engine
    sync: SyncConfig = field(default_factory=SyncConfig)

    # IPFS
    kubo_rpc_url: str = "http://127.0.0.1:5001"
    request_timeout: int = 30  # seconds for pin/ls and pin/rm

    # Storage
    db_path: str = "~/.pinsync/history.db"
