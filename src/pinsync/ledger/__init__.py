"""Ledger integration - contract fetching."""

from pinsync.ledger.client import HttpLedgerClient, parse_contracts

__all__ = ["HttpLedgerClient", "parse_contracts"]
