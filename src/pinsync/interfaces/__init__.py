"""Protocol interfaces for the engine's external collaborators."""

from pinsync.interfaces.history import CycleHistory
from pinsync.interfaces.ledger import LedgerClient
from pinsync.interfaces.store import ContentStore

__all__ = ["ContentStore", "CycleHistory", "LedgerClient"]
