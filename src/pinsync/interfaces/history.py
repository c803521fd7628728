"""CycleHistory protocol - journal of completed sync cycles."""

from __future__ import annotations

from typing import Protocol

from pinsync.models.records import CycleReport


class CycleHistory(Protocol):
    async def save_cycle_report(self, report: CycleReport) -> None:
        ...

    async def get_cycle_history(self, limit: int = 10) -> list[CycleReport]:
        ...
