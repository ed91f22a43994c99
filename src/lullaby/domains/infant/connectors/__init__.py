"""Record store connectors: the abstraction the analysis engine fetches through."""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable

from lullaby.domains.infant.records import ActivityRecord, DateRange


@runtime_checkable
class RecordStore(Protocol):
    """Read/write access to one kind of record (sleep, feeding or activity).

    The engine does not know whether records come from SQLite, memory or a
    remote service.
    """

    async def fetch(self, baby_id: str, date_range: DateRange) -> list[ActivityRecord]:
        """Records for ``baby_id`` starting inside ``date_range``."""
        ...

    async def save(self, record: ActivityRecord) -> str:
        """Persist ``record`` and return its id."""
        ...


@runtime_checkable
class BabyProfileStore(Protocol):
    async def get_birth_date(self, baby_id: str) -> date | None:
        ...

    async def save(self, baby_id: str, birth_date: date | None, name: str | None = None) -> None:
        ...
