"""Record store connectors backed by ``RecordRepository`` (SQLite)."""

from __future__ import annotations

from datetime import date

from lullaby.core.storage.repository import RecordRepository
from lullaby.domains.infant.records import ActivityRecord, DateRange, RecordKind


class SQLiteRecordStore:
    """One ``RecordStore`` per record kind over a shared repository."""

    def __init__(self, repository: RecordRepository, kind: RecordKind) -> None:
        self._repo = repository
        self.kind = kind

    async def fetch(self, baby_id: str, date_range: DateRange) -> list[ActivityRecord]:
        return self._repo.get_records(
            baby_id, self.kind, start=date_range.start, end=date_range.end
        )

    async def save(self, record: ActivityRecord) -> str:
        if record.kind != self.kind:
            raise ValueError(f"Store holds {self.kind.value} records, got {record.kind.value}")
        return self._repo.save_record(record)


class SQLiteBabyProfileStore:
    def __init__(self, repository: RecordRepository) -> None:
        self._repo = repository

    async def get_birth_date(self, baby_id: str) -> date | None:
        return self._repo.get_birth_date(baby_id)

    async def save(self, baby_id: str, birth_date: date | None, name: str | None = None) -> None:
        self._repo.save_baby(baby_id, birth_date=birth_date, name=name)
