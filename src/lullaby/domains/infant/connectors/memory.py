"""In-memory record and profile stores (tests and ephemeral servers)."""

from __future__ import annotations

from datetime import date

from lullaby.domains.infant.records import ActivityRecord, DateRange, RecordKind


class InMemoryRecordStore:
    def __init__(self, kind: RecordKind, records: list[ActivityRecord] | None = None) -> None:
        self.kind = kind
        self._records: dict[str, ActivityRecord] = {}
        for record in records or []:
            self._records[record.id] = record

    async def fetch(self, baby_id: str, date_range: DateRange) -> list[ActivityRecord]:
        return sorted(
            (
                r
                for r in self._records.values()
                if r.baby_id == baby_id and date_range.contains(r.start_time)
            ),
            key=lambda r: r.start_time,
        )

    async def save(self, record: ActivityRecord) -> str:
        if record.kind != self.kind:
            raise ValueError(f"Store holds {self.kind.value} records, got {record.kind.value}")
        self._records[record.id] = record
        return record.id


class InMemoryBabyProfileStore:
    def __init__(self, birth_dates: dict[str, date] | None = None) -> None:
        self._birth_dates = dict(birth_dates or {})

    async def get_birth_date(self, baby_id: str) -> date | None:
        return self._birth_dates.get(baby_id)

    async def save(self, baby_id: str, birth_date: date | None, name: str | None = None) -> None:
        if birth_date is None:
            self._birth_dates.pop(baby_id, None)
        else:
            self._birth_dates[baby_id] = birth_date
