"""Record repository: CRUD for the encrypted infant-care record store.

Record metadata (sleep quality, environment, interruptions, feeding
details and free-text notes) is encrypted with ``FieldCipher``. Kind,
activity type and timestamps stay in clear for range queries.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Any

from lullaby.core.security.cipher import EncryptionError, FieldCipher
from lullaby.core.storage.database import RecordDatabase
from lullaby.domains.infant.records import (
    ActivityRecord,
    EnvironmentFactors,
    FeedingType,
    RecordKind,
    RecordMetadata,
    SleepInterruption,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


class RecordRepository:
    """CRUD repository for activity records and baby profiles.

    Usage::

        db = RecordDatabase(":memory:")
        db.initialize()
        repo = RecordRepository(db, FieldCipher(key))

        repo.save_record(ActivityRecord.sleep("baby-1", start, end))
        records = repo.get_records("baby-1", RecordKind.SLEEP)
    """

    def __init__(self, database: RecordDatabase, cipher: FieldCipher) -> None:
        self._db = database
        self._cipher = cipher

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def save_record(self, record: ActivityRecord) -> str:
        """Insert or replace a record. Returns its id."""
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    """INSERT OR REPLACE INTO activity_records (
                        id, baby_id, kind, activity_type,
                        start_time, end_time, start_epoch, metadata_enc
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        record.id,
                        record.baby_id,
                        record.kind.value,
                        record.activity_type,
                        record.start_time.isoformat(),
                        record.end_time.isoformat() if record.end_time else None,
                        record.start_time.timestamp(),
                        self._cipher.encrypt(metadata_to_dict(record.metadata)),
                    ),
                )
        except (sqlite3.Error, EncryptionError) as exc:
            raise RepositoryError(f"Failed to save record {record.id}: {exc}") from exc

        logger.info("Saved %s record %s", record.kind.value, record.id)
        return record.id

    def get_records(
        self,
        baby_id: str,
        kind: RecordKind,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[ActivityRecord]:
        """Records of one kind for a baby, oldest first, optionally bounded by start time."""
        sql = "SELECT * FROM activity_records WHERE baby_id = ? AND kind = ?"
        params: list[Any] = [baby_id, kind.value]
        if start is not None:
            sql += " AND start_epoch >= ?"
            params.append(start.timestamp())
        if end is not None:
            sql += " AND start_epoch <= ?"
            params.append(end.timestamp())
        sql += " ORDER BY start_epoch ASC"

        try:
            rows = self._db.connection.execute(sql, params).fetchall()
            return [self._row_to_record(row) for row in rows]
        except (sqlite3.Error, EncryptionError, ValueError) as exc:
            raise RepositoryError(f"Failed to load {kind.value} records: {exc}") from exc

    def count_records(self, baby_id: str | None = None) -> int:
        if baby_id is None:
            row = self._db.connection.execute("SELECT COUNT(*) FROM activity_records").fetchone()
        else:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM activity_records WHERE baby_id = ?", (baby_id,)
            ).fetchone()
        return row[0]

    def _row_to_record(self, row: sqlite3.Row) -> ActivityRecord:
        return ActivityRecord(
            id=row["id"],
            baby_id=row["baby_id"],
            kind=RecordKind(row["kind"]),
            start_time=datetime.fromisoformat(row["start_time"]),
            end_time=datetime.fromisoformat(row["end_time"]) if row["end_time"] else None,
            activity_type=row["activity_type"],
            metadata=metadata_from_dict(self._cipher.decrypt(row["metadata_enc"] or "")),
        )

    # ------------------------------------------------------------------
    # Babies
    # ------------------------------------------------------------------

    def save_baby(self, baby_id: str, *, birth_date: date | None = None, name: str | None = None) -> str:
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO babies (id, name_enc, birth_date) VALUES (?, ?, ?)",
                    (
                        baby_id,
                        self._cipher.encrypt(name),
                        birth_date.isoformat() if birth_date else None,
                    ),
                )
        except (sqlite3.Error, EncryptionError) as exc:
            raise RepositoryError(f"Failed to save baby {baby_id}: {exc}") from exc
        logger.info("Saved baby profile %s", baby_id)
        return baby_id

    def get_birth_date(self, baby_id: str) -> date | None:
        row = self._db.connection.execute(
            "SELECT birth_date FROM babies WHERE id = ?", (baby_id,)
        ).fetchone()
        if row is None or not row["birth_date"]:
            return None
        return date.fromisoformat(row["birth_date"])


# ------------------------------------------------------------------
# Metadata (de)serialization
# ------------------------------------------------------------------

def metadata_to_dict(meta: RecordMetadata) -> dict[str, Any]:
    env = meta.environment
    return {
        "quality": meta.quality,
        "environment": (
            {
                "light_level": env.light_level,
                "noise_level": env.noise_level,
                "temperature": env.temperature,
                "humidity": env.humidity,
            }
            if env is not None
            else None
        ),
        "interruptions": [
            {"duration_seconds": i.duration_seconds, "reason": i.reason}
            for i in meta.interruptions
        ],
        "night_sleep": meta.night_sleep,
        "feeding_type": meta.feeding_type.value if meta.feeding_type else None,
        "amount_ml": meta.amount_ml,
        "notes": meta.notes,
    }


def metadata_from_dict(data: dict[str, Any] | None) -> RecordMetadata:
    if not data:
        return RecordMetadata()
    env = data.get("environment")
    return RecordMetadata(
        quality=data.get("quality"),
        environment=EnvironmentFactors(**env) if env else None,
        interruptions=tuple(
            SleepInterruption(
                duration_seconds=i.get("duration_seconds", 0.0),
                reason=i.get("reason"),
            )
            for i in data.get("interruptions") or []
        ),
        night_sleep=data.get("night_sleep"),
        feeding_type=FeedingType(data["feeding_type"]) if data.get("feeding_type") else None,
        amount_ml=data.get("amount_ml"),
        notes=data.get("notes"),
    )
