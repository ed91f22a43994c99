"""Anonymization of infant-care records before they leave the device.

The cloud service only ever sees:
- hashed record ids and a hashed device id (one-way, SHA-256)
- times as signed second offsets from the batch origin, never calendar dates
- age at month granularity, never the birth date
- notes reduced to a vocabulary token or a length placeholder
- activity types outside the known vocabulary reported as ``other``

Payloads are deterministic for a given device identifier, apart from the
per-call ``session_id``.
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Sequence

from lullaby.domains.infant.records import ActivityRecord, ActivityType

RECORD_HASH_LENGTH = 16
DEVICE_HASH_LENGTH = 24

# Closed vocabulary shared by interruption reasons and note categories.
REASON_VOCABULARY = (
    "hungry",
    "diaper",
    "noise",
    "discomfort",
    "dream",
    "crying",
    "feeding",
)
OTHER_REASON = "other"


class PayloadKind(str, Enum):
    SLEEP = "sleep"
    ROUTINE = "routine"


@dataclass(frozen=True)
class AnonymizedInterruption:
    duration_seconds: float
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"durationSeconds": self.duration_seconds, "reason": self.reason}


@dataclass(frozen=True)
class AnonymizedRecord:
    record_id: str
    kind: str
    start_offset_seconds: int
    end_offset_seconds: int | None = None
    duration_seconds: float | None = None
    activity_type: str | None = None
    feeding_type: str | None = None
    amount_ml: float | None = None
    quality: int | None = None
    night_sleep: bool | None = None
    environment: dict[str, Any] | None = None
    interruptions: tuple[AnonymizedInterruption, ...] = ()
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "recordId": self.record_id,
            "kind": self.kind,
            "startOffsetSeconds": self.start_offset_seconds,
            "endOffsetSeconds": self.end_offset_seconds,
            "durationSeconds": self.duration_seconds,
            "activityType": self.activity_type,
            "feedingType": self.feeding_type,
            "amountMl": self.amount_ml,
            "quality": self.quality,
            "nightSleep": self.night_sleep,
            "environment": self.environment,
            "interruptions": [i.to_dict() for i in self.interruptions],
            "notes": self.notes,
        }


@dataclass(frozen=True)
class AnonymizedPayload:
    kind: PayloadKind
    device_id: str
    session_id: str
    record_count: int
    time_span_days: int
    records: tuple[AnonymizedRecord, ...]
    baby_age_months: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire form (camelCase keys)."""
        return {
            "kind": self.kind.value,
            "deviceId": self.device_id,
            "sessionId": self.session_id,
            "recordCount": self.record_count,
            "timeSpanDays": self.time_span_days,
            "babyAgeMonths": self.baby_age_months,
            "records": [r.to_dict() for r in self.records],
        }


class DataAnonymizer:
    """Turns a batch of ``ActivityRecord`` into an ``AnonymizedPayload``."""

    def __init__(self, device_identifier: str) -> None:
        self._device_id = _hash(device_identifier, DEVICE_HASH_LENGTH)

    def anonymize(
        self,
        records: Sequence[ActivityRecord],
        kind: PayloadKind | str,
        *,
        birth_date: date | None = None,
        origin: datetime | None = None,
    ) -> AnonymizedPayload:
        """Anonymize ``records``.

        Args:
            records: Records of any kind, in any order.
            kind: Which analysis the payload feeds.
            birth_date: Used only to derive the age in full months.
            origin: Shared time origin; defaults to the batch's earliest timestamp.
        """
        earliest, latest = _bounds(records)
        if origin is None:
            origin = earliest

        entries = tuple(self._anonymize_record(r, origin) for r in records)

        time_span_days = 0
        if earliest is not None and latest is not None:
            time_span_days = (latest - earliest).days

        age_months = None
        if birth_date is not None and latest is not None:
            age_months = months_between(birth_date, latest.date())

        return AnonymizedPayload(
            kind=PayloadKind(kind),
            device_id=self._device_id,
            session_id=str(uuid.uuid4()),
            record_count=len(entries),
            time_span_days=time_span_days,
            records=entries,
            baby_age_months=age_months,
        )

    def _anonymize_record(self, record: ActivityRecord, origin: datetime | None) -> AnonymizedRecord:
        meta = record.metadata

        environment = None
        if meta.environment is not None:
            environment = {
                "lightLevel": meta.environment.light_level,
                "noiseLevel": meta.environment.noise_level,
                "temperature": meta.environment.temperature,
                "humidity": meta.environment.humidity,
            }

        return AnonymizedRecord(
            record_id=_hash(record.id, RECORD_HASH_LENGTH),
            kind=record.kind.value,
            start_offset_seconds=_offset(record.start_time, origin),
            end_offset_seconds=(
                _offset(record.end_time, origin) if record.end_time is not None else None
            ),
            duration_seconds=record.duration_seconds,
            activity_type=normalize_activity_type(record.activity_type),
            feeding_type=meta.feeding_type.value if meta.feeding_type is not None else None,
            amount_ml=meta.amount_ml,
            quality=meta.quality,
            night_sleep=meta.night_sleep,
            environment=environment,
            interruptions=tuple(
                AnonymizedInterruption(
                    duration_seconds=i.duration_seconds,
                    reason=normalize_reason(i.reason),
                )
                for i in meta.interruptions
            ),
            notes=redact_notes(meta.notes),
        )


def normalize_reason(reason: str | None) -> str:
    """Keep a reason only if it is in the closed vocabulary."""
    if reason is None:
        return OTHER_REASON
    token = reason.strip().lower()
    return token if token in REASON_VOCABULARY else OTHER_REASON


def normalize_activity_type(activity_type: str | None) -> str | None:
    """Map an activity type onto ``ActivityType``; anything else becomes ``other``."""
    if activity_type is None:
        return None
    token = activity_type.strip().lower().replace(" ", "_").replace("-", "_")
    known = {member.value for member in ActivityType}
    return token if token in known else ActivityType.OTHER.value


def redact_notes(notes: str | None) -> str | None:
    """Replace free text with ``category:<token>`` or ``length:<n>``."""
    if notes is None or not notes.strip():
        return None
    lowered = notes.lower()
    for token in REASON_VOCABULARY:
        if token in lowered:
            return f"category:{token}"
    return f"length:{len(notes)}"


def months_between(start: date, end: date) -> int:
    """Full calendar months from ``start`` to ``end`` (never negative)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(0, months)


def _bounds(records: Sequence[ActivityRecord]) -> tuple[datetime | None, datetime | None]:
    if not records:
        return None, None
    earliest = min(r.start_time for r in records)
    latest = max(r.latest_timestamp() for r in records)
    return earliest, latest


def _offset(moment: datetime, origin: datetime | None) -> int:
    if origin is None:
        return 0
    return int((moment - origin).total_seconds())


def _hash(value: str, length: int) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:length]
