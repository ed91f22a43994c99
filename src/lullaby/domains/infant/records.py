"""Infant-care domain records: sleep sessions, feedings and generic activities.

Every event is an ``ActivityRecord`` tagged with a ``RecordKind``. Kind-specific
details (sleep quality, interruptions, feeding type, notes) live in
``RecordMetadata`` so that analyzers and the anonymizer can treat the three
event families uniformly.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from enum import Enum

# Local start hours counted as night sleep: [19:00, 24:00) and [00:00, 07:00)
NIGHT_START_HOUR = 19
NIGHT_END_HOUR = 7


class RecordKind(str, Enum):
    """Event family of an ``ActivityRecord``."""

    SLEEP = "sleep"
    FEEDING = "feeding"
    GENERIC = "generic"


class FeedingType(str, Enum):
    BREASTFEEDING = "breastfeeding"
    BOTTLE_BREAST_MILK = "bottle_breast_milk"
    FORMULA = "formula"
    SOLID_FOOD = "solid_food"
    WATER = "water"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ")


class ActivityType(str, Enum):
    DIAPER = "diaper"
    BATH = "bath"
    PLAY = "play"
    TUMMY_TIME = "tummy_time"
    OUTDOORS = "outdoors"
    MEDICATION = "medication"
    OTHER = "other"


@dataclass(frozen=True)
class EnvironmentFactors:
    """Sleep environment as logged by the caregiver (all optional)."""

    light_level: int | None = None   # 0-10
    noise_level: int | None = None   # 0-10
    temperature: float | None = None  # Celsius
    humidity: float | None = None     # percent


@dataclass(frozen=True)
class SleepInterruption:
    """A single wake-up during a sleep session."""

    duration_seconds: float = 0.0
    reason: str | None = None


@dataclass(frozen=True)
class RecordMetadata:
    """Optional structured details attached to a record."""

    quality: int | None = None
    environment: EnvironmentFactors | None = None
    interruptions: tuple[SleepInterruption, ...] = ()
    night_sleep: bool | None = None
    feeding_type: FeedingType | None = None
    amount_ml: float | None = None
    notes: str | None = None


@dataclass(frozen=True)
class DateRange:
    """A closed ``[start, end]`` time interval."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("DateRange end must not be before start")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class ActivityRecord:
    """A normalized infant-care event.

    ``end_time`` is optional (an ongoing sleep or an instantaneous diaper
    change) but, when present, must be strictly after ``start_time``.
    """

    id: str
    baby_id: str
    kind: RecordKind
    start_time: datetime
    end_time: datetime | None = None
    activity_type: str | None = None
    metadata: RecordMetadata = field(default_factory=RecordMetadata)

    def __post_init__(self) -> None:
        if self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError(
                f"Record {self.id!r}: end_time must be after start_time"
            )
        if self.kind == RecordKind.GENERIC and not self.activity_type:
            raise ValueError(f"Record {self.id!r}: generic records need an activity_type")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def sleep(
        cls,
        baby_id: str,
        start_time: datetime,
        end_time: datetime | None = None,
        *,
        id: str | None = None,
        quality: int | None = None,
        environment: EnvironmentFactors | None = None,
        interruptions: tuple[SleepInterruption, ...] | list[SleepInterruption] = (),
        night_sleep: bool | None = None,
        notes: str | None = None,
    ) -> ActivityRecord:
        return cls(
            id=id or _new_id(),
            baby_id=baby_id,
            kind=RecordKind.SLEEP,
            start_time=start_time,
            end_time=end_time,
            metadata=RecordMetadata(
                quality=quality,
                environment=environment,
                interruptions=tuple(interruptions),
                night_sleep=night_sleep,
                notes=notes,
            ),
        )

    @classmethod
    def feeding(
        cls,
        baby_id: str,
        start_time: datetime,
        feeding_type: FeedingType | str,
        end_time: datetime | None = None,
        *,
        id: str | None = None,
        amount_ml: float | None = None,
        notes: str | None = None,
    ) -> ActivityRecord:
        return cls(
            id=id or _new_id(),
            baby_id=baby_id,
            kind=RecordKind.FEEDING,
            start_time=start_time,
            end_time=end_time,
            metadata=RecordMetadata(
                feeding_type=FeedingType(feeding_type),
                amount_ml=amount_ml,
                notes=notes,
            ),
        )

    @classmethod
    def generic(
        cls,
        baby_id: str,
        activity_type: ActivityType | str,
        start_time: datetime,
        end_time: datetime | None = None,
        *,
        id: str | None = None,
        notes: str | None = None,
    ) -> ActivityRecord:
        kind_value = activity_type.value if isinstance(activity_type, ActivityType) else activity_type
        return cls(
            id=id or _new_id(),
            baby_id=baby_id,
            kind=RecordKind.GENERIC,
            start_time=start_time,
            end_time=end_time,
            activity_type=kind_value,
            metadata=RecordMetadata(notes=notes),
        )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def duration_seconds(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    @property
    def interruptions(self) -> tuple[SleepInterruption, ...]:
        return self.metadata.interruptions

    @property
    def feeding_type(self) -> FeedingType | None:
        return self.metadata.feeding_type

    @property
    def notes(self) -> str | None:
        return self.metadata.notes

    @property
    def is_night_sleep(self) -> bool:
        return self.night_sleep_in(None)

    def night_sleep_in(self, tz: tzinfo | None) -> bool:
        """Night flag, derived from the local start hour unless set explicitly."""
        if self.metadata.night_sleep is not None:
            return self.metadata.night_sleep
        hour = local_time(self.start_time, tz).hour
        return hour >= NIGHT_START_HOUR or hour < NIGHT_END_HOUR

    def latest_timestamp(self) -> datetime:
        return self.end_time or self.start_time


def local_time(moment: datetime, tz: tzinfo | None) -> datetime:
    """Express ``moment`` in ``tz``; naive datetimes are taken as already local."""
    if tz is None:
        return moment
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def _new_id() -> str:
    return str(uuid.uuid4())
