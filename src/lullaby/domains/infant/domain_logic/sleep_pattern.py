"""Local sleep-pattern diagnostics.

Classifies night sleep duration, interruption frequency and bedtime
regularity, then derives a 0-100 quality score and a short list of
prioritized recommendations.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import timezone, tzinfo

from lullaby.domains.infant.domain_logic.stats import (
    Clock,
    hour_variance,
    mean_or_zero,
    start_hours,
    utc_now,
    within,
)
from lullaby.domains.infant.errors import InsufficientDataError
from lullaby.domains.infant.records import ActivityRecord, DateRange, RecordKind
from lullaby.domains.infant.results import (
    Pattern,
    Recommendation,
    SleepPatternResult,
    clamp_score,
)

logger = logging.getLogger(__name__)

# Night sleep duration bands (hours)
SHORT_NIGHT_HOURS = 8.0
LONG_NIGHT_HOURS = 12.0

FREQUENT_INTERRUPTIONS = 3.0

# Start-hour variance thresholds (hours^2)
REGULAR_VARIANCE = 2.0
IRREGULAR_VARIANCE = 4.0

BASE_SCORE = 70

SCORE_DELTAS = {
    "normal_night_sleep": 10,
    "short_night_sleep": -10,
    "regular_sleep_schedule": 10,
    "irregular_sleep_schedule": -10,
    "frequent_interruptions": -15,
}

RECOMMENDATIONS = {
    "short_night_sleep": Recommendation(
        category="sleep_duration",
        suggestion=(
            "Night sleep is shorter than typical. Try an earlier bedtime "
            "and a calm, consistent wind-down routine."
        ),
        priority=1,
    ),
    "irregular_sleep_schedule": Recommendation(
        category="sleep_schedule",
        suggestion=(
            "Sleep start times vary a lot. Aim for a similar bedtime and "
            "nap time every day."
        ),
        priority=1,
    ),
    "frequent_interruptions": Recommendation(
        category="sleep_quality",
        suggestion=(
            "Sleep is often interrupted. Check room temperature, noise and "
            "light, and note what wakes the baby."
        ),
        priority=2,
    ),
}

GENERAL_RECOMMENDATION = Recommendation(
    category="general",
    suggestion="Sleep looks healthy. Keep current habits.",
    priority=3,
)


class SleepPatternAnalyzer:
    """Deterministic sleep diagnostics over a batch of sleep records.

    Usage::

        analyzer = SleepPatternAnalyzer(tz=ZoneInfo("Europe/Berlin"))
        result = analyzer.analyze(sleep_records)
    """

    def __init__(self, *, clock: Clock = utc_now, tz: tzinfo | None = timezone.utc) -> None:
        self._clock = clock
        self._tz = tz

    def analyze(
        self,
        records: Sequence[ActivityRecord],
        date_range: DateRange | None = None,
    ) -> SleepPatternResult:
        sleep_records = [r for r in within(records, date_range) if r.kind == RecordKind.SLEEP]
        if not sleep_records:
            raise InsufficientDataError("No sleep records to analyze")

        durations = [r.duration_seconds or 0.0 for r in sleep_records]
        average_duration = mean_or_zero(durations)

        patterns: list[Pattern] = []

        night = [r for r in sleep_records if r.night_sleep_in(self._tz)]
        if night:
            night_hours = mean_or_zero([(r.duration_seconds or 0.0) for r in night]) / 3600
            patterns.append(_night_duration_pattern(night_hours, len(night)))

        interrupted = [r for r in sleep_records if r.interruptions]
        if interrupted:
            mean_interruptions = mean_or_zero([len(r.interruptions) for r in interrupted])
            if mean_interruptions > FREQUENT_INTERRUPTIONS:
                patterns.append(
                    Pattern(
                        type="frequent_interruptions",
                        confidence=0.7,
                        description=(
                            f"Interrupted sleeps wake on average "
                            f"{mean_interruptions:.1f} times"
                        ),
                        details={
                            "average_interruptions": round(mean_interruptions, 2),
                            "interrupted_sessions": len(interrupted),
                        },
                    )
                )

        variance = hour_variance(start_hours(sleep_records, self._tz))
        if variance < REGULAR_VARIANCE:
            patterns.append(
                Pattern(
                    type="regular_sleep_schedule",
                    confidence=0.85,
                    description="Sleep starts at consistent times",
                    details={"start_hour_variance": round(variance, 3)},
                )
            )
        elif variance > IRREGULAR_VARIANCE:
            patterns.append(
                Pattern(
                    type="irregular_sleep_schedule",
                    confidence=0.75,
                    description="Sleep start times vary considerably",
                    details={"start_hour_variance": round(variance, 3)},
                )
            )

        score = BASE_SCORE + sum(SCORE_DELTAS.get(p.type, 0) for p in patterns)

        logger.debug(
            "Sleep analysis over %d records: %d patterns, score %d",
            len(sleep_records),
            len(patterns),
            clamp_score(score),
        )

        return SleepPatternResult(
            id=str(uuid.uuid4()),
            analysis_time=self._clock(),
            patterns=tuple(patterns),
            recommendations=tuple(_recommend(patterns)),
            quality_score=clamp_score(score),
            average_duration_seconds=average_duration,
        )


def _night_duration_pattern(night_hours: float, count: int) -> Pattern:
    details = {"average_night_hours": round(night_hours, 2), "night_sessions": count}
    if night_hours < SHORT_NIGHT_HOURS:
        return Pattern(
            type="short_night_sleep",
            confidence=0.8,
            description=f"Night sleep averages {night_hours:.1f} hours, below the typical range",
            details=details,
        )
    if night_hours > LONG_NIGHT_HOURS:
        return Pattern(
            type="long_night_sleep",
            confidence=0.8,
            description=f"Night sleep averages {night_hours:.1f} hours, above the typical range",
            details=details,
        )
    return Pattern(
        type="normal_night_sleep",
        confidence=0.9,
        description=f"Night sleep averages {night_hours:.1f} hours",
        details=details,
    )


def _recommend(patterns: Sequence[Pattern]) -> list[Recommendation]:
    matched = [RECOMMENDATIONS[p.type] for p in patterns if p.type in RECOMMENDATIONS]
    if not matched:
        return [GENERAL_RECOMMENDATION]
    return sorted(matched, key=lambda r: r.priority)
