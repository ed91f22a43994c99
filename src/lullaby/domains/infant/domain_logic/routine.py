"""Local routine/regularity analysis across sleep, feeding and activities."""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Sequence
from datetime import timezone, tzinfo

from lullaby.domains.infant.domain_logic.stats import (
    Clock,
    hour_variance,
    start_hours,
    utc_now,
    within,
)
from lullaby.domains.infant.errors import InsufficientDataError
from lullaby.domains.infant.records import ActivityRecord, DateRange
from lullaby.domains.infant.results import (
    Pattern,
    Recommendation,
    RoutineAnalysisResult,
    clamp_score,
)

logger = logging.getLogger(__name__)

SLEEP_REGULAR_VARIANCE = 2.0
SLEEP_IRREGULAR_VARIANCE = 4.0
FEEDING_REGULAR_VARIANCE = 1.5
FEEDING_IRREGULAR_VARIANCE = 3.0
DOMINANT_FEEDING_SHARE = 0.7
DIVERSE_ACTIVITY_TYPES = 3

BASE_SCORE = 70

SCORE_DELTAS = {
    "regular_sleep_schedule": 10,
    "irregular_sleep_schedule": -10,
    "regular_feeding_schedule": 10,
    "irregular_feeding_schedule": -10,
    "diverse_activities": 5,
    "insufficient_data_pattern": -5,
}

RECOMMENDATIONS = {
    "irregular_sleep_schedule": Recommendation(
        category="sleep_schedule",
        suggestion="Try to start naps and night sleep at similar times each day.",
        priority=1,
    ),
    "irregular_feeding_schedule": Recommendation(
        category="feeding_schedule",
        suggestion="Feeding times vary widely. A more predictable rhythm can help.",
        priority=2,
    ),
    "insufficient_data_pattern": Recommendation(
        category="data_collection",
        suggestion="Log sleep, feeding and activities for a few more days to reveal a routine.",
        priority=3,
    ),
}

GENERAL_RECOMMENDATION = Recommendation(
    category="general",
    suggestion="The daily routine looks steady. Keep it up.",
    priority=3,
)


class RoutineAnalyzer:
    """Regularity diagnostics from the distribution of event start hours.

    At least one of the three inputs must be non-empty.
    """

    def __init__(self, *, clock: Clock = utc_now, tz: tzinfo | None = timezone.utc) -> None:
        self._clock = clock
        self._tz = tz

    def analyze(
        self,
        sleep_records: Sequence[ActivityRecord],
        feeding_records: Sequence[ActivityRecord],
        activity_records: Sequence[ActivityRecord],
        date_range: DateRange | None = None,
    ) -> RoutineAnalysisResult:
        sleeps = within(sleep_records, date_range)
        feedings = within(feeding_records, date_range)
        activities = within(activity_records, date_range)
        if not (sleeps or feedings or activities):
            raise InsufficientDataError("No records to analyze the routine")

        patterns: list[Pattern] = []

        if sleeps:
            variance = hour_variance(start_hours(sleeps, self._tz))
            if variance < SLEEP_REGULAR_VARIANCE:
                patterns.append(Pattern(
                    type="regular_sleep_schedule",
                    confidence=0.85,
                    description="Sleep starts at consistent times",
                    details={"start_hour_variance": round(variance, 3)},
                ))
            elif variance > SLEEP_IRREGULAR_VARIANCE:
                patterns.append(Pattern(
                    type="irregular_sleep_schedule",
                    confidence=0.75,
                    description="Sleep start times vary considerably",
                    details={"start_hour_variance": round(variance, 3)},
                ))

        if feedings:
            variance = hour_variance(start_hours(feedings, self._tz))
            if variance < FEEDING_REGULAR_VARIANCE:
                patterns.append(Pattern(
                    type="regular_feeding_schedule",
                    confidence=0.8,
                    description="Feedings happen at consistent times",
                    details={"start_hour_variance": round(variance, 3)},
                ))
            elif variance > FEEDING_IRREGULAR_VARIANCE:
                patterns.append(Pattern(
                    type="irregular_feeding_schedule",
                    confidence=0.7,
                    description="Feeding times vary considerably",
                    details={"start_hour_variance": round(variance, 3)},
                ))

            dominant = _dominant_feeding(feedings)
            if dominant is not None:
                patterns.append(dominant)

        activity_types = {r.activity_type for r in activities if r.activity_type}
        if len(activity_types) >= DIVERSE_ACTIVITY_TYPES:
            patterns.append(Pattern(
                type="diverse_activities",
                confidence=0.75,
                description=f"{len(activity_types)} different kinds of activities logged",
                details={"activity_types": sorted(activity_types)},
            ))

        if not patterns:
            patterns.append(Pattern(
                type="insufficient_data_pattern",
                confidence=0.5,
                description="Not enough consistent data to identify a routine yet",
            ))

        score = BASE_SCORE + sum(SCORE_DELTAS.get(p.type, 0) for p in patterns)

        logger.debug(
            "Routine analysis: %d sleep / %d feeding / %d activity records, score %d",
            len(sleeps),
            len(feedings),
            len(activities),
            clamp_score(score),
        )

        return RoutineAnalysisResult(
            id=str(uuid.uuid4()),
            analysis_time=self._clock(),
            patterns=tuple(patterns),
            recommendations=tuple(_recommend(patterns)),
            regularity_score=clamp_score(score),
        )


def _dominant_feeding(feedings: Sequence[ActivityRecord]) -> Pattern | None:
    counts = Counter(r.feeding_type for r in feedings if r.feeding_type is not None)
    if not counts:
        return None
    feeding_type, count = counts.most_common(1)[0]
    share = count / len(feedings)
    if share <= DOMINANT_FEEDING_SHARE:
        return None
    percentage = count * 100 // len(feedings)
    return Pattern(
        type="dominant_feeding_type",
        confidence=0.9,
        description=f"Mostly {feeding_type.display_name} ({percentage}% of feedings)",
        details={"feeding_type": feeding_type.value, "percentage": percentage},
    )


def _recommend(patterns: Sequence[Pattern]) -> list[Recommendation]:
    matched = [RECOMMENDATIONS[p.type] for p in patterns if p.type in RECOMMENDATIONS]
    if not matched:
        return [GENERAL_RECOMMENDATION]
    return sorted(matched, key=lambda r: r.priority)
