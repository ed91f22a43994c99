"""Short-horizon predictions of the next sleep and feeding events."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone, tzinfo

from lullaby.domains.infant.domain_logic.stats import (
    Clock,
    hour_variance,
    mean_or_zero,
    start_hours,
    utc_now,
    within,
)
from lullaby.domains.infant.errors import InsufficientDataError
from lullaby.domains.infant.records import ActivityRecord, DateRange, FeedingType, local_time
from lullaby.domains.infant.results import (
    FeedingPrediction,
    PredictionResult,
    SleepPrediction,
    clamp_score,
)

logger = logging.getLogger(__name__)

NIGHT_CONFIDENCE = 0.8
DAY_CONFIDENCE = 0.6
FEEDING_CONFIDENCE = 0.7
MIN_FEEDINGS_PER_TYPE = 3

BASE_SCORE = 50


class PredictionEngine:
    """Predicts the next night sleep, day nap and per-type feedings.

    Sleep predictions land at today's cohort mean start hour, or tomorrow's
    when that hour has already passed. Feeding predictions extrapolate the
    mean interval between feedings of the same type.
    """

    def __init__(self, *, clock: Clock = utc_now, tz: tzinfo | None = timezone.utc) -> None:
        self._clock = clock
        self._tz = tz

    def predict(
        self,
        sleep_records: Sequence[ActivityRecord],
        feeding_records: Sequence[ActivityRecord],
        activity_records: Sequence[ActivityRecord],
        date_range: DateRange | None = None,
    ) -> PredictionResult:
        sleeps = within(sleep_records, date_range)
        feedings = within(feeding_records, date_range)
        activities = within(activity_records, date_range)
        if not sleeps:
            raise InsufficientDataError("Predictions need at least one sleep record")

        now = self._clock()

        sleep_predictions: list[SleepPrediction] = []
        night = [r for r in sleeps if r.night_sleep_in(self._tz)]
        day = [r for r in sleeps if not r.night_sleep_in(self._tz)]
        for cohort, confidence, is_night in (
            (night, NIGHT_CONFIDENCE, True),
            (day, DAY_CONFIDENCE, False),
        ):
            if not cohort:
                continue
            mean_hour = mean_or_zero(start_hours(cohort, self._tz))
            sleep_predictions.append(SleepPrediction(
                predicted_start_time=self._next_occurrence(now, int(mean_hour)),
                predicted_duration_seconds=mean_or_zero([r.duration_seconds or 0.0 for r in cohort]),
                confidence=confidence,
                is_night=is_night,
            ))

        feeding_predictions = sorted(
            self._predict_feedings(feedings, now),
            key=lambda p: p.predicted_time,
        )

        score = BASE_SCORE
        score += _volume_bonus(len(sleeps))
        score += _volume_bonus(len(feedings))
        if len(activities) > 10:
            score += 5
        variance = hour_variance(start_hours(sleeps, self._tz))
        if variance < 2.0:
            score += 15
        elif variance > 4.0:
            score -= 10

        logger.debug(
            "Prediction: %d sleep / %d feeding predictions, confidence %d",
            len(sleep_predictions),
            len(feeding_predictions),
            clamp_score(score),
        )

        return PredictionResult(
            id=str(uuid.uuid4()),
            prediction_time=now,
            sleep_predictions=tuple(sleep_predictions),
            feeding_predictions=tuple(feeding_predictions),
            confidence_score=clamp_score(score),
        )

    def _next_occurrence(self, now: datetime, hour: int) -> datetime:
        local_now = local_time(now, self._tz)
        candidate = local_now.replace(hour=hour, minute=0, second=0, microsecond=0)
        if candidate < local_now:
            candidate += timedelta(days=1)
        return candidate

    def _predict_feedings(
        self,
        feedings: Sequence[ActivityRecord],
        now: datetime,
    ) -> list[FeedingPrediction]:
        by_type: dict[FeedingType, list[ActivityRecord]] = defaultdict(list)
        for record in feedings:
            if record.feeding_type is not None:
                by_type[record.feeding_type].append(record)

        predictions = []
        for feeding_type, group in by_type.items():
            if len(group) < MIN_FEEDINGS_PER_TYPE:
                continue
            group.sort(key=lambda r: r.start_time)
            intervals = [
                (later.start_time - earlier.start_time).total_seconds()
                for earlier, later in zip(group, group[1:])
            ]
            mean_interval = timedelta(seconds=mean_or_zero(intervals))
            predicted = group[-1].start_time + mean_interval
            if predicted < now:
                predicted = now + mean_interval
            predictions.append(FeedingPrediction(
                predicted_time=predicted,
                predicted_type=feeding_type.value,
                confidence=FEEDING_CONFIDENCE,
            ))
        return predictions


def _volume_bonus(count: int) -> int:
    if count > 10:
        return 10
    if count > 5:
        return 5
    return 0
