"""Hybrid analysis engine: local analyzers with an optional cloud path.

Every entry point follows the same flow:

1. fetch the record sets it needs, concurrently and fail-fast
2. reject structurally empty input with ``InsufficientDataError``
3. ask ``CloudPolicy`` whether the cloud path is allowed
4. if so, anonymize, call the remote API and map the response
5. on any cloud failure, log it and run the local analyzer instead

Callers only ever see a result, ``InsufficientDataError``,
``ProcessingError`` or ``RecordFetchError``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date, timedelta, timezone, tzinfo
from typing import TypeVar

from lullaby.core.cloud.client import APIError, RemoteAnalysisClient
from lullaby.core.cloud.models import (
    PredictionResponse,
    RemotePattern,
    RemoteRecommendation,
    RoutineAnalysisResponse,
    SleepAnalysisResponse,
)
from lullaby.core.cloud.policy import AnalysisPreferences, CloudPolicy
from lullaby.core.privacy.anonymizer import DataAnonymizer, PayloadKind
from lullaby.domains.infant.connectors import BabyProfileStore, RecordStore
from lullaby.domains.infant.domain_logic.prediction import PredictionEngine
from lullaby.domains.infant.domain_logic.routine import RoutineAnalyzer
from lullaby.domains.infant.domain_logic.sleep_pattern import SleepPatternAnalyzer
from lullaby.domains.infant.domain_logic.stats import Clock, mean_or_zero, utc_now
from lullaby.domains.infant.errors import (
    CloudAnalysisDisabledError,
    InsufficientDataError,
    ProcessingError,
    RecordFetchError,
)
from lullaby.domains.infant.records import ActivityRecord, DateRange
from lullaby.domains.infant.results import (
    AnalysisSource,
    FeedingPrediction,
    Pattern,
    PredictionResult,
    Recommendation,
    RoutineAnalysisResult,
    SleepPatternResult,
    SleepPrediction,
    clamp_confidence,
    clamp_score,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

SLEEP = "sleep"
FEEDING = "feeding"
ACTIVITY = "activity"


class HybridAnalysisEngine:
    """Chooses between local and cloud analysis for each insight.

    Usage::

        engine = HybridAnalysisEngine(
            sleep_store=sleep, feeding_store=feeding, activity_store=activities,
            policy=CloudPolicy(network), remote=client, anonymizer=anonymizer,
        )
        result = await engine.analyze_sleep_pattern("baby-1", last_week)
        result.source  # AnalysisSource.LOCAL or AnalysisSource.CLOUD
    """

    def __init__(
        self,
        *,
        sleep_store: RecordStore,
        feeding_store: RecordStore,
        activity_store: RecordStore,
        policy: CloudPolicy,
        remote: RemoteAnalysisClient | None = None,
        anonymizer: DataAnonymizer | None = None,
        profiles: BabyProfileStore | None = None,
        preferences: AnalysisPreferences | None = None,
        clock: Clock = utc_now,
        tz: tzinfo | None = timezone.utc,
    ) -> None:
        self._stores = {SLEEP: sleep_store, FEEDING: feeding_store, ACTIVITY: activity_store}
        self._policy = policy
        self._remote = remote
        self._anonymizer = anonymizer
        self._profiles = profiles
        self._preferences = preferences or AnalysisPreferences()
        self._clock = clock

        self._sleep_analyzer = SleepPatternAnalyzer(clock=clock, tz=tz)
        self._routine_analyzer = RoutineAnalyzer(clock=clock, tz=tz)
        self._prediction_engine = PredictionEngine(clock=clock, tz=tz)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def analyze_sleep_pattern(
        self,
        baby_id: str,
        date_range: DateRange,
        preferences: AnalysisPreferences | None = None,
    ) -> SleepPatternResult:
        fetched = await self._fetch(baby_id, date_range, (SLEEP,))
        sleeps = fetched[SLEEP]
        if not sleeps:
            raise InsufficientDataError("No sleep records in the requested range")

        async def cloud() -> SleepPatternResult:
            remote, anonymizer = self._cloud_parts()
            birth_date = await self._birth_date(baby_id)
            payload = anonymizer.anonymize(sleeps, PayloadKind.SLEEP, birth_date=birth_date)
            response = await remote.analyze_sleep(payload)
            return self._map_sleep(response, sleeps)

        return await self._run(
            "sleep",
            preferences,
            cloud,
            lambda: self._sleep_analyzer.analyze(sleeps, date_range),
        )

    async def analyze_routine(
        self,
        baby_id: str,
        date_range: DateRange,
        preferences: AnalysisPreferences | None = None,
    ) -> RoutineAnalysisResult:
        fetched = await self._fetch(baby_id, date_range, (SLEEP, FEEDING, ACTIVITY))
        sleeps, feedings, activities = fetched[SLEEP], fetched[FEEDING], fetched[ACTIVITY]
        if not (sleeps or feedings or activities):
            raise InsufficientDataError("No records in the requested range")

        async def cloud() -> RoutineAnalysisResult:
            remote, anonymizer = self._cloud_parts()
            birth_date = await self._birth_date(baby_id)
            payload = anonymizer.anonymize(
                [*sleeps, *feedings, *activities], PayloadKind.ROUTINE, birth_date=birth_date
            )
            response = await remote.analyze_routine(payload)
            return self._map_routine(response)

        return await self._run(
            "routine",
            preferences,
            cloud,
            lambda: self._routine_analyzer.analyze(sleeps, feedings, activities, date_range),
        )

    async def predict_next_events(
        self,
        baby_id: str,
        date_range: DateRange,
        preferences: AnalysisPreferences | None = None,
    ) -> PredictionResult:
        fetched = await self._fetch(baby_id, date_range, (SLEEP, FEEDING, ACTIVITY))
        sleeps, feedings, activities = fetched[SLEEP], fetched[FEEDING], fetched[ACTIVITY]
        if not (sleeps or feedings or activities):
            raise InsufficientDataError("No records in the requested range")

        async def cloud() -> PredictionResult:
            remote, anonymizer = self._cloud_parts()
            birth_date = await self._birth_date(baby_id)
            # One origin for both payloads keeps their offsets comparable.
            origin = min(r.start_time for r in (*sleeps, *feedings, *activities))
            sleep_payload = anonymizer.anonymize(
                sleeps, PayloadKind.SLEEP, birth_date=birth_date, origin=origin
            )
            routine_payload = anonymizer.anonymize(
                [*feedings, *activities], PayloadKind.ROUTINE, birth_date=birth_date, origin=origin
            )
            response = await remote.generate_prediction(sleep_payload, routine_payload)
            return self._map_prediction(response)

        return await self._run(
            "prediction",
            preferences,
            cloud,
            lambda: self._prediction_engine.predict(sleeps, feedings, activities, date_range),
        )

    # ------------------------------------------------------------------
    # Orchestration helpers
    # ------------------------------------------------------------------

    async def _fetch(
        self,
        baby_id: str,
        date_range: DateRange,
        names: tuple[str, ...],
    ) -> dict[str, list[ActivityRecord]]:
        """Fetch record sets concurrently. The first failure cancels the rest."""
        tasks = {
            name: asyncio.ensure_future(self._stores[name].fetch(baby_id, date_range))
            for name in names
        }
        try:
            done, pending = await asyncio.wait(
                tasks.values(), return_when=asyncio.FIRST_EXCEPTION
            )
        except asyncio.CancelledError:
            for task in tasks.values():
                task.cancel()
            raise

        failed = next(
            (
                (name, task)
                for name, task in tasks.items()
                if task in done and not task.cancelled() and task.exception() is not None
            ),
            None,
        )
        if failed is not None:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            name, task = failed
            exc = task.exception()
            logger.warning("Fetching %s records for analysis failed: %s", name, exc)
            raise RecordFetchError(name, str(exc)) from exc

        results: dict[str, list[ActivityRecord]] = {}
        for name, task in tasks.items():
            value = task.result()
            if not isinstance(value, list):
                raise ProcessingError(f"{name} store returned {type(value).__name__}, expected a list")
            results[name] = value
        return results

    async def _run(
        self,
        label: str,
        preferences: AnalysisPreferences | None,
        cloud: Callable[[], Awaitable[R]],
        local: Callable[[], R],
    ) -> R:
        try:
            self._ensure_cloud_permitted(preferences or self._preferences)
        except CloudAnalysisDisabledError as exc:
            logger.debug("Local %s analysis: %s", label, exc)
            return local()

        try:
            result = await cloud()
        except APIError as exc:
            logger.warning("Cloud %s analysis failed (%s), falling back to local analysis", label, exc)
        except Exception:
            logger.exception("Cloud %s analysis failed, falling back to local analysis", label)
        else:
            logger.info("Cloud %s analysis succeeded", label)
            return result
        return local()

    def _ensure_cloud_permitted(self, preferences: AnalysisPreferences) -> None:
        if self._remote is None or self._anonymizer is None:
            raise CloudAnalysisDisabledError("no cloud client configured")
        if not self._policy.cloud_analysis_permitted(preferences):
            raise CloudAnalysisDisabledError("cloud analysis not permitted")

    def _cloud_parts(self) -> tuple[RemoteAnalysisClient, DataAnonymizer]:
        if self._remote is None or self._anonymizer is None:
            raise CloudAnalysisDisabledError("no cloud client configured")
        return self._remote, self._anonymizer

    async def _birth_date(self, baby_id: str) -> date | None:
        if self._profiles is None:
            return None
        return await self._profiles.get_birth_date(baby_id)

    # ------------------------------------------------------------------
    # Response mapping
    # ------------------------------------------------------------------

    def _map_sleep(
        self,
        response: SleepAnalysisResponse,
        sleeps: list[ActivityRecord],
    ) -> SleepPatternResult:
        return SleepPatternResult(
            id=response.analysis_id,
            analysis_time=self._clock(),
            patterns=tuple(_pattern(p) for p in response.patterns),
            recommendations=tuple(_recommendation(r) for r in response.recommendations),
            quality_score=clamp_score(response.quality_score),
            average_duration_seconds=mean_or_zero([r.duration_seconds or 0.0 for r in sleeps]),
            source=AnalysisSource.CLOUD,
        )

    def _map_routine(self, response: RoutineAnalysisResponse) -> RoutineAnalysisResult:
        return RoutineAnalysisResult(
            id=response.analysis_id,
            analysis_time=self._clock(),
            patterns=tuple(_pattern(p) for p in response.patterns),
            recommendations=tuple(_recommendation(r) for r in response.recommendations),
            regularity_score=clamp_score(response.regularity_score),
            source=AnalysisSource.CLOUD,
        )

    def _map_prediction(self, response: PredictionResponse) -> PredictionResult:
        now = self._clock()
        return PredictionResult(
            id=response.prediction_id,
            prediction_time=now,
            sleep_predictions=tuple(
                SleepPrediction(
                    predicted_start_time=now + timedelta(minutes=p.starts_in_minutes),
                    predicted_duration_seconds=p.duration_minutes * 60,
                    confidence=clamp_confidence(p.confidence),
                    is_night=p.is_night,
                )
                for p in response.sleep_predictions
            ),
            feeding_predictions=tuple(
                sorted(
                    (
                        FeedingPrediction(
                            predicted_time=now + timedelta(minutes=p.starts_in_minutes),
                            predicted_type=p.feeding_type,
                            confidence=clamp_confidence(p.confidence),
                        )
                        for p in response.feeding_predictions
                    ),
                    key=lambda f: f.predicted_time,
                )
            ),
            confidence_score=clamp_score(response.confidence_score),
            source=AnalysisSource.CLOUD,
        )


def _pattern(remote: RemotePattern) -> Pattern:
    return Pattern(
        type=remote.type,
        confidence=clamp_confidence(remote.confidence),
        description=remote.description,
        details=remote.details,
    )


def _recommendation(remote: RemoteRecommendation) -> Recommendation:
    return Recommendation(
        category=remote.category,
        suggestion=remote.suggestion,
        priority=remote.priority,
    )
