"""Response models for the cloud analysis API.

The API speaks camelCase JSON. ``from_dict`` is strict: a missing or
mistyped required field raises, and the client turns that into a
``DecodingError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RemotePattern:
    type: str
    confidence: float
    description: str
    details: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemotePattern:
        return cls(
            type=_str(data["type"]),
            confidence=float(data["confidence"]),
            description=_str(data["description"]),
            details=dict(data.get("details") or {}),
        )


@dataclass(frozen=True)
class RemoteRecommendation:
    category: str
    suggestion: str
    priority: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteRecommendation:
        return cls(
            category=_str(data["category"]),
            suggestion=_str(data["suggestion"]),
            priority=int(data["priority"]),
        )


@dataclass(frozen=True)
class SleepAnalysisResponse:
    analysis_id: str
    analysis_time: str
    patterns: list[RemotePattern]
    recommendations: list[RemoteRecommendation]
    quality_score: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SleepAnalysisResponse:
        return cls(
            analysis_id=_str(data["analysisId"]),
            analysis_time=_str(data["analysisTime"]),
            patterns=[RemotePattern.from_dict(p) for p in _list(data["patterns"])],
            recommendations=[
                RemoteRecommendation.from_dict(r) for r in _list(data["recommendations"])
            ],
            quality_score=float(data["qualityScore"]),
        )


@dataclass(frozen=True)
class RoutineAnalysisResponse:
    analysis_id: str
    analysis_time: str
    patterns: list[RemotePattern]
    recommendations: list[RemoteRecommendation]
    regularity_score: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoutineAnalysisResponse:
        return cls(
            analysis_id=_str(data["analysisId"]),
            analysis_time=_str(data["analysisTime"]),
            patterns=[RemotePattern.from_dict(p) for p in _list(data["patterns"])],
            recommendations=[
                RemoteRecommendation.from_dict(r) for r in _list(data["recommendations"])
            ],
            regularity_score=float(data["regularityScore"]),
        )


@dataclass(frozen=True)
class RemoteSleepPrediction:
    starts_in_minutes: float
    duration_minutes: float
    confidence: float
    is_night: bool

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteSleepPrediction:
        return cls(
            starts_in_minutes=float(data["startsInMinutes"]),
            duration_minutes=float(data["durationMinutes"]),
            confidence=float(data["confidence"]),
            is_night=bool(data.get("isNight", False)),
        )


@dataclass(frozen=True)
class RemoteFeedingPrediction:
    starts_in_minutes: float
    feeding_type: str
    confidence: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteFeedingPrediction:
        return cls(
            starts_in_minutes=float(data["startsInMinutes"]),
            feeding_type=_str(data["feedingType"]),
            confidence=float(data["confidence"]),
        )


@dataclass(frozen=True)
class PredictionResponse:
    prediction_id: str
    prediction_time: str
    sleep_predictions: list[RemoteSleepPrediction]
    feeding_predictions: list[RemoteFeedingPrediction]
    confidence_score: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PredictionResponse:
        return cls(
            prediction_id=_str(data["predictionId"]),
            prediction_time=_str(data["predictionTime"]),
            sleep_predictions=[
                RemoteSleepPrediction.from_dict(p) for p in _list(data["sleepPredictions"])
            ],
            feeding_predictions=[
                RemoteFeedingPrediction.from_dict(p) for p in _list(data["feedingPredictions"])
            ],
            confidence_score=float(data["confidenceScore"]),
        )


def _str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"Expected string, got {type(value).__name__}")
    return value


def _list(value: Any) -> list:
    if not isinstance(value, list):
        raise TypeError(f"Expected list, got {type(value).__name__}")
    return value
