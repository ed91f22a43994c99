"""Result types produced by the local analyzers and the hybrid engine."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any


class AnalysisSource(str, Enum):
    """Which path produced a result."""

    LOCAL = "local"
    CLOUD = "cloud"

    @property
    def description(self) -> str:
        if self is AnalysisSource.CLOUD:
            return "Provided by cloud AI analysis"
        return "Provided by on-device analysis"


@dataclass(frozen=True)
class Pattern:
    type: str
    confidence: float  # 0-1
    description: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Recommendation:
    category: str
    suggestion: str
    priority: int  # lower = more urgent


@dataclass(frozen=True)
class SleepPatternResult:
    id: str
    analysis_time: datetime
    patterns: tuple[Pattern, ...]
    recommendations: tuple[Recommendation, ...]
    quality_score: int  # 0-100
    average_duration_seconds: float | None = None
    source: AnalysisSource = AnalysisSource.LOCAL

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(frozen=True)
class RoutineAnalysisResult:
    id: str
    analysis_time: datetime
    patterns: tuple[Pattern, ...]
    recommendations: tuple[Recommendation, ...]
    regularity_score: int  # 0-100
    source: AnalysisSource = AnalysisSource.LOCAL

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(frozen=True)
class SleepPrediction:
    predicted_start_time: datetime
    predicted_duration_seconds: float
    confidence: float
    is_night: bool = False


@dataclass(frozen=True)
class FeedingPrediction:
    predicted_time: datetime
    predicted_type: str
    confidence: float


@dataclass(frozen=True)
class PredictionResult:
    id: str
    prediction_time: datetime
    sleep_predictions: tuple[SleepPrediction, ...]
    feeding_predictions: tuple[FeedingPrediction, ...]
    confidence_score: int  # 0-100
    source: AnalysisSource = AnalysisSource.LOCAL

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


def clamp_score(score: float) -> int:
    """Clamp to the integer 0-100 range used by every score."""
    return int(min(100, max(0, round(score))))


def clamp_confidence(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


def _to_dict(obj: Any) -> Any:
    """JSON-friendly view: datetimes as ISO strings, enums as values."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [_to_dict(v) for v in obj]
    if isinstance(obj, dict):
        return {k: _to_dict(v) for k, v in obj.items()}
    if hasattr(obj, "__dataclass_fields__"):
        return {f.name: _to_dict(getattr(obj, f.name)) for f in fields(obj)}
    return obj
