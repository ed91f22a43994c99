"""Tests for RoutineAnalyzer: regularity across sleep, feeding and activities."""

from __future__ import annotations

import pytest
from conftest import activity, feeding, fixed_clock, night_sleep

from lullaby.domains.infant.domain_logic.routine import RoutineAnalyzer
from lullaby.domains.infant.errors import InsufficientDataError
from lullaby.domains.infant.records import FeedingType


@pytest.fixture
def analyzer() -> RoutineAnalyzer:
    return RoutineAnalyzer(clock=fixed_clock)


def _pattern(result, type_: str):
    return next((p for p in result.patterns if p.type == type_), None)


def test_all_sources_empty_is_insufficient(analyzer):
    with pytest.raises(InsufficientDataError):
        analyzer.analyze([], [], [])


def test_dominant_feeding_type_reports_percentage(analyzer):
    feedings = [feeding(1 + i % 5, 8, FeedingType.FORMULA) for i in range(8)]
    feedings += [feeding(6, 8, FeedingType.BREASTFEEDING), feeding(7, 8, FeedingType.BREASTFEEDING)]
    result = analyzer.analyze([], feedings, [])

    dominant = _pattern(result, "dominant_feeding_type")
    assert dominant is not None
    assert dominant.confidence == 0.9
    assert dominant.details == {"feeding_type": "formula", "percentage": 80}
    assert "80%" in dominant.description


def test_seventy_percent_is_not_dominant(analyzer):
    feedings = [feeding(1, 8, FeedingType.FORMULA) for _ in range(7)]
    feedings += [feeding(2, 8, FeedingType.WATER) for _ in range(3)]
    result = analyzer.analyze([], feedings, [])
    assert _pattern(result, "dominant_feeding_type") is None


def test_regular_sleep_and_feeding(analyzer):
    sleeps = [night_sleep(day) for day in range(1, 5)]
    feedings = [
        feeding(day, 8, FeedingType.FORMULA if day % 2 else FeedingType.BREASTFEEDING)
        for day in range(1, 5)
    ]
    result = analyzer.analyze(sleeps, feedings, [])
    assert {p.type for p in result.patterns} == {"regular_sleep_schedule", "regular_feeding_schedule"}
    assert result.regularity_score == 90
    assert [r.category for r in result.recommendations] == ["general"]


def test_irregular_feeding(analyzer):
    feedings = [feeding(1, hour) for hour in (2, 8, 14, 20)]  # variance 45
    result = analyzer.analyze([], feedings, [])
    assert _pattern(result, "irregular_feeding_schedule") is not None
    assert _pattern(result, "dominant_feeding_type") is not None
    assert result.regularity_score == 60
    assert [(r.category, r.priority) for r in result.recommendations] == [("feeding_schedule", 2)]


def test_recommendations_ordered_by_priority(analyzer):
    sleeps = [night_sleep(1, hour=h) for h in (19, 23, 2, 5)]
    feedings = [feeding(1, hour) for hour in (2, 8, 14, 20)]
    result = analyzer.analyze(sleeps, feedings, [])
    assert [r.category for r in result.recommendations] == ["sleep_schedule", "feeding_schedule"]
    assert result.regularity_score == 50


def test_diverse_activities(analyzer):
    activities = [activity(1, 9, "bath"), activity(1, 11, "play"), activity(1, 15, "outdoors")]
    result = analyzer.analyze([], [], activities)
    diverse = _pattern(result, "diverse_activities")
    assert diverse is not None
    assert diverse.details["activity_types"] == ["bath", "outdoors", "play"]
    assert result.regularity_score == 75


def test_no_patterns_yields_single_insufficient_pattern(analyzer):
    result = analyzer.analyze([], [], [activity(1, 9, "diaper"), activity(1, 12, "diaper")])
    assert len(result.patterns) == 1
    assert result.patterns[0].type == "insufficient_data_pattern"
    assert result.patterns[0].confidence == 0.5
    assert result.regularity_score == 65
    assert [(r.category, r.priority) for r in result.recommendations] == [("data_collection", 3)]


SPREADS = [0, 1, 2, 3, 4, 5, 6]


def _spread_sleeps(spread: int):
    # start-hour variance is spread ** 2
    return [night_sleep(day, hour=12 + (spread if day % 2 else -spread)) for day in range(1, 7)]


def _confidence(result, type_: str) -> float:
    pattern = _pattern(result, type_)
    return pattern.confidence if pattern else 0.0


def test_wider_sleep_spread_never_looks_more_regular(analyzer):
    results = [analyzer.analyze(_spread_sleeps(spread), [], []) for spread in SPREADS]
    regular = [_confidence(r, "regular_sleep_schedule") for r in results]
    irregular = [_confidence(r, "irregular_sleep_schedule") for r in results]
    scores = [r.regularity_score for r in results]

    assert regular == sorted(regular, reverse=True)
    assert irregular == sorted(irregular)
    assert scores == sorted(scores, reverse=True)


@pytest.mark.parametrize("spread", SPREADS)
@pytest.mark.parametrize("feeding_hours", [(8,), (8, 8, 9), (2, 9, 15, 22)])
def test_regularity_score_and_confidences_stay_in_bounds(analyzer, spread, feeding_hours):
    feedings = [feeding(day, hour) for day, hour in enumerate(feeding_hours, start=1)]
    activities = [activity(1, 10, kind) for kind in ("bath", "play", "diaper", "outdoors")]
    result = analyzer.analyze(_spread_sleeps(spread), feedings, activities)
    assert 0 <= result.regularity_score <= 100
    assert all(0.0 <= p.confidence <= 1.0 for p in result.patterns)
