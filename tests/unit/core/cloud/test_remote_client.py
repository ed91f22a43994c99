"""Tests for RemoteAnalysisClient against httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest
from conftest import StaticCredentials, night_sleep, run

from lullaby.core.cloud.client import (
    APITimeoutError,
    DecodingError,
    InvalidAPIKeyError,
    NetworkError,
    RateLimitExceededError,
    RemoteAnalysisClient,
    ServerError,
)
from lullaby.core.privacy.anonymizer import DataAnonymizer, PayloadKind

BASE_URL = "https://cloud.test"

SLEEP_RESPONSE = {
    "analysisId": "remote-1",
    "analysisTime": "2026-03-10T12:00:00Z",
    "patterns": [{"type": "normal_night_sleep", "confidence": 0.9, "description": "ok"}],
    "recommendations": [{"category": "general", "suggestion": "keep going", "priority": 3}],
    "qualityScore": 88,
}

PREDICTION_RESPONSE = {
    "predictionId": "pred-1",
    "predictionTime": "2026-03-10T12:00:00Z",
    "sleepPredictions": [{"startsInMinutes": 90, "durationMinutes": 600, "confidence": 0.8, "isNight": True}],
    "feedingPredictions": [{"startsInMinutes": 30, "feedingType": "formula", "confidence": 0.7}],
    "confidenceScore": 72,
}


def _payload():
    return DataAnonymizer("device").anonymize([night_sleep(1), night_sleep(2)], PayloadKind.SLEEP)


def _exchange(handler, method: str, *args, credentials=None):
    """Build a coroutine calling ``method`` over a MockTransport, plus the request log."""
    requests: list[httpx.Request] = []

    def _recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(_recording)) as http:
            client = RemoteAnalysisClient(
                credentials or StaticCredentials(),
                base_url=BASE_URL,
                http_client=http,
            )
            return await getattr(client, method)(*args)

    return _go, requests


def _call(handler, method: str, *args):
    go, requests = _exchange(handler, method, *args)
    return run(go()), requests


class TestSuccess:
    def test_sleep_request_and_decode(self):
        response, requests = _call(lambda r: httpx.Response(200, json=SLEEP_RESPONSE), "analyze_sleep", _payload())
        assert response.analysis_id == "remote-1"
        assert response.quality_score == 88
        assert response.patterns[0].type == "normal_night_sleep"

        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/v1/baby/sleep/analyze"
        assert request.headers["Authorization"] == "Bearer test-credential"
        assert request.headers["Content-Type"] == "application/json"
        body = json.loads(request.content)
        assert body["kind"] == "sleep"
        assert body["recordCount"] == 2

    def test_routine_endpoint(self):
        routine = {**SLEEP_RESPONSE, "regularityScore": 64}
        del routine["qualityScore"]
        payload = DataAnonymizer("device").anonymize([night_sleep(1)], PayloadKind.ROUTINE)
        response, requests = _call(lambda r: httpx.Response(200, json=routine), "analyze_routine", payload)
        assert response.regularity_score == 64
        assert requests[0].url.path == "/v1/baby/routine/analyze"

    def test_prediction_body_wraps_both_payloads(self):
        response, requests = _call(
            lambda r: httpx.Response(200, json=PREDICTION_RESPONSE),
            "generate_prediction",
            _payload(),
            _payload(),
        )
        assert response.sleep_predictions[0].is_night is True
        assert response.feeding_predictions[0].feeding_type == "formula"
        assert requests[0].url.path == "/v1/baby/prediction/generate"
        assert set(json.loads(requests[0].content)) == {"sleepData", "routineData"}


class TestClassification:
    def test_empty_credential_fails_before_request(self):
        go, requests = _exchange(
            lambda r: httpx.Response(200, json=SLEEP_RESPONSE),
            "analyze_sleep",
            _payload(),
            credentials=StaticCredentials(""),
        )
        with pytest.raises(InvalidAPIKeyError):
            run(go())
        assert requests == []

    def test_401(self):
        go, _ = _exchange(lambda r: httpx.Response(401, text="bad key"), "analyze_sleep", _payload())
        with pytest.raises(InvalidAPIKeyError):
            run(go())

    def test_429(self):
        go, _ = _exchange(lambda r: httpx.Response(429), "analyze_sleep", _payload())
        with pytest.raises(RateLimitExceededError):
            run(go())

    def test_other_status_is_server_error(self):
        go, _ = _exchange(lambda r: httpx.Response(503, text="maintenance"), "analyze_sleep", _payload())
        with pytest.raises(ServerError) as excinfo:
            run(go())
        assert excinfo.value.status_code == 503
        assert excinfo.value.body == "maintenance"

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        go, _ = _exchange(handler, "analyze_sleep", _payload())
        with pytest.raises(APITimeoutError):
            run(go())

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        go, _ = _exchange(handler, "analyze_sleep", _payload())
        with pytest.raises(NetworkError) as excinfo:
            run(go())
        assert isinstance(excinfo.value.underlying, httpx.ConnectError)

    def test_invalid_json(self):
        go, _ = _exchange(lambda r: httpx.Response(200, text="<html>"), "analyze_sleep", _payload())
        with pytest.raises(DecodingError):
            run(go())

    def test_missing_field(self):
        body = {k: v for k, v in SLEEP_RESPONSE.items() if k != "qualityScore"}
        go, _ = _exchange(lambda r: httpx.Response(200, json=body), "analyze_sleep", _payload())
        with pytest.raises(DecodingError):
            run(go())

    def test_wrong_type(self):
        body = {**SLEEP_RESPONSE, "patterns": "none"}
        go, _ = _exchange(lambda r: httpx.Response(200, json=body), "analyze_sleep", _payload())
        with pytest.raises(DecodingError):
            run(go())

    def test_no_retry(self):
        go, requests = _exchange(lambda r: httpx.Response(500), "analyze_sleep", _payload())
        with pytest.raises(ServerError):
            run(go())
        assert len(requests) == 1
