"""HTTP client for the cloud analysis API.

Each call fetches a fresh credential, POSTs an anonymized payload and
classifies the outcome into the ``APIError`` family below. The client
never retries; callers fall back to local analysis instead.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol, TypeVar

import httpx

from lullaby.core.cloud.models import (
    PredictionResponse,
    RoutineAnalysisResponse,
    SleepAnalysisResponse,
)
from lullaby.core.privacy.anonymizer import AnonymizedPayload

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.deepseek.com"
DEFAULT_TIMEOUT = 30.0

SLEEP_ANALYZE_PATH = "/v1/baby/sleep/analyze"
ROUTINE_ANALYZE_PATH = "/v1/baby/routine/analyze"
PREDICTION_PATH = "/v1/baby/prediction/generate"

T = TypeVar("T")


class CredentialSource(Protocol):
    def get_credential(self) -> str:
        ...


class RemoteAnalysisClient:
    """Async client for the cloud analysis endpoints.

    Usage::

        client = RemoteAnalysisClient(secret_provider, base_url="https://api.example.com")
        response = await client.analyze_sleep(payload)
        response.quality_score

    An ``httpx.AsyncClient`` may be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        secret_provider: CredentialSource,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._secrets = secret_provider
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http = http_client

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def analyze_sleep(self, payload: AnonymizedPayload) -> SleepAnalysisResponse:
        return await self._post(
            SLEEP_ANALYZE_PATH, payload.to_dict(), SleepAnalysisResponse.from_dict
        )

    async def analyze_routine(self, payload: AnonymizedPayload) -> RoutineAnalysisResponse:
        return await self._post(
            ROUTINE_ANALYZE_PATH, payload.to_dict(), RoutineAnalysisResponse.from_dict
        )

    async def generate_prediction(
        self,
        sleep_payload: AnonymizedPayload,
        routine_payload: AnonymizedPayload,
    ) -> PredictionResponse:
        body = {
            "sleepData": sleep_payload.to_dict(),
            "routineData": routine_payload.to_dict(),
        }
        return await self._post(PREDICTION_PATH, body, PredictionResponse.from_dict)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _post(
        self,
        path: str,
        body: dict[str, Any],
        decode: Callable[[dict[str, Any]], T],
    ) -> T:
        credential = self._secrets.get_credential()
        if not credential:
            raise InvalidAPIKeyError("No cloud API credential available")

        url = f"{self._base_url}{path}"
        headers = {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
        }
        logger.debug("POST %s", url)

        try:
            if self._http is not None:
                response = await self._http.post(
                    url, json=body, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        url, json=body, headers=headers, timeout=self._timeout
                    )
        except httpx.TimeoutException as exc:
            raise APITimeoutError(f"Request to {path} timed out after {self._timeout}s") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(exc) from exc

        status = response.status_code
        if status == 401:
            raise InvalidAPIKeyError("Cloud API rejected the credential")
        if status == 429:
            raise RateLimitExceededError("Cloud API rate limit exceeded")
        if not 200 <= status < 300:
            raise ServerError(status, response.text)

        try:
            return decode(response.json())
        except (KeyError, TypeError, ValueError) as exc:
            raise DecodingError(f"Unexpected response body from {path}: {exc}") from exc


# ------------------------------------------------------------------
# Exceptions
# ------------------------------------------------------------------

class APIError(Exception):
    """Base exception for cloud API failures."""


class InvalidAPIKeyError(APIError):
    """Credential missing or rejected (HTTP 401)."""


class NetworkError(APIError):
    """Transport failure other than a timeout."""

    def __init__(self, underlying: Exception) -> None:
        super().__init__(f"Network error: {underlying}")
        self.underlying = underlying


class ServerError(APIError):
    """Non-2xx status other than 401/429."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Cloud API returned HTTP {status_code}")
        self.status_code = status_code
        self.body = body


class RateLimitExceededError(APIError):
    """HTTP 429."""


class APITimeoutError(APIError):
    """The request did not complete within the configured timeout."""


class DecodingError(APIError):
    """A 2xx body did not match the expected schema."""
