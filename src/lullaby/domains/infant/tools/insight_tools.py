"""MCP tools for sleep, routine and prediction insights.

Each tool fetches the baby's records for a window, lets the hybrid engine
pick the local or cloud path, and returns the result as JSON text.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from lullaby.core.cloud.policy import AnalysisPreferences
from lullaby.domains.infant.errors import (
    InsufficientDataError,
    ProcessingError,
    RecordFetchError,
)
from lullaby.domains.infant.records import DateRange

if TYPE_CHECKING:
    from lullaby.domains.infant.engine import HybridAnalysisEngine

logger = logging.getLogger(__name__)

_ERROR_CODES = (
    (InsufficientDataError, "insufficient_data"),
    (ProcessingError, "processing_error"),
    (RecordFetchError, "record_fetch_error"),
)


def parse_timestamp(value: str, tz: tzinfo | None) -> datetime:
    """ISO 8601 timestamp; naive values are read in ``tz``."""
    moment = datetime.fromisoformat(value.strip())
    if moment.tzinfo is None and tz is not None:
        moment = moment.replace(tzinfo=tz)
    return moment


def resolve_range(start: str, end: str, days: int, tz: tzinfo | None, now: datetime) -> DateRange:
    end_at = parse_timestamp(end, tz) if end else now
    start_at = parse_timestamp(start, tz) if start else end_at - timedelta(days=days)
    return DateRange(start_at, end_at)


def error_response(exc: Exception) -> str:
    for error_type, code in _ERROR_CODES:
        if isinstance(exc, error_type):
            return json.dumps({"status": "error", "error": code, "message": str(exc)})
    return json.dumps({"status": "error", "error": "invalid_input", "message": str(exc)})


def register_insight_tools(
    mcp: FastMCP,
    engine: HybridAnalysisEngine,
    default_preferences: AnalysisPreferences,
    *,
    tz: tzinfo | None = timezone.utc,
) -> None:
    """Register the three insight tools on the MCP server."""

    def _preferences(use_cloud: bool | None) -> AnalysisPreferences:
        if use_cloud is None:
            return default_preferences
        return AnalysisPreferences(
            cloud_enabled=use_cloud,
            wifi_only=default_preferences.wifi_only,
            anonymize_data=default_preferences.anonymize_data,
        )

    async def _run(name: str, call: Any, baby_id: str, start: str, end: str, days: int, use_cloud: bool | None) -> str:
        try:
            date_range = resolve_range(start, end, days, tz, datetime.now(timezone.utc))
        except ValueError as exc:
            return error_response(exc)
        try:
            result = await call(baby_id, date_range, _preferences(use_cloud))
        except (InsufficientDataError, ProcessingError, RecordFetchError) as exc:
            logger.info("%s for %s returned no result: %s", name, baby_id, exc)
            return error_response(exc)
        payload = {"status": "ok", **result.to_dict()}
        payload["source_description"] = result.source.description
        return json.dumps(payload)

    @mcp.tool
    async def analyze_sleep_pattern(
        ctx: Context,
        baby_id: str,
        days: int = 7,
        start: str = "",
        end: str = "",
        use_cloud: bool | None = None,
    ) -> str:
        """Analyze sleep duration, interruptions and bedtime regularity.

        Args:
            baby_id: The baby whose records to analyze.
            days: Window length ending at ``end`` (or now) when ``start`` is empty.
            start: Window start (ISO 8601). Optional.
            end: Window end (ISO 8601). Defaults to now.
            use_cloud: Override the configured cloud opt-in for this call.
        """
        return await _run("Sleep analysis", engine.analyze_sleep_pattern, baby_id, start, end, days, use_cloud)

    @mcp.tool
    async def analyze_routine(
        ctx: Context,
        baby_id: str,
        days: int = 7,
        start: str = "",
        end: str = "",
        use_cloud: bool | None = None,
    ) -> str:
        """Analyze how regular sleep, feeding and activities are.

        Args:
            baby_id: The baby whose records to analyze.
            days: Window length ending at ``end`` (or now) when ``start`` is empty.
            start: Window start (ISO 8601). Optional.
            end: Window end (ISO 8601). Defaults to now.
            use_cloud: Override the configured cloud opt-in for this call.
        """
        return await _run("Routine analysis", engine.analyze_routine, baby_id, start, end, days, use_cloud)

    @mcp.tool
    async def predict_next_events(
        ctx: Context,
        baby_id: str,
        days: int = 14,
        start: str = "",
        end: str = "",
        use_cloud: bool | None = None,
    ) -> str:
        """Predict the next sleep and feeding times from recent history.

        Args:
            baby_id: The baby whose records to use.
            days: History window length when ``start`` is empty.
            start: Window start (ISO 8601). Optional.
            end: Window end (ISO 8601). Defaults to now.
            use_cloud: Override the configured cloud opt-in for this call.
        """
        return await _run("Prediction", engine.predict_next_events, baby_id, start, end, days, use_cloud)
