"""MCP tools for logging sleep, feeding and activity records."""

from __future__ import annotations

import json
import logging
from datetime import date, timezone, tzinfo
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from lullaby.domains.infant.records import (
    ActivityRecord,
    EnvironmentFactors,
    SleepInterruption,
)
from lullaby.domains.infant.tools.insight_tools import parse_timestamp

if TYPE_CHECKING:
    from lullaby.domains.infant.connectors import BabyProfileStore, RecordStore

logger = logging.getLogger(__name__)


def _invalid(exc: Exception) -> str:
    return json.dumps({"status": "error", "error": "invalid_input", "message": str(exc)})


def register_record_tools(
    mcp: FastMCP,
    *,
    sleep_store: RecordStore,
    feeding_store: RecordStore,
    activity_store: RecordStore,
    profiles: BabyProfileStore,
    tz: tzinfo | None = timezone.utc,
) -> None:
    """Register record-logging tools on the MCP server."""

    @mcp.tool
    async def log_sleep(
        ctx: Context,
        baby_id: str,
        start_time: str,
        end_time: str = "",
        quality: int | None = None,
        night_sleep: bool | None = None,
        interruptions: list[dict] | None = None,
        light_level: int | None = None,
        noise_level: int | None = None,
        temperature: float | None = None,
        humidity: float | None = None,
        notes: str = "",
    ) -> str:
        """Log a sleep session.

        Args:
            baby_id: The baby this record belongs to.
            start_time: When the sleep started (ISO 8601).
            end_time: When it ended (ISO 8601). Empty for an ongoing sleep.
            quality: Caregiver rating, 0-100.
            night_sleep: Force night/day classification. Derived from the start hour if omitted.
            interruptions: List of {"duration_seconds": float, "reason": str}.
            light_level: Room light, 0-10.
            noise_level: Room noise, 0-10.
            temperature: Room temperature in Celsius.
            humidity: Room humidity in percent.
            notes: Free-text notes (stored encrypted).
        """
        try:
            environment = None
            if any(v is not None for v in (light_level, noise_level, temperature, humidity)):
                environment = EnvironmentFactors(
                    light_level=light_level,
                    noise_level=noise_level,
                    temperature=temperature,
                    humidity=humidity,
                )
            record = ActivityRecord.sleep(
                baby_id,
                parse_timestamp(start_time, tz),
                parse_timestamp(end_time, tz) if end_time else None,
                quality=quality,
                environment=environment,
                interruptions=[
                    SleepInterruption(
                        duration_seconds=float(i.get("duration_seconds", 0.0)),
                        reason=i.get("reason"),
                    )
                    for i in interruptions or []
                ],
                night_sleep=night_sleep,
                notes=notes or None,
            )
        except (TypeError, ValueError) as exc:
            return _invalid(exc)

        record_id = await sleep_store.save(record)
        logger.info("Logged sleep record %s for %s", record_id, baby_id)
        return json.dumps({
            "status": "saved",
            "record_id": record_id,
            "duration_seconds": record.duration_seconds,
            "night_sleep": record.night_sleep_in(tz),
        })

    @mcp.tool
    async def log_feeding(
        ctx: Context,
        baby_id: str,
        start_time: str,
        feeding_type: str,
        end_time: str = "",
        amount_ml: float | None = None,
        notes: str = "",
    ) -> str:
        """Log a feeding.

        Args:
            baby_id: The baby this record belongs to.
            start_time: When the feeding started (ISO 8601).
            feeding_type: breastfeeding, bottle_breast_milk, formula, solid_food, water or other.
            end_time: When it ended (ISO 8601). Optional.
            amount_ml: Volume in millilitres, if known.
            notes: Free-text notes (stored encrypted).
        """
        try:
            record = ActivityRecord.feeding(
                baby_id,
                parse_timestamp(start_time, tz),
                feeding_type,
                parse_timestamp(end_time, tz) if end_time else None,
                amount_ml=amount_ml,
                notes=notes or None,
            )
        except ValueError as exc:
            return _invalid(exc)

        record_id = await feeding_store.save(record)
        logger.info("Logged feeding record %s for %s", record_id, baby_id)
        return json.dumps({
            "status": "saved",
            "record_id": record_id,
            "feeding_type": record.feeding_type.value,
        })

    @mcp.tool
    async def log_activity(
        ctx: Context,
        baby_id: str,
        activity_type: str,
        start_time: str,
        end_time: str = "",
        notes: str = "",
    ) -> str:
        """Log a generic activity (diaper, bath, play, tummy_time, outdoors, medication, other).

        Args:
            baby_id: The baby this record belongs to.
            activity_type: Kind of activity.
            start_time: When it started (ISO 8601).
            end_time: When it ended (ISO 8601). Optional.
            notes: Free-text notes (stored encrypted).
        """
        try:
            record = ActivityRecord.generic(
                baby_id,
                activity_type.strip().lower(),
                parse_timestamp(start_time, tz),
                parse_timestamp(end_time, tz) if end_time else None,
                notes=notes or None,
            )
        except ValueError as exc:
            return _invalid(exc)

        record_id = await activity_store.save(record)
        logger.info("Logged %s activity %s for %s", record.activity_type, record_id, baby_id)
        return json.dumps({
            "status": "saved",
            "record_id": record_id,
            "activity_type": record.activity_type,
        })

    @mcp.tool
    async def register_baby(
        ctx: Context,
        baby_id: str,
        birth_date: str = "",
        name: str = "",
    ) -> str:
        """Register a baby profile. The birth date is only used to compute age in months.

        Args:
            baby_id: Identifier used by the other tools.
            birth_date: Date of birth (ISO 8601, e.g. '2026-03-01'). Optional.
            name: Display name (stored encrypted). Optional.
        """
        try:
            born = date.fromisoformat(birth_date.strip()) if birth_date else None
        except ValueError as exc:
            return _invalid(exc)

        await profiles.save(baby_id, born, name or None)
        logger.info("Registered baby profile %s", baby_id)
        return json.dumps({
            "status": "saved",
            "baby_id": baby_id,
            "birth_date": born.isoformat() if born else None,
        })
