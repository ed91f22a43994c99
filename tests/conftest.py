"""Shared test fixtures for Lullaby tests."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("CLOUD_ANALYSIS_ENABLED", "false")
    monkeypatch.setenv("TIMEZONE", "UTC")
    monkeypatch.setenv("DB_PATH", str(tmp_path / "records.db"))
    monkeypatch.setenv("SECURE_STORE_PATH", str(tmp_path / "secrets.json"))
    monkeypatch.setenv("CLOUD_API_BASE_URL", "http://cloud.invalid")
    monkeypatch.setenv("LULLABY_HOST", "127.0.0.1")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from lullaby.domains.infant.records import (  # noqa: E402
    ActivityRecord,
    DateRange,
    FeedingType,
    SleepInterruption,
)

# Fixed "now" for deterministic analyzer output: 2026-03-10 12:00 UTC
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
BABY = "baby-1"


def run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def fixed_clock() -> datetime:
    return NOW


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """A UTC timestamp on ``day`` of March 2026."""
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


def night_sleep(day: int, hour: int = 20, hours: float = 10.0, **kwargs) -> ActivityRecord:
    start = at(day, hour)
    return ActivityRecord.sleep(BABY, start, start + timedelta(hours=hours), **kwargs)


def nap(day: int, hour: int = 13, hours: float = 1.5, **kwargs) -> ActivityRecord:
    start = at(day, hour)
    return ActivityRecord.sleep(BABY, start, start + timedelta(hours=hours), **kwargs)


def feeding(day: int, hour: int, feeding_type: FeedingType = FeedingType.FORMULA, **kwargs) -> ActivityRecord:
    start = at(day, hour)
    return ActivityRecord.feeding(BABY, start, feeding_type, start + timedelta(minutes=20), **kwargs)


def activity(day: int, hour: int, activity_type: str = "play") -> ActivityRecord:
    start = at(day, hour)
    return ActivityRecord.generic(BABY, activity_type, start, start + timedelta(minutes=30))


def interruptions(count: int, reason: str = "hungry") -> list[SleepInterruption]:
    return [SleepInterruption(duration_seconds=300, reason=reason) for _ in range(count)]


@pytest.fixture
def week() -> DateRange:
    return DateRange(at(1, 0), NOW)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

class StaticCredentials:
    """Credential source returning a fixed value."""

    def __init__(self, value: str = "test-credential") -> None:
        self.value = value

    def get_credential(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def record_db():
    """Create an in-memory RecordDatabase for testing."""
    from lullaby.core.storage.database import RecordDatabase

    db = RecordDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_cipher():
    """Create a FieldCipher with a test key."""
    from cryptography.fernet import Fernet

    from lullaby.core.security.cipher import FieldCipher

    return FieldCipher(Fernet.generate_key().decode())


@pytest.fixture
def record_repository(record_db, field_cipher):
    """Create a RecordRepository backed by in-memory SQLite."""
    from lullaby.core.storage.repository import RecordRepository

    return RecordRepository(record_db, field_cipher)
