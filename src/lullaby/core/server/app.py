"""Lullaby insights MCP server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastmcp import FastMCP

from lullaby.core.cloud.client import RemoteAnalysisClient
from lullaby.core.cloud.policy import (
    AnalysisPreferences,
    CloudPolicy,
    NetworkStatus,
    StaticNetworkStatus,
)
from lullaby.core.config.settings import Settings, get_settings
from lullaby.core.privacy.anonymizer import DataAnonymizer
from lullaby.core.security.cipher import EncryptionError, FieldCipher
from lullaby.core.security.credentials import SecretProvider
from lullaby.core.security.secure_store import (
    DeviceIdentity,
    EncryptedFileSecureStore,
    InMemorySecureStore,
    SecureStore,
)
from lullaby.core.storage.database import DatabaseError, RecordDatabase
from lullaby.core.storage.repository import RecordRepository
from lullaby.domains.infant.connectors import BabyProfileStore, RecordStore
from lullaby.domains.infant.connectors.memory import (
    InMemoryBabyProfileStore,
    InMemoryRecordStore,
)
from lullaby.domains.infant.connectors.sqlite import SQLiteBabyProfileStore, SQLiteRecordStore
from lullaby.domains.infant.engine import HybridAnalysisEngine
from lullaby.domains.infant.records import RecordKind
from lullaby.domains.infant.tools.insight_tools import register_insight_tools
from lullaby.domains.infant.tools.record_tools import register_record_tools

logger = logging.getLogger(__name__)


def _resolve_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", name)
        return timezone.utc


def _build_storage(
    settings: Settings,
) -> tuple[dict[RecordKind, RecordStore], BabyProfileStore, RecordRepository | None]:
    """SQLite stores when an encryption key is configured, in-memory otherwise."""
    if settings.encryption_key:
        try:
            cipher = FieldCipher(settings.encryption_key)
            db = RecordDatabase(settings.db_path)
            db.initialize()
            repository = RecordRepository(db, cipher)
            logger.info(
                "Record store initialized: %s (schema v%d)",
                settings.db_path,
                db.get_schema_version(),
            )
            stores = {kind: SQLiteRecordStore(repository, kind) for kind in RecordKind}
            return stores, SQLiteBabyProfileStore(repository), repository
        except (EncryptionError, DatabaseError) as exc:
            logger.error("Failed to initialize storage: %s", exc)
            logger.warning("Continuing without persistence; records live in memory only")
    else:
        logger.info(
            "No ENCRYPTION_KEY configured; records live in memory only. "
            "Set ENCRYPTION_KEY to enable the encrypted record store."
        )
    stores = {kind: InMemoryRecordStore(kind) for kind in RecordKind}
    return stores, InMemoryBabyProfileStore(), None


def _build_secure_store(settings: Settings) -> SecureStore:
    if settings.encryption_key:
        try:
            return EncryptedFileSecureStore(
                settings.secure_store_path, FieldCipher(settings.encryption_key)
            )
        except EncryptionError as exc:
            logger.error("Failed to initialize secure store: %s", exc)
    logger.info("Using an in-memory secure store")
    return InMemorySecureStore()


def create_app(
    *,
    record_stores_override: dict[RecordKind, RecordStore] | None = None,
    profile_store_override: BabyProfileStore | None = None,
    secure_store_override: SecureStore | None = None,
    remote_client_override: RemoteAnalysisClient | None = None,
    network_status_override: NetworkStatus | None = None,
) -> FastMCP:
    """Create and configure the Lullaby insights MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Initializes record storage (encrypted SQLite, or in-memory)
    3. Builds the secret provider, remote client and anonymizer
    4. Creates the hybrid analysis engine
    5. Registers all tools
    """
    settings = get_settings()
    tz = _resolve_timezone(settings.timezone)

    server = FastMCP(
        "Lullaby Insights",
        instructions=(
            "Infant-care insights server. Logs sleep, feeding and activity records "
            "and analyzes sleep patterns, daily routine regularity and upcoming "
            "sleep/feeding times, on-device or through an opt-in anonymized cloud service."
        ),
    )

    # --- Storage ---
    stores, profiles, repository = _build_storage(settings)
    if record_stores_override is not None:
        stores = record_stores_override
    if profile_store_override is not None:
        profiles = profile_store_override

    # --- Secrets and cloud client ---
    secure_store = secure_store_override or _build_secure_store(settings)
    identity = DeviceIdentity(secure_store)
    if remote_client_override is not None:
        remote = remote_client_override
    else:
        remote = RemoteAnalysisClient(
            SecretProvider(secure_store, identity),
            base_url=settings.cloud_api_base_url,
            timeout=settings.cloud_request_timeout,
        )
        logger.info("Cloud analysis client configured for %s", settings.cloud_api_base_url)

    network = network_status_override or StaticNetworkStatus(
        settings.network_connected, settings.network_connection_type
    )
    preferences = AnalysisPreferences.from_settings(settings)

    engine = HybridAnalysisEngine(
        sleep_store=stores[RecordKind.SLEEP],
        feeding_store=stores[RecordKind.FEEDING],
        activity_store=stores[RecordKind.GENERIC],
        policy=CloudPolicy(network),
        remote=remote,
        anonymizer=DataAnonymizer(identity.get()),
        profiles=profiles,
        preferences=preferences,
        tz=tz,
    )

    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": "Lullaby Insights",
            "version": "0.1.0",
            "storage_enabled": repository is not None,
            "cloud_analysis_enabled": preferences.cloud_enabled,
            "timezone": settings.timezone,
            "checked_at": datetime.now(timezone.utc).isoformat(),
        }
        if repository is not None:
            status["records_stored"] = repository.count_records()
        return status

    register_insight_tools(server, engine, preferences, tz=tz)
    register_record_tools(
        server,
        sleep_store=stores[RecordKind.SLEEP],
        feeding_store=stores[RecordKind.FEEDING],
        activity_store=stores[RecordKind.GENERIC],
        profiles=profiles,
        tz=tz,
    )
    logger.info("Insight and record tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
