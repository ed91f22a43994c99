"""Tests for CloudPolicy and AnalysisPreferences."""

from __future__ import annotations

import pytest

from lullaby.core.cloud.policy import (
    AnalysisPreferences,
    CloudPolicy,
    ConnectionType,
    NetworkStatus,
    StaticNetworkStatus,
)
from lullaby.core.config.settings import Settings

OPTED_IN = AnalysisPreferences(cloud_enabled=True, wifi_only=True, anonymize_data=True)


def _policy(connected=True, connection=ConnectionType.WIFI) -> CloudPolicy:
    return CloudPolicy(StaticNetworkStatus(connected, connection))


def test_defaults_are_local_only():
    assert _policy().cloud_analysis_permitted(AnalysisPreferences()) is False


def test_opted_in_on_wifi():
    assert _policy().cloud_analysis_permitted(OPTED_IN) is True


def test_disconnected():
    assert _policy(connected=False).cloud_analysis_permitted(OPTED_IN) is False
    assert _policy(connection="none").cloud_analysis_permitted(OPTED_IN) is False


def test_wifi_only_blocks_cellular():
    assert _policy(connection=ConnectionType.CELLULAR).cloud_analysis_permitted(OPTED_IN) is False


def test_cellular_allowed_without_wifi_only():
    prefs = AnalysisPreferences(cloud_enabled=True, wifi_only=False)
    assert _policy(connection=ConnectionType.CELLULAR).cloud_analysis_permitted(prefs) is True


def test_anonymization_off_disables_cloud():
    prefs = AnalysisPreferences(cloud_enabled=True, wifi_only=False, anonymize_data=False)
    assert _policy().cloud_analysis_permitted(prefs) is False


def test_static_status_is_a_network_status():
    assert isinstance(StaticNetworkStatus(), NetworkStatus)


def test_unknown_connection_type_rejected():
    with pytest.raises(ValueError):
        StaticNetworkStatus(True, "satellite")


def test_preferences_from_settings():
    settings = Settings(cloud_analysis_enabled=True, cloud_wifi_only=False, anonymize_data=True)
    prefs = AnalysisPreferences.from_settings(settings)
    assert prefs == AnalysisPreferences(cloud_enabled=True, wifi_only=False, anonymize_data=True)
