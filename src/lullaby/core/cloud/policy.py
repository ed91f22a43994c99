"""Decides whether an analysis may use the cloud path."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from lullaby.core.config.settings import Settings


class ConnectionType(str, Enum):
    WIFI = "wifi"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"
    NONE = "none"


@runtime_checkable
class NetworkStatus(Protocol):
    def is_connected(self) -> bool:
        ...

    def connection_type(self) -> ConnectionType:
        ...


class StaticNetworkStatus:
    """Network status fixed at construction (from settings, or set by tests)."""

    def __init__(self, connected: bool = True, connection: ConnectionType | str = ConnectionType.WIFI) -> None:
        self.connected = connected
        self.connection = ConnectionType(connection)

    def is_connected(self) -> bool:
        return self.connected and self.connection != ConnectionType.NONE

    def connection_type(self) -> ConnectionType:
        return self.connection


@dataclass(frozen=True)
class AnalysisPreferences:
    """User choices that gate the cloud path. Cloud is opt-in."""

    cloud_enabled: bool = False
    wifi_only: bool = True
    anonymize_data: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> AnalysisPreferences:
        return cls(
            cloud_enabled=settings.cloud_analysis_enabled,
            wifi_only=settings.cloud_wifi_only,
            anonymize_data=settings.anonymize_data,
        )


class CloudPolicy:
    """Cloud is permitted only when connected, opted in, anonymizing and,
    for Wi-Fi-only users, on Wi-Fi.

    Disabling anonymization never sends raw data; it turns the cloud path off.
    """

    def __init__(self, network: NetworkStatus) -> None:
        self._network = network

    def cloud_analysis_permitted(self, preferences: AnalysisPreferences) -> bool:
        if not self._network.is_connected():
            return False
        if not preferences.cloud_enabled or not preferences.anonymize_data:
            return False
        if preferences.wifi_only and self._network.connection_type() != ConnectionType.WIFI:
            return False
        return True
