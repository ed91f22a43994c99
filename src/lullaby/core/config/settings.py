"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Lullaby insights server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default: infant-care records should not be exposed to the LAN.
    lullaby_host: str = "127.0.0.1"
    lullaby_port: int = 8011
    lullaby_log_level: str = "info"
    # stdio for desktop MCP hosts, streamable-http for a local network service
    lullaby_transport: Literal["streamable-http", "stdio"] = "streamable-http"
    # Binding to a non-loopback host requires this explicit opt-in (no auth layer).
    lullaby_allow_insecure_bind: bool = False

    # Cloud analysis API
    cloud_api_base_url: str = "https://api.deepseek.com"
    cloud_request_timeout: float = 30.0

    # Analysis preferences (defaults; tools may override per call)
    cloud_analysis_enabled: bool = False
    cloud_wifi_only: bool = True
    anonymize_data: bool = True

    # Network status as reported by the host
    network_connected: bool = True
    network_connection_type: Literal["wifi", "cellular", "ethernet", "none"] = "wifi"

    # IANA zone used for hour-of-day statistics
    timezone: str = "UTC"

    # Storage
    db_path: str = "~/.lullaby/records.db"
    secure_store_path: str = "~/.lullaby/secrets.json"

    # Encryption (comma-separated Fernet keys, newest first)
    encryption_key: str = ""


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
