"""Tests for the server entry point's bind-address guard."""

from __future__ import annotations

import pytest

from lullaby.core.config.settings import Settings
from lullaby.core.server.main import check_bind_address, is_loopback


@pytest.mark.parametrize("host", ["127.0.0.1", "::1", "localhost"])
def test_loopback_hosts(host):
    assert is_loopback(host)


@pytest.mark.parametrize("host", ["0.0.0.0", "192.168.1.20", "nursery.local"])
def test_non_loopback_hosts(host):
    assert not is_loopback(host)


def test_default_settings_pass():
    check_bind_address(Settings())


def test_lan_bind_refused():
    with pytest.raises(RuntimeError, match="LULLABY_ALLOW_INSECURE_BIND"):
        check_bind_address(Settings(lullaby_host="0.0.0.0"))


def test_lan_bind_allowed_with_opt_in():
    check_bind_address(Settings(lullaby_host="0.0.0.0", lullaby_allow_insecure_bind=True))


def test_stdio_ignores_host():
    check_bind_address(Settings(lullaby_host="0.0.0.0", lullaby_transport="stdio"))
