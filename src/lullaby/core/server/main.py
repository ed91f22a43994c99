"""Console entry point for the Lullaby insights server (``lullaby-server``)."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from lullaby.core.config.settings import Settings, get_settings
from lullaby.core.server.app import create_app

logger = logging.getLogger(__name__)


def is_loopback(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def check_bind_address(settings: Settings) -> None:
    """Refuse a LAN-reachable HTTP bind unless explicitly allowed.

    The server has no auth layer, and it serves a baby's sleep and feeding log.
    """
    if settings.lullaby_transport == "stdio" or settings.lullaby_allow_insecure_bind:
        return
    if not is_loopback(settings.lullaby_host):
        raise RuntimeError(
            f"Refusing to serve infant-care records on non-loopback host "
            f"{settings.lullaby_host!r}. Set LULLABY_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )


def run() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.lullaby_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    check_bind_address(settings)

    mcp = create_app()
    logger.info(
        "Lullaby Insights starting (transport=%s, cloud analysis %s)",
        settings.lullaby_transport,
        "opted in" if settings.cloud_analysis_enabled else "off",
    )
    if settings.lullaby_transport == "stdio":
        mcp.run(transport="stdio")
        return

    logger.info("Listening on %s:%d", settings.lullaby_host, settings.lullaby_port)
    mcp.run(
        transport="streamable-http",
        host=settings.lullaby_host,
        port=settings.lullaby_port,
    )


if __name__ == "__main__":
    run()
