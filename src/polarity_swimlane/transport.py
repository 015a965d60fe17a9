"""Shared HTTP client construction.

Applies the TLS and proxy options from settings: client certificate,
key and passphrase, a custom CA bundle, an outbound proxy and the
reject-unauthorized toggle.
"""

import ssl

import httpx

from .config import Settings, get_settings
from .logging import get_context_logger

logger = get_context_logger(__name__)


def build_ssl_context(settings: Settings) -> ssl.SSLContext:
    """Build the TLS context used for every outbound request."""
    context = ssl.create_default_context(cafile=settings.request_ca or None)

    if settings.request_cert:
        context.load_cert_chain(
            certfile=settings.request_cert,
            keyfile=settings.request_key or None,
            password=settings.request_passphrase or None,
        )

    if not settings.request_reject_unauthorized:
        logger.warning("TLS certificate verification is disabled")
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    return context


def build_http_client(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an AsyncClient honoring the configured TLS/proxy options.

    Args:
        settings: Settings to apply (defaults to the cached settings)
        transport: Optional transport override, used by tests

    Returns:
        Configured HTTP client; the caller owns and closes it
    """
    settings = settings or get_settings()

    kwargs = {
        "timeout": httpx.Timeout(settings.request_timeout, connect=10.0),
        "headers": {"Accept": "application/json"},
    }
    if transport is not None:
        kwargs["transport"] = transport
    else:
        kwargs["verify"] = build_ssl_context(settings)
        if settings.request_proxy:
            kwargs["proxy"] = settings.request_proxy

    return httpx.AsyncClient(**kwargs)
