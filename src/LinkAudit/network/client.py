# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.network.client",
#   "purpose": "HTTPX client factory with redirects disabled.",
#   "sections": [
#     {
#       "id": "create-http-client",
#       "name": "create_http_client",
#       "anchor": "function-create-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "get-http-client",
#       "name": "get_http_client",
#       "anchor": "function-get-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "close-http-client",
#       "name": "close_http_client",
#       "anchor": "function-close-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "reset-http-client",
#       "name": "reset_http_client",
#       "anchor": "function-reset-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "create-ssl-context",
#       "name": "_create_ssl_context",
#       "anchor": "function-create-ssl-context",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTPX client factory with redirects disabled.

Builds the client every remote call of a link audit run goes through:
per-phase timeouts, a bounded pool, certifi-backed TLS, an identifying
``User-Agent`` and ``follow_redirects=False`` so the resolver sees every hop.
No response cache is used: each run is a fresh snapshot.

Key design:
- **Lazy initialization**: The shared client is created on first use.
- **Explicit reset**: Settings changes take effect after ``reset_http_client()``.

Example:
    >>> from LinkAudit.network import get_http_client, close_http_client
    >>> client = get_http_client()
    >>> response = client.head("https://repository.example/handle/10.1/2")
    >>> close_http_client()
"""

import logging
import ssl
import threading
from typing import TYPE_CHECKING, Optional

import certifi
import httpx

from LinkAudit.network.policy import (
    FOLLOW_REDIRECTS,
    KEEPALIVE_EXPIRY,
    MAX_KEEPALIVE_CONNECTIONS,
)

if TYPE_CHECKING:
    from LinkAudit.settings import HttpSettings

logger = logging.getLogger(__name__)


# ============================================================================
# Global Client State
# ============================================================================

_client: httpx.Client | None = None
_client_lock = threading.Lock()


# ============================================================================
# Factory
# ============================================================================


def create_http_client(
    http_settings: Optional["HttpSettings"] = None,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Create an HTTPX client from :class:`~LinkAudit.settings.HttpSettings`.

    Args:
        http_settings: HTTP settings section; defaults are used when omitted
        transport: Optional transport override (``httpx.MockTransport`` in tests)

    Returns:
        Configured httpx.Client with redirects disabled
    """
    if http_settings is None:
        from LinkAudit.settings import HttpSettings

        http_settings = HttpSettings()

    ssl_ctx = _create_ssl_context(http_settings.verify_tls)
    client = httpx.Client(
        transport=transport,
        timeout=httpx.Timeout(
            connect=http_settings.timeout_connect,
            read=http_settings.timeout_read,
            write=http_settings.timeout_write,
            pool=http_settings.timeout_pool,
        ),
        limits=httpx.Limits(
            max_connections=http_settings.max_connections,
            max_keepalive_connections=min(MAX_KEEPALIVE_CONNECTIONS, http_settings.max_connections),
            keepalive_expiry=KEEPALIVE_EXPIRY,
        ),
        headers={"User-Agent": http_settings.user_agent},
        follow_redirects=FOLLOW_REDIRECTS,
        verify=ssl_ctx,
        trust_env=http_settings.trust_env,
    )

    logger.debug(
        "HTTPX client created",
        extra={
            "user_agent": http_settings.user_agent,
            "max_connections": http_settings.max_connections,
            "verify_tls": http_settings.verify_tls,
        },
    )
    return client


def _create_ssl_context(verify: bool = True) -> ssl.SSLContext:
    """Create an SSL context backed by the certifi CA bundle."""
    if not verify:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        logger.warning("TLS verification DISABLED")
        return ctx

    ctx = ssl.create_default_context(cafile=certifi.where())
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


# ============================================================================
# Public API
# ============================================================================


def get_http_client() -> httpx.Client:
    """Get or create the shared HTTPX client.

    A client closed by its owner is replaced on the next call.
    """
    global _client

    with _client_lock:
        if _client is None or _client.is_closed:
            from LinkAudit.settings import get_settings

            _client = create_http_client(get_settings().http)
            logger.debug("HTTP client initialized")
        return _client


def close_http_client() -> None:
    """Close the shared HTTP client. Safe to call multiple times."""
    global _client

    with _client_lock:
        if _client is not None:
            try:
                _client.close()
                logger.debug("HTTP client closed")
            finally:
                _client = None


def reset_http_client() -> None:
    """Reset the shared HTTP client and the polite facade (primarily for testing)."""
    close_http_client()

    from LinkAudit.network.polite_client import reset_polite_http_client

    reset_polite_http_client()


__all__ = [
    "create_http_client",
    "get_http_client",
    "close_http_client",
    "reset_http_client",
]
