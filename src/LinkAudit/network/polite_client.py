# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.network.polite_client",
#   "purpose": "Polite HTTP Client: HTTPX plus a blocking throttle between remote calls.",
#   "sections": [
#     {
#       "id": "politehttpclient",
#       "name": "PoliteHttpClient",
#       "anchor": "class-politehttpclient",
#       "kind": "class"
#     },
#     {
#       "id": "get-polite-http-client",
#       "name": "get_polite_http_client",
#       "anchor": "function-get-polite-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "close-polite-http-client",
#       "name": "close_polite_http_client",
#       "anchor": "function-close-polite-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "reset-polite-http-client",
#       "name": "reset_polite_http_client",
#       "anchor": "function-reset-polite-http-client",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Polite HTTP Client: HTTPX plus a blocking throttle between remote calls.

Every listing page, redirect hop and item page fetch goes through this
facade, which:
- Acquires a throttle slot before each request
- Issues the request on a redirect-disabled HTTPX client
- Logs method, URL, status and elapsed time at debug level
- Logs and re-raises transport errors (there is no retry layer)

Example:
    >>> from LinkAudit.network import get_polite_http_client
    >>> client = get_polite_http_client()
    >>> response = client.get("https://repository.example/oai/request", key="listing")
"""

import logging
import threading
import time
from typing import Optional

import httpx

from LinkAudit.network.client import close_http_client, get_http_client
from LinkAudit.ratelimit import ThrottleManager, get_throttle

logger = logging.getLogger(__name__)

# ============================================================================
# Global State
# ============================================================================

_polite_client: Optional["PoliteHttpClient"] = None
_polite_client_lock = threading.Lock()


# ============================================================================
# PoliteHttpClient
# ============================================================================


class PoliteHttpClient:
    """HTTP client that waits for the politeness throttle before every request.

    Attributes:
        _http_client: HTTPX client for actual HTTP requests
        _throttle: Throttle enforcing the minimum inter-request interval
        _key: Default throttle key
        _owns_client: Whether close() should close the shared client
    """

    def __init__(
        self,
        http_client: httpx.Client | None = None,
        throttle: ThrottleManager | None = None,
        key: str = "default",
    ):
        """Initialize PoliteHttpClient.

        Args:
            http_client: Client to use; the shared client when omitted
            throttle: Throttle to use; the shared throttle when omitted
            key: Default throttle key for requests that do not pass one
        """
        self._owns_client = http_client is None
        self._http_client: httpx.Client | None = http_client or get_http_client()
        self._throttle = throttle if throttle is not None else get_throttle()
        self._key = key

        logger.debug(
            "PoliteHttpClient initialized",
            extra={"key": self._key, "throttle_enabled": self._throttle.enabled},
        )

    def get(self, url: str, key: str | None = None, **kwargs) -> httpx.Response:
        """Perform a throttled GET request."""
        return self.request("GET", url, key=key, **kwargs)

    def head(self, url: str, key: str | None = None, **kwargs) -> httpx.Response:
        """Perform a throttled HEAD request."""
        return self.request("HEAD", url, key=key, **kwargs)

    def request(self, method: str, url: str, key: str | None = None, **kwargs) -> httpx.Response:
        """Perform a throttled request.

        Args:
            method: HTTP method
            url: URL to request
            key: Throttle key (uses the default key when omitted)
            **kwargs: Additional arguments passed to httpx.Client.request()

        Returns:
            HTTP response (redirects are returned, never followed)

        Raises:
            httpx.HTTPError: On transport errors and timeouts
        """
        key = key or self._key
        http_client = self._ensure_http_client()

        ts_acquire_start = time.monotonic()
        self._throttle.acquire(key)
        waited_ms = int((time.monotonic() - ts_acquire_start) * 1000)

        ts_request_start = time.monotonic()
        try:
            response = http_client.request(method=method, url=url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(
                "HTTP request failed",
                extra={"method": method, "url": url, "key": key, "error": str(e)},
            )
            raise

        logger.debug(
            "Polite request completed",
            extra={
                "method": method,
                "url": url,
                "key": key,
                "status": response.status_code,
                "waited_ms": waited_ms,
                "elapsed_ms": int((time.monotonic() - ts_request_start) * 1000),
            },
        )
        return response

    def _ensure_http_client(self) -> httpx.Client:
        """Ensure the underlying HTTP client is open, refreshing the shared one if needed."""
        if self._http_client is None or self._http_client.is_closed:
            if not self._owns_client:
                raise RuntimeError("PoliteHttpClient used after its HTTP client was closed")
            logger.debug("Refreshing polite HTTP client binding after reset")
            self._http_client = get_http_client()
        return self._http_client

    def close(self) -> None:
        """Close the underlying client (the shared one when this facade created it)."""
        logger.debug("PoliteHttpClient closing")
        if self._owns_client:
            close_http_client()
        elif self._http_client is not None:
            self._http_client.close()
        self._http_client = None

    def __enter__(self) -> "PoliteHttpClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# ============================================================================
# Singleton API
# ============================================================================


def get_polite_http_client() -> PoliteHttpClient:
    """Get or create the shared PoliteHttpClient (thread-safe)."""
    global _polite_client

    with _polite_client_lock:
        if _polite_client is None:
            _polite_client = PoliteHttpClient()
            logger.debug("Polite HTTP client created")
        return _polite_client


def close_polite_http_client() -> None:
    """Close the shared polite client. Safe to call multiple times."""
    global _polite_client

    with _polite_client_lock:
        if _polite_client is not None:
            try:
                _polite_client.close()
                logger.debug("Polite HTTP client closed")
            finally:
                _polite_client = None


def reset_polite_http_client() -> None:
    """Reset the shared polite client (primarily for testing)."""
    close_polite_http_client()


__all__ = [
    "PoliteHttpClient",
    "get_polite_http_client",
    "close_polite_http_client",
    "reset_polite_http_client",
]
