"""Network subsystem: HTTP client, politeness throttle integration and redirect resolution.

This package provides the HTTP stack every remote call of a run uses:
- HTTPX: HTTP/1.1 client with connection pooling, redirects disabled
- pyrate-limiter (via LinkAudit.ratelimit): minimum interval between calls

Modules:
- client: HTTPX client factory with lazy singleton pattern
- policy: HTTP policy constants (timeouts, pooling, redirect statuses)
- polite_client: Throttled request facade
- redirect: Bounded manual redirect resolution with audit trail

Example:
    >>> from LinkAudit.network import get_polite_http_client, RedirectResolver
    >>> resolver = RedirectResolver(get_polite_http_client(), max_hops=2)
    >>> link = resolver.resolve("https://hdl.example/10.1/2")
"""

from LinkAudit.network.client import (
    close_http_client,
    create_http_client,
    get_http_client,
    reset_http_client,
)
from LinkAudit.network.policy import (
    FOLLOW_REDIRECTS,
    HTTP_CONNECT_TIMEOUT,
    HTTP_POOL_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    REDIRECT_STATUS_CODES,
)
from LinkAudit.network.polite_client import (
    PoliteHttpClient,
    close_polite_http_client,
    get_polite_http_client,
    reset_polite_http_client,
)
from LinkAudit.network.redirect import (
    HOP_LIMIT_EXCEEDED,
    RedirectResolver,
    extract_anchor_targets,
    format_audit_trail,
)

__all__ = [
    # Client lifecycle
    "create_http_client",
    "get_http_client",
    "close_http_client",
    "reset_http_client",
    # Polite client
    "PoliteHttpClient",
    "get_polite_http_client",
    "close_polite_http_client",
    "reset_polite_http_client",
    # Policy
    "HTTP_CONNECT_TIMEOUT",
    "HTTP_READ_TIMEOUT",
    "HTTP_WRITE_TIMEOUT",
    "HTTP_POOL_TIMEOUT",
    "FOLLOW_REDIRECTS",
    "REDIRECT_STATUS_CODES",
    # Redirect resolution
    "RedirectResolver",
    "HOP_LIMIT_EXCEEDED",
    "extract_anchor_targets",
    "format_audit_trail",
]
