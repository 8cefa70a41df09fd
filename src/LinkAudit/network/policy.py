# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.network.policy",
#   "purpose": "HTTP policy constants and defaults.",
#   "sections": []
# }
# === /NAVMAP ===

"""HTTP policy constants and defaults.

Timeout budgets and pooling used when no settings override them, plus the
redirect status set the resolver treats as a hop. Automatic redirect following
stays disabled: every hop is walked and recorded by
:mod:`LinkAudit.network.redirect`.
"""

# ============================================================================
# Timeout Budgets (seconds)
# ============================================================================

#: Connection establishment timeout
HTTP_CONNECT_TIMEOUT = 10.0

#: Read timeout (time between data packets on established connection)
HTTP_READ_TIMEOUT = 30.0

#: Write timeout (time to send request body)
HTTP_WRITE_TIMEOUT = 30.0

#: Pool timeout (acquiring a connection from the pool)
HTTP_POOL_TIMEOUT = 5.0


# ============================================================================
# Connection Pooling
# ============================================================================

#: Requests are sequential; a small pool is plenty
MAX_CONNECTIONS = 10

#: Maximum idle connections kept for reuse
MAX_KEEPALIVE_CONNECTIONS = 5

#: How long to keep idle connections alive (seconds)
KEEPALIVE_EXPIRY = 5.0


# ============================================================================
# Redirects
# ============================================================================

#: Redirects are never followed by the transport
FOLLOW_REDIRECTS = False

#: Status codes treated as one redirect hop
REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})

#: Default hop bound for seed resolution
DEFAULT_MAX_HOPS = 2


__all__ = [
    # Timeouts
    "HTTP_CONNECT_TIMEOUT",
    "HTTP_READ_TIMEOUT",
    "HTTP_WRITE_TIMEOUT",
    "HTTP_POOL_TIMEOUT",
    # Connection pooling
    "MAX_CONNECTIONS",
    "MAX_KEEPALIVE_CONNECTIONS",
    "KEEPALIVE_EXPIRY",
    # Redirects
    "FOLLOW_REDIRECTS",
    "REDIRECT_STATUS_CODES",
    "DEFAULT_MAX_HOPS",
]
