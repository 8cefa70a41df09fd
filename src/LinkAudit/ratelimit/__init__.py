# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.ratelimit.__init__",
#   "purpose": "Politeness throttle built on pyrate-limiter.",
#   "sections": []
# }
# === /NAVMAP ===

"""Politeness throttle built on pyrate-limiter.

Modules:
- config: RateSpec parsing ("2/second", "500ms")
- manager: ThrottleManager facade with blocking acquire() semantics
"""

from LinkAudit.ratelimit.config import RateSpec, parse_rate_string, rate_from_interval
from LinkAudit.ratelimit.manager import (
    ThrottleManager,
    close_throttle,
    get_throttle,
    reset_throttle,
)

__all__ = [
    # Config
    "RateSpec",
    "parse_rate_string",
    "rate_from_interval",
    # Manager
    "ThrottleManager",
    "get_throttle",
    "close_throttle",
    "reset_throttle",
]
