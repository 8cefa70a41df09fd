# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.ratelimit.config",
#   "purpose": "RateSpec parsing for the politeness throttle.",
#   "sections": [
#     {
#       "id": "ratespec",
#       "name": "RateSpec",
#       "anchor": "class-ratespec",
#       "kind": "class"
#     },
#     {
#       "id": "parse-rate-string",
#       "name": "parse_rate_string",
#       "anchor": "function-parse-rate-string",
#       "kind": "function"
#     },
#     {
#       "id": "rate-from-interval",
#       "name": "rate_from_interval",
#       "anchor": "function-rate-from-interval",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""RateSpec parsing for the politeness throttle.

Remote listing endpoints and item pages are hit one request at a time with a
minimum pause between calls. The pause is configured either as a plain
interval ("500ms", "2s") or as a rate ("2/second"); both normalize to a
:class:`RateSpec` that pyrate-limiter can enforce.

Example:
    >>> parse_rate_string("500ms")
    RateSpec(limit=1, interval_ms=500)
    >>> parse_rate_string("2/second").rps
    2.0
"""

import re
from dataclasses import dataclass
from typing import Optional

# ============================================================================
# Constants
# ============================================================================

DURATION_MS = {
    "ms": 1,
    "second": 1_000,
    "minute": 60 * 1_000,
    "hour": 60 * 60 * 1_000,
}

DURATION_ALIASES = {
    "s": "second",
    "sec": "second",
    "min": "minute",
    "hr": "hour",
}

_RATE_PATTERN = re.compile(r"^(\d+)\s*/\s*([a-zA-Z]+)$")
_INTERVAL_PATTERN = re.compile(r"^(\d+)\s*([a-zA-Z]+)$")


# ============================================================================
# Data Models
# ============================================================================


@dataclass(frozen=True)
class RateSpec:
    """Normalized rate window.

    Attributes:
        limit: Number of calls allowed per window
        interval_ms: Window length in milliseconds
    """

    limit: int
    interval_ms: int

    @property
    def rps(self) -> float:
        """Requests per second."""
        return (self.limit * 1000) / self.interval_ms

    @property
    def min_interval_ms(self) -> float:
        """Average spacing between calls in milliseconds."""
        return self.interval_ms / self.limit

    def __str__(self) -> str:
        if self.interval_ms == 1_000:
            return f"{self.limit}/second"
        if self.interval_ms == 60_000:
            return f"{self.limit}/minute"
        return f"{self.limit}/{self.interval_ms}ms"

    def __repr__(self) -> str:
        return f"RateSpec(limit={self.limit}, interval_ms={self.interval_ms})"


# ============================================================================
# Parsing
# ============================================================================


def _duration_ms(unit: str) -> int:
    unit = unit.lower()
    unit = DURATION_ALIASES.get(unit, unit)
    if unit.endswith("s") and unit[:-1] in DURATION_MS:
        unit = unit[:-1]
    if unit not in DURATION_MS:
        raise ValueError(f"Unknown duration: {unit!r}. Supported: {list(DURATION_MS.keys())}")
    return DURATION_MS[unit]


def parse_rate_string(spec: str) -> RateSpec:
    """Parse ``"{limit}/{unit}"`` or ``"{n}{unit}"`` into a RateSpec.

    Examples:
        "2/second" -> RateSpec(limit=2, interval_ms=1000)
        "500ms"    -> RateSpec(limit=1, interval_ms=500)
        "3s"       -> RateSpec(limit=1, interval_ms=3000)

    Raises:
        ValueError: If the string is not in either format or the value is zero.
    """
    text = spec.strip()
    match = _RATE_PATTERN.match(text)
    if match:
        limit = int(match.group(1))
        if limit <= 0:
            raise ValueError(f"Limit must be positive, got: {limit}")
        return RateSpec(limit=limit, interval_ms=_duration_ms(match.group(2)))

    match = _INTERVAL_PATTERN.match(text)
    if match:
        amount = int(match.group(1))
        if amount <= 0:
            raise ValueError(f"Interval must be positive, got: {text!r}")
        return RateSpec(limit=1, interval_ms=amount * _duration_ms(match.group(2)))

    raise ValueError(f"Invalid rate spec: {spec!r}. Expected '2/second' or '500ms'.")


def rate_from_interval(min_interval_ms: int) -> Optional[RateSpec]:
    """Return a one-call-per-interval RateSpec, or ``None`` when throttling is off."""
    if min_interval_ms < 0:
        raise ValueError(f"Interval must not be negative, got: {min_interval_ms}")
    if min_interval_ms == 0:
        return None
    return RateSpec(limit=1, interval_ms=min_interval_ms)


__all__ = [
    "RateSpec",
    "parse_rate_string",
    "rate_from_interval",
]
