"""ThrottleManager: pyrate-limiter facade enforcing a minimum pause between remote calls.

Provides the single politeness control of a link audit run:
- One blocking limiter per key ("listing", "resolver", ...)
- A zero interval disables throttling entirely
- Thread-safe lazily created shared instance

Example:
    >>> from LinkAudit.ratelimit import get_throttle
    >>> throttle = get_throttle()
    >>> throttle.acquire("listing")
    >>> # Blocks until the configured interval has elapsed
"""

import logging
import threading
from typing import TYPE_CHECKING, Dict, Optional

from pyrate_limiter import BucketFullException, Duration, Limiter, Rate

from LinkAudit.ratelimit.config import RateSpec, parse_rate_string, rate_from_interval

if TYPE_CHECKING:
    from LinkAudit.settings import ThrottleSettings

logger = logging.getLogger(__name__)

# ============================================================================
# Global State
# ============================================================================

_throttle: Optional["ThrottleManager"] = None
_throttle_lock = threading.Lock()

# Allow the limiter to block for a very long time before giving up.
_BLOCKING_MAX_DELAY_MS = int(Duration.DAY)


# ============================================================================
# ThrottleManager
# ============================================================================


class ThrottleManager:
    """Blocking per-key throttle.

    Attributes:
        spec: Rate window enforced for every key, or ``None`` when disabled
        _limiters: Lazily created pyrate-limiter instances keyed by name
    """

    def __init__(self, spec: Optional[RateSpec]):
        self.spec = spec
        self._limiters: Dict[str, Limiter] = {}
        self._lock = threading.Lock()
        logger.debug(
            "ThrottleManager initialized",
            extra={"rate": str(spec) if spec else "disabled"},
        )

    @classmethod
    def from_settings(cls, throttle_settings: "ThrottleSettings") -> "ThrottleManager":
        """Build a manager from :class:`~LinkAudit.settings.ThrottleSettings`."""
        if throttle_settings.rate:
            return cls(parse_rate_string(throttle_settings.rate))
        return cls(rate_from_interval(throttle_settings.min_interval_ms))

    @property
    def enabled(self) -> bool:
        return self.spec is not None

    def acquire(self, key: str = "default", weight: int = 1) -> bool:
        """Block until ``key`` may issue another call.

        Returns:
            True once the slot is acquired (immediately when disabled)

        Raises:
            BucketFullException: If the limiter gives up waiting
            ValueError: If ``weight`` is not positive
        """
        if weight <= 0:
            raise ValueError(f"Weight must be positive, got: {weight}")
        if self.spec is None:
            return True

        key = key.lower().strip() or "default"
        with self._lock:
            limiter = self._limiters.get(key)
            if limiter is None:
                limiter = self._create_limiter()
                self._limiters[key] = limiter

        try:
            acquired = bool(limiter.try_acquire(key, weight=weight))
        except BucketFullException as e:
            logger.warning(
                "Throttle bucket full",
                extra={"key": key, "weight": weight, "meta_info": str(getattr(e, "meta_info", e))},
            )
            raise
        if acquired:
            logger.debug("Throttle slot acquired", extra={"key": key, "weight": weight})
        return acquired

    def _create_limiter(self) -> Limiter:
        assert self.spec is not None
        return Limiter(
            [Rate(self.spec.limit, self.spec.interval_ms)],
            raise_when_fail=True,
            max_delay=_BLOCKING_MAX_DELAY_MS,
            retry_until_max_delay=True,
        )

    def close(self) -> None:
        """Drop every limiter."""
        with self._lock:
            self._limiters.clear()
        logger.debug("ThrottleManager closed")


# ============================================================================
# Singleton API
# ============================================================================


def get_throttle() -> ThrottleManager:
    """Get or create the shared ThrottleManager from the current settings."""
    global _throttle

    if _throttle is not None:
        return _throttle

    with _throttle_lock:
        if _throttle is None:
            from LinkAudit.settings import get_settings

            _throttle = ThrottleManager.from_settings(get_settings().throttle)
            logger.debug("Throttle created", extra={"rate": str(_throttle.spec) if _throttle.spec else "disabled"})
        return _throttle


def close_throttle() -> None:
    """Close the shared throttle. Safe to call when none exists."""
    global _throttle

    with _throttle_lock:
        if _throttle is not None:
            _throttle.close()
            _throttle = None


def reset_throttle() -> None:
    """Reset the shared throttle (primarily for testing)."""
    close_throttle()


__all__ = [
    "ThrottleManager",
    "get_throttle",
    "close_throttle",
    "reset_throttle",
]
