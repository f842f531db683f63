"""
Hybrid daily rate limiter.

Algorithm, per call:
  1. Work out the UTC day key and the reset time (next UTC midnight).
  2. Try the fast store; on any store error fall back to the durable store
     for this call only.
  3. Read the count. At or over the maximum → not allowed. Otherwise
     increment, then allow.
  4. If no store answers, allow with a warning (fail open).

The read and the increment are separate store calls. Two concurrent
requests from one identity can both pass the read and overshoot the
maximum by a small amount; that race is accepted.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .base import (
    CAPABILITIES,
    CAPABILITY_LABELS,
    DEFAULT_LIMITS,
    CounterStore,
    RateLimitResult,
    RateLimitStoreError,
    utc_day_window,
)

logger = logging.getLogger(__name__)

DISABLED_REMAINING = 999
FAIL_OPEN_WARNING = "Rate limiting unavailable; request allowed without quota enforcement."


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RateLimiter:
    """Per-identity, per-capability daily request limiter."""

    def __init__(
        self,
        *,
        fast_store: Optional[CounterStore] = None,
        durable_store: Optional[CounterStore] = None,
        limits: Optional[Dict[str, int]] = None,
        enabled: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.fast_store = fast_store
        self.durable_store = durable_store
        self.limits = dict(DEFAULT_LIMITS)
        self.limits.update(limits or {})
        self.enabled = enabled
        self._clock = clock or _utc_now

        for capability, maximum in self.limits.items():
            if maximum < 0:
                raise ValueError(f"limit for {capability} must not be negative")

    @property
    def stores(self) -> List[CounterStore]:
        return [s for s in (self.fast_store, self.durable_store) if s is not None]

    def limit_for(self, capability: str) -> int:
        if capability not in CAPABILITIES:
            raise ValueError(f"Unknown capability: {capability}")
        return self.limits[capability]

    @staticmethod
    def counter_key(capability: str, client_identity: str, day_key: str) -> str:
        return f"ratelimit:{capability}:{client_identity}:{day_key}"

    def _exceeded_message(self, capability: str, limit: int) -> str:
        label = CAPABILITY_LABELS.get(capability, capability)
        return f"Rate limit exceeded. {limit} {label} requests allowed per day."

    async def check(self, client_identity: str, capability: str) -> RateLimitResult:
        """
        Count one request for client_identity against capability.

        The counter is incremented only when the request is allowed, and
        before this returns.
        """
        limit = self.limit_for(capability)
        now = self._clock()
        day_key, reset_at = utc_day_window(now)

        if not self.enabled:
            return RateLimitResult(
                allowed=True, remaining=DISABLED_REMAINING, reset_at=reset_at, limit=limit
            )

        key = self.counter_key(capability, client_identity, day_key)
        for store in self.stores:
            try:
                count = await store.get(key, now)
                if count >= limit:
                    logger.info(
                        f"Rate limit exceeded: capability={capability} backend={store.name}"
                    )
                    return RateLimitResult(
                        allowed=False,
                        remaining=0,
                        reset_at=reset_at,
                        limit=limit,
                        used=count,
                        error=self._exceeded_message(capability, limit),
                        backend=store.name,
                    )

                new_count = await store.increment(key, reset_at, now)
                return RateLimitResult(
                    allowed=True,
                    remaining=max(0, limit - new_count),
                    reset_at=reset_at,
                    limit=limit,
                    used=new_count,
                    backend=store.name,
                )
            except RateLimitStoreError as e:
                logger.warning(
                    f"Rate limit store '{store.name}' failed, trying next: {str(e)}"
                )

        logger.warning(
            f"No rate limit store available for capability={capability}; failing open"
        )
        return RateLimitResult(
            allowed=True,
            remaining=limit,
            reset_at=reset_at,
            limit=limit,
            warning=FAIL_OPEN_WARNING,
        )

    async def status(self, client_identity: str, capability: str) -> RateLimitResult:
        """Same shape as check(), without counting the request."""
        limit = self.limit_for(capability)
        now = self._clock()
        day_key, reset_at = utc_day_window(now)

        if not self.enabled:
            return RateLimitResult(
                allowed=True, remaining=DISABLED_REMAINING, reset_at=reset_at, limit=limit
            )

        key = self.counter_key(capability, client_identity, day_key)
        for store in self.stores:
            try:
                count = await store.get(key, now)
            except RateLimitStoreError as e:
                logger.warning(f"Rate limit status read failed on '{store.name}': {str(e)}")
                continue
            allowed = count < limit
            return RateLimitResult(
                allowed=allowed,
                remaining=max(0, limit - count),
                reset_at=reset_at,
                limit=limit,
                used=count,
                error=None if allowed else self._exceeded_message(capability, limit),
                backend=store.name,
            )

        return RateLimitResult(
            allowed=True,
            remaining=limit,
            reset_at=reset_at,
            limit=limit,
            warning=FAIL_OPEN_WARNING,
        )

    async def aclose(self) -> None:
        for store in self.stores:
            await store.aclose()
