"""
Redis-backed fast counter store.

The client is created lazily on first use and then reused for the life of
the process. Keys carry a native expiry at the end of the UTC day.
"""

import logging
from datetime import datetime
from typing import Any, Optional

import redis.asyncio as redis_async
from redis.exceptions import RedisError

from .base import CounterStore, RateLimitStoreError

logger = logging.getLogger(__name__)


class RedisCounterStore(CounterStore):
    """Daily counters in Redis (INCR + EXPIRE in one transaction)."""

    name = "redis"

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        """
        Args:
            url: redis:// or rediss:// URL of the counter service
            token: Password/token, when not embedded in the URL
            client: Pre-built client (tests)
        """
        if not url and client is None:
            raise ValueError("url is required")
        self.url = url
        self.token = token
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = redis_async.from_url(
                self.url,
                password=self.token or None,
                decode_responses=True,
            )
            logger.info("Redis rate limit client created")
        return self._client

    async def get(self, key: str, now: datetime) -> int:
        try:
            value = await self.client.get(key)
        except (RedisError, OSError) as e:
            raise RateLimitStoreError(f"Redis read failed: {e}") from e

        if value is None:
            return 0
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise RateLimitStoreError(f"Corrupted counter for {key}: {value!r}") from e

    async def increment(self, key: str, reset_at: datetime, now: datetime) -> int:
        ttl_seconds = max(1, int((reset_at - now).total_seconds()))
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ttl_seconds)
                count, _ = await pipe.execute()
        except (RedisError, OSError) as e:
            raise RateLimitStoreError(f"Redis increment failed: {e}") from e
        return int(count)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
