"""
Rate limiting exports.

Hybrid daily limiter over a fast counter service (Redis) and a durable
fallback store (SQLite).
"""

from .base import (
    CAPABILITIES,
    DEFAULT_LIMITS,
    Capability,
    CounterStore,
    RateLimitResult,
    RateLimitStoreError,
    utc_day_window,
)
from .identity import ANONYMOUS, client_identity_from_headers
from .limiter import RateLimiter
from .redis_store import RedisCounterStore
from .sqlite_store import SQLiteCounterStore

__all__ = [
    "CAPABILITIES",
    "DEFAULT_LIMITS",
    "Capability",
    "CounterStore",
    "RateLimitResult",
    "RateLimitStoreError",
    "utc_day_window",
    "ANONYMOUS",
    "client_identity_from_headers",
    "RateLimiter",
    "RedisCounterStore",
    "SQLiteCounterStore",
]
