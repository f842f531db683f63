"""
Rate limit types and the counter store interface.

Counters are keyed by (capability, client identity, UTC day) and live in
external storage only, never in process memory.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Literal, Optional, Tuple


Capability = Literal["chat", "image", "speech-to-text", "text-to-speech"]

CAPABILITIES: Tuple[str, ...] = ("chat", "image", "speech-to-text", "text-to-speech")

DEFAULT_LIMITS: Dict[str, int] = {
    "chat": 20,
    "image": 5,
    "speech-to-text": 10,
    "text-to-speech": 10,
}

# What one request of each capability is called in user-facing messages
CAPABILITY_LABELS: Dict[str, str] = {
    "chat": "chat",
    "image": "image",
    "speech-to-text": "speech",
    "text-to-speech": "tts",
}


def utc_day_window(now: datetime) -> Tuple[str, datetime]:
    """Return (day key, reset time) for now: YYYY-MM-DD and next UTC midnight."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return day_start.strftime("%Y-%m-%d"), day_start + timedelta(days=1)


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check or status read."""

    allowed: bool
    remaining: int
    reset_at: datetime
    limit: int
    used: int = 0
    error: Optional[str] = None  # user-facing reason when not allowed
    warning: Optional[str] = None  # set when quota could not be enforced
    backend: Optional[str] = None  # store that answered, if any

    @property
    def reset_time_ms(self) -> int:
        return to_epoch_ms(self.reset_at)

    def to_dict(self, capability: str) -> Dict[str, Any]:
        return {
            "type": capability,
            "remaining": self.remaining,
            "resetTime": self.reset_time_ms,
        }


class RateLimitStoreError(Exception):
    """A counter store could not be reached or answered badly."""
    pass


class CounterStore(ABC):
    """
    Abstract counter storage.

    Implementations raise RateLimitStoreError for any backend failure;
    the limiter decides how to degrade.
    """

    name = "base"

    @abstractmethod
    async def get(self, key: str, now: datetime) -> int:
        """Current count for key, 0 when absent or expired."""
        raise NotImplementedError

    @abstractmethod
    async def increment(self, key: str, reset_at: datetime, now: datetime) -> int:
        """Atomically add one to key, expiring it at reset_at. Returns the new count."""
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
