"""
Infrastructure configuration system.

Environment-based backend selection with sensible defaults.
Missing optional services degrade (durable-only rate limiting, fail-open)
rather than stopping the process.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Literal, Optional

from inference import InferenceBackend, StubInferenceBackend, WorkersAIBackend
from inference.workers_ai import DEFAULT_API_BASE_URL
from ratelimit import (
    DEFAULT_LIMITS,
    CounterStore,
    RateLimiter,
    RedisCounterStore,
    SQLiteCounterStore,
)

logger = logging.getLogger(__name__)

InferenceBackendType = Literal["workers_ai", "stub"]

# Env var holding each capability's daily maximum
LIMIT_ENV_VARS: Dict[str, str] = {
    "chat": "RATE_LIMIT_CHAT_MAX",
    "image": "RATE_LIMIT_IMAGE_MAX",
    "speech-to-text": "RATE_LIMIT_STT_MAX",
    "text-to-speech": "RATE_LIMIT_TTS_MAX",
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer; using {default}")
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number; using {default}")
        return default


@dataclass
class InfraConfig:
    """Infrastructure configuration from environment."""

    # Inference
    inference_backend: InferenceBackendType
    cloudflare_account_id: Optional[str]
    cloudflare_api_token: Optional[str]
    cloudflare_api_base_url: str
    inference_timeout_s: Optional[float]

    # Rate limiting
    rate_limit_enabled: bool
    redis_url: Optional[str]
    redis_token: Optional[str]
    rate_limit_db_path: Optional[str]
    rate_limits: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_LIMITS))

    @classmethod
    def from_env(cls) -> "InfraConfig":
        """
        Load configuration from environment variables.

        Defaults:
        - Inference: workers_ai (needs account id + token)
        - Rate limiting: enabled, no Redis, no durable store (fail open)
        """
        return cls(
            # Inference Configuration
            inference_backend=os.getenv("INFERENCE_BACKEND", "workers_ai"),  # type: ignore
            cloudflare_account_id=os.getenv("CLOUDFLARE_ACCOUNT_ID") or None,
            cloudflare_api_token=os.getenv("CLOUDFLARE_API_TOKEN") or None,
            cloudflare_api_base_url=os.getenv("CLOUDFLARE_API_BASE_URL", DEFAULT_API_BASE_URL),
            inference_timeout_s=_env_float("INFERENCE_TIMEOUT_S", None),

            # Rate Limit Configuration
            rate_limit_enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true",
            redis_url=os.getenv("RATE_LIMIT_REDIS_URL") or None,
            redis_token=os.getenv("RATE_LIMIT_REDIS_TOKEN") or None,
            rate_limit_db_path=os.getenv("RATE_LIMIT_DB_PATH") or None,
            rate_limits={
                capability: _env_int(env_var, DEFAULT_LIMITS[capability])
                for capability, env_var in LIMIT_ENV_VARS.items()
            },
        )

    def create_inference_backend(self) -> Optional[InferenceBackend]:
        """
        Create inference backend instance based on configuration.

        Returns None when the hosted binding is selected but not configured;
        routes then answer 500 per request instead of the process failing.
        """
        if self.inference_backend == "stub":
            return StubInferenceBackend()

        if not self.cloudflare_account_id or not self.cloudflare_api_token:
            logger.error(
                "Inference binding missing: CLOUDFLARE_ACCOUNT_ID and "
                "CLOUDFLARE_API_TOKEN are required for INFERENCE_BACKEND=workers_ai"
            )
            return None

        return WorkersAIBackend(
            account_id=self.cloudflare_account_id,
            api_token=self.cloudflare_api_token,
            base_url=self.cloudflare_api_base_url,
            timeout_s=self.inference_timeout_s,
        )

    def create_fast_store(self) -> Optional[CounterStore]:
        """Create Redis counter store, or None for durable-only mode."""
        if not self.redis_url:
            return None
        return RedisCounterStore(url=self.redis_url, token=self.redis_token)

    def create_durable_store(self) -> Optional[CounterStore]:
        """Create SQLite counter store, or None if no path is configured."""
        if not self.rate_limit_db_path:
            return None
        return SQLiteCounterStore(db_path=self.rate_limit_db_path)

    def create_rate_limiter(self) -> RateLimiter:
        fast_store = self.create_fast_store()
        durable_store = self.create_durable_store()
        if self.rate_limit_enabled and fast_store is None and durable_store is None:
            logger.warning("No rate limit store configured; rate limiting will fail open")
        return RateLimiter(
            fast_store=fast_store,
            durable_store=durable_store,
            limits=self.rate_limits,
            enabled=self.rate_limit_enabled,
        )


def get_config() -> InfraConfig:
    """Get global infrastructure configuration."""
    return InfraConfig.from_env()
