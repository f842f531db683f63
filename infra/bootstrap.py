"""
Infrastructure initialization and bootstrap.

Singleton pattern for creating the inference backend, rate limiter and
dispatcher from configuration, once per process.
"""

import logging
from typing import Optional

from catalog import get_registry
from dispatch import Dispatcher, PayloadBuilder
from inference import InferenceBackend
from ratelimit import RateLimiter

from .config import InfraConfig, get_config

logger = logging.getLogger(__name__)


class InfraBootstrap:
    """
    Bootstrap infrastructure based on configuration.

    Singleton pattern - single instance per process. Network clients inside
    the backends are created lazily and reused for the life of the process.
    """

    _instance: Optional["InfraBootstrap"] = None

    def __init__(self, config: Optional[InfraConfig] = None):
        """Initialize bootstrap with configuration."""
        self.config = config or get_config()
        self.registry = get_registry()
        self.inference_backend = self.config.create_inference_backend()
        self.rate_limiter = self.config.create_rate_limiter()
        self.dispatcher = Dispatcher(
            backend=self.inference_backend,
            limiter=self.rate_limiter,
            builder=PayloadBuilder(self.registry),
            registry=self.registry,
        )

    @classmethod
    def get_instance(cls, config: Optional[InfraConfig] = None) -> "InfraBootstrap":
        """
        Get singleton instance.

        Args:
            config: Optional custom configuration (only used first time)

        Returns:
            Singleton InfraBootstrap instance
        """
        if cls._instance is None:
            cls._instance = cls(config)
            logger.info(f"Infrastructure ready: {cls._instance!r}")
        return cls._instance

    @classmethod
    def reset(cls):
        """Reset singleton (for testing)."""
        cls._instance = None

    @classmethod
    async def shutdown(cls):
        """Close network clients and stores, then reset."""
        if cls._instance is not None:
            await cls._instance.dispatcher.aclose()
        cls.reset()

    def get_inference_backend(self) -> Optional[InferenceBackend]:
        """Get inference backend (or None if the binding is missing)."""
        return self.inference_backend

    def get_rate_limiter(self) -> RateLimiter:
        return self.rate_limiter

    def get_dispatcher(self) -> Dispatcher:
        return self.dispatcher

    def __repr__(self) -> str:
        """String representation showing configured backends."""
        stores = [store.name for store in self.rate_limiter.stores] or ["none"]
        return (
            f"InfraBootstrap(inference={self.inference_backend.name if self.inference_backend else 'missing'}, "
            f"rate_limit={'on' if self.config.rate_limit_enabled else 'off'}, "
            f"stores={'+'.join(stores)}, models={len(self.registry)})"
        )


def bootstrap_infrastructure(config: Optional[InfraConfig] = None) -> InfraBootstrap:
    """
    Bootstrap all infrastructure backends.

    Args:
        config: Optional custom configuration

    Returns:
        InfraBootstrap instance with all backends initialized
    """
    return InfraBootstrap.get_instance(config)
