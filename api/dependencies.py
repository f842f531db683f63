"""
Shared route dependencies.

Tests swap these out through app.dependency_overrides.
"""

from fastapi import Request

from dispatch import Dispatcher
from infra import InfraBootstrap
from ratelimit import client_identity_from_headers


def get_dispatcher() -> Dispatcher:
    """Process-wide dispatcher from the infrastructure singleton."""
    return InfraBootstrap.get_instance().get_dispatcher()


def get_client_identity(request: Request) -> str:
    """Rate limit identity from network-layer metadata."""
    peer_host = request.client.host if request.client else None
    return client_identity_from_headers(request.headers, peer_host=peer_host)


DAY_MS = 24 * 60 * 60 * 1000


def limit_info(dispatcher: Dispatcher, capability: str) -> dict:
    """Static rate limit description for the introspection routes."""
    return {
        "type": capability,
        "maxRequests": dispatcher.limiter.limit_for(capability),
        "windowMs": DAY_MS,
    }
