"""
Client identity for anonymous rate limiting.

Derived from network-layer metadata only; nothing the caller puts in a
request body is trusted here.
"""

from typing import Mapping, Optional

ANONYMOUS = "anonymous"


def _first(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    head = value.split(",")[0].strip()
    return head or None


def _forwarded_for(value: Optional[str]) -> Optional[str]:
    """Extract the for= node of the first RFC 7239 Forwarded element."""
    element = _first(value)
    if not element:
        return None
    for pair in element.split(";"):
        name, _, node = pair.strip().partition("=")
        if name.lower() == "for" and node:
            return node.strip('"') or None
    return None


def client_identity_from_headers(
    headers: Mapping[str, str],
    peer_host: Optional[str] = None,
) -> str:
    """
    Pick the client address, most trusted source first:
    CF-Connecting-IP, X-Forwarded-For, X-Real-IP, Forwarded, socket peer.
    """
    for candidate in (
        (headers.get("cf-connecting-ip") or "").strip() or None,
        _first(headers.get("x-forwarded-for")),
        (headers.get("x-real-ip") or "").strip() or None,
        _forwarded_for(headers.get("forwarded")),
        peer_host,
    ):
        if candidate:
            return candidate
    return ANONYMOUS
