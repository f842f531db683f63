"""Read-only rate limit status for UI pre-flight display."""

from fastapi import APIRouter, Depends

from dispatch import Dispatcher

from .dependencies import get_client_identity, get_dispatcher

router = APIRouter(prefix="/rate-limit", tags=["rate-limit"])


@router.get("/{capability}")
async def rate_limit_status(
    capability: str,
    client_identity: str = Depends(get_client_identity),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Remaining quota for the caller. Does not count as a request."""
    result = await dispatcher.rate_limit_status(client_identity, capability)
    data = result.to_dict(capability)
    data.update({"allowed": result.allowed, "used": result.used, "limit": result.limit})
    if result.warning:
        data["warning"] = result.warning
    return data
