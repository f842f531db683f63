"""Model catalog route."""

from typing import Optional

from fastapi import APIRouter, Depends

from dispatch import Dispatcher, InvalidArgument

from .dependencies import get_dispatcher

router = APIRouter(tags=["models"])

FAMILIES = ("text", "image", "speech-to-text", "text-to-speech")


@router.get("/models")
async def list_models(
    family: Optional[str] = None,
    capability: Optional[str] = None,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Catalog for UI population, optionally filtered by family and capability tag."""
    registry = dispatcher.registry
    if family is not None and family not in FAMILIES:
        raise InvalidArgument(
            f"Unknown family '{family}'. Expected one of: {', '.join(FAMILIES)}",
            field="family",
        )

    descriptors = registry.list_by_family(family) if family else registry.all()
    if capability:
        descriptors = [d for d in descriptors if d.supports(capability)]

    return {
        "count": len(descriptors),
        "models": [d.to_dict() for d in descriptors],
    }
