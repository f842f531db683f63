"""Image generation route."""

from fastapi import APIRouter, Depends

from catalog import models as catalog_models
from dispatch import Dispatcher, envelope_for

from .dependencies import get_client_identity, get_dispatcher, limit_info
from .schemas import ImageRequest

router = APIRouter(tags=["image"])


@router.post("/image")
async def generate_image(
    body: ImageRequest,
    client_identity: str = Depends(get_client_identity),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """
    Returns {base64, mediaType, uint8Array}.

    Out-of-range numbers are clamped to the model's range; an empty or
    over-long prompt is a 400.
    """
    envelope = envelope_for("image", client_identity, body.model, body.overrides())
    result = await dispatcher.generate_image(envelope)
    return result.to_dict()


@router.get("/image")
async def image_info(dispatcher: Dispatcher = Depends(get_dispatcher)):
    registry = dispatcher.registry
    return {
        "status": "ok",
        "defaultModel": catalog_models.DEFAULT_IMAGE_MODEL,
        "maxPromptLength": catalog_models.MAX_IMAGE_PROMPT_LENGTH,
        "models": [m.to_dict() for m in registry.list_by_family("image")],
        "recommended": registry.recommended_models(),
        "rateLimit": limit_info(dispatcher, "image"),
    }
