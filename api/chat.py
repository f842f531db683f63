"""
Chat route.

POST /chat streams Server-Sent Events:
    data: {"type":"start"}
    data: {"type":"text-start","id":"text-0"}
    data: {"type":"text-delta","id":"text-0","delta":"Hello"}
    ...
    data: {"type":"finish"}
    data: [DONE]
"""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from catalog import models as catalog_models
from dispatch import STREAM_HEADERS, Dispatcher, encode_sse, envelope_for

from .dependencies import get_client_identity, get_dispatcher, limit_info
from .schemas import ChatRequest

router = APIRouter(tags=["chat"])


@router.post("/chat")
async def chat(
    body: ChatRequest,
    client_identity: str = Depends(get_client_identity),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    envelope = envelope_for(
        "chat",
        client_identity,
        model_id=body.model,
        raw_params={"temperature": body.temperature, "max_tokens": body.max_tokens},
    )
    events = await dispatcher.chat(envelope, body.messages, web_search=body.webSearch)
    return StreamingResponse(
        encode_sse(events),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


@router.get("/chat")
async def chat_info(dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Supported chat models and limits."""
    text_models = dispatcher.registry.list_by_family("text")
    return {
        "status": "ok",
        "defaultModel": catalog_models.DEFAULT_CHAT_MODEL,
        "models": [m.id for m in text_models],
        "batchModels": [m.id for m in text_models if m.invocation_strategy == "batch"],
        "reasoningModels": [m.id for m in text_models if m.supports("reasoning")],
        "rateLimit": limit_info(dispatcher, "chat"),
    }
