"""Text-to-speech route."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from catalog import models as catalog_models
from dispatch import Dispatcher, envelope_for

from .dependencies import get_client_identity, get_dispatcher, limit_info
from .schemas import TextToSpeechRequest

router = APIRouter(tags=["speech"])


@router.post("/text-to-speech")
async def text_to_speech(
    body: TextToSpeechRequest,
    client_identity: str = Depends(get_client_identity),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    envelope = envelope_for("text-to-speech", client_identity, body.model, body.overrides())
    audio, payload = await dispatcher.synthesize(envelope)

    context = payload.context
    voice = context["voice"]
    is_melotts = payload.model_id == catalog_models.MELOTTS_MODEL
    timestamp = int(time.time() * 1000)

    if is_melotts:
        filename = f"tts_melotts_{voice}_{timestamp}.mp3"
        metadata = {
            "model": payload.model_id,
            "speaker": context.get("english_speaker"),
            "language": voice,
        }
    else:
        filename = f"tts_{voice}_{timestamp}.{context['encoding']}"
        metadata = {
            "model": payload.model_id,
            "speaker": voice,
            "encoding": context["encoding"],
            "sampleRate": context["sample_rate"],
        }
    metadata["textLength"] = len(body.text or "")
    metadata["generatedAt"] = datetime.now(timezone.utc).isoformat()

    return {
        "success": True,
        "audio": {
            "base64": audio.base64,
            "contentType": audio.content_type,
            "filename": filename,
        },
        "metadata": {key: value for key, value in metadata.items() if value is not None},
    }


@router.get("/text-to-speech")
async def text_to_speech_info(dispatcher: Dispatcher = Depends(get_dispatcher)):
    return {
        "status": "ok",
        "defaultModel": catalog_models.DEFAULT_TTS_MODEL,
        "models": [m.id for m in dispatcher.registry.list_by_family("text-to-speech")],
        "supportedFormats": list(catalog_models.AUDIO_ENCODINGS),
        "supportedSpeakers": list(catalog_models.AURA_SPEAKERS),
        "meloLanguages": list(catalog_models.MELO_LANGUAGES),
        "meloEnglishSpeakers": list(catalog_models.MELO_ENGLISH_SPEAKERS),
        "sampleRates": list(catalog_models.SAMPLE_RATES),
        "maxTextLength": catalog_models.MAX_TTS_TEXT_LENGTH,
        "rateLimit": limit_info(dispatcher, "text-to-speech"),
    }
