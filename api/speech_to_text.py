"""
Speech-to-text route.

Multipart upload with an 'audio' file field plus optional form flags
detect_language, punctuate, smart_format.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from catalog import models as catalog_models
from dispatch import Dispatcher, InvalidArgument, envelope_for

from .dependencies import get_client_identity, get_dispatcher, limit_info

router = APIRouter(tags=["speech"])


@router.post("/speech-to-text")
async def speech_to_text(
    audio: Optional[UploadFile] = File(None),
    detect_language: Optional[str] = Form(None),
    punctuate: Optional[str] = Form(None),
    smart_format: Optional[str] = Form(None),
    client_identity: str = Depends(get_client_identity),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    if audio is None:
        raise InvalidArgument("No audio file provided", field="audio")

    data = await audio.read()
    envelope = envelope_for("speech-to-text", client_identity)
    transcription, payload = await dispatcher.transcribe(
        envelope,
        data,
        filename=audio.filename,
        content_type=audio.content_type,
        detect_language=detect_language,
        punctuate=punctuate,
        smart_format=smart_format,
    )

    return {
        "success": True,
        "transcription": transcription.to_dict(),
        "metadata": {
            "model": payload.model_id,
            "fileName": audio.filename,
            "fileSize": len(data),
            "contentType": audio.content_type,
            "processedAt": datetime.now(timezone.utc).isoformat(),
        },
    }


@router.get("/speech-to-text")
async def speech_to_text_info(dispatcher: Dispatcher = Depends(get_dispatcher)):
    return {
        "status": "ok",
        "model": catalog_models.SPEECH_TO_TEXT_MODEL,
        "supportedFormats": list(catalog_models.SUPPORTED_AUDIO_TYPES),
        "supportedExtensions": list(catalog_models.SUPPORTED_AUDIO_EXTENSIONS),
        "maxFileSize": catalog_models.MAX_AUDIO_FILE_SIZE,
        "maxFileSizeMB": catalog_models.MAX_AUDIO_FILE_SIZE // (1024 * 1024),
        "minFileSize": catalog_models.MIN_AUDIO_FILE_SIZE,
        "rateLimit": limit_info(dispatcher, "speech-to-text"),
    }
