"""
API module - FastAPI route handlers, one router per capability.

Includes:
- chat.py: Streaming chat (SSE)
- image.py: Image generation
- speech_to_text.py: Audio transcription (multipart)
- text_to_speech.py: Speech synthesis
- rate_limit.py: Quota pre-flight
- models.py: Model catalog
"""

from api.chat import router as chat_router
from api.image import router as image_router
from api.speech_to_text import router as speech_to_text_router
from api.text_to_speech import router as text_to_speech_router
from api.rate_limit import router as rate_limit_router
from api.models import router as models_router

__all__ = [
    "chat_router",
    "image_router",
    "speech_to_text_router",
    "text_to_speech_router",
    "rate_limit_router",
    "models_router",
]
