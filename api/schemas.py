"""
Request bodies for the JSON routes.

Fields stay loosely typed where the Payload Builder owns validation, so
error messages come from one place.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    model: Optional[str] = None
    webSearch: bool = False
    temperature: Optional[float] = None
    max_tokens: Optional[float] = None


class ImageRequest(BaseModel):
    prompt: Optional[str] = None
    model: Optional[str] = None
    steps: Optional[float] = None
    seed: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    guidance: Optional[float] = None
    strength: Optional[float] = None
    negative_prompt: Optional[str] = None
    image_b64: Optional[str] = None
    image: Optional[List[int]] = None
    mask_b64: Optional[str] = None
    mask: Optional[List[int]] = None

    def overrides(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"model"}, exclude_none=True)


class TextToSpeechRequest(BaseModel):
    text: Optional[str] = None
    model: Optional[str] = None
    speaker: Optional[str] = None
    encoding: Optional[str] = None
    sample_rate: Optional[int] = None
    language: Optional[str] = None
    meloSpeaker: Optional[str] = None  # English accent for MeloTTS

    def overrides(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "speaker": self.meloSpeaker or self.speaker,
            "encoding": self.encoding,
            "sample_rate": self.sample_rate,
            "language": self.language,
        }
