"""
Dispatch data types: the request envelope, the materialized invocation
payload, and the normalized result variants.
"""

import base64
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Union

from catalog import ModelDescriptor


MessageRole = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Message:
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class RequestEnvelope:
    """One user-initiated call. Lives for the duration of the HTTP request."""

    capability: str  # chat | image | speech-to-text | text-to-speech
    client_identity: str
    model_id: Optional[str] = None
    raw_params: Dict[str, Any] = field(default_factory=dict)
    messages: List[Message] = field(default_factory=list)


@dataclass
class InvocationPayload:
    """
    The validated call to the inference capability.

    params is the flat map sent upstream. context holds resolved settings
    the route needs for its response (encoding, voice, ...) that are not
    sent upstream.
    """

    model: ModelDescriptor
    params: Dict[str, Any]
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def model_id(self) -> str:
        return self.model.id


# ──────────────────────────────────────────────────────────────────────────────
# Normalized results
# ──────────────────────────────────────────────────────────────────────────────

StreamEventType = Literal[
    "start",
    "text-start",
    "text-delta",
    "text-end",
    "reasoning-start",
    "reasoning-delta",
    "reasoning-end",
    "finish",
    "error",
]


@dataclass(frozen=True)
class StreamEvent:
    type: StreamEventType
    id: Optional[str] = None
    delta: Optional[str] = None
    error_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type}
        if self.id is not None:
            data["id"] = self.id
        if self.delta is not None:
            data["delta"] = self.delta
        if self.error_text is not None:
            data["errorText"] = self.error_text
        return data


TextStream = AsyncIterator[StreamEvent]


@dataclass(frozen=True)
class ImageResult:
    base64: str
    media_type: str
    byte_length: int

    def to_dict(self, data: Optional[bytes] = None) -> Dict[str, Any]:
        raw = data if data is not None else base64.b64decode(self.base64)
        return {
            "base64": self.base64,
            "mediaType": self.media_type,
            "uint8Array": list(raw),
        }


@dataclass(frozen=True)
class WordTiming:
    word: str
    start_seconds: float
    end_seconds: float
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word": self.word,
            "start": self.start_seconds,
            "end": self.end_seconds,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class TranscriptionResult:
    transcript: str
    confidence: Optional[float] = None
    duration_seconds: Optional[float] = None
    language: Optional[str] = None
    words: Optional[List[WordTiming]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"transcript": self.transcript}
        if self.confidence is not None:
            data["confidence"] = self.confidence
        if self.duration_seconds is not None:
            data["duration"] = self.duration_seconds
        if self.language is not None:
            data["language"] = self.language
        if self.words is not None:
            data["words"] = [w.to_dict() for w in self.words]
        return data


@dataclass(frozen=True)
class AudioResult:
    base64: str
    content_type: str


NormalizedResult = Union[TextStream, ImageResult, TranscriptionResult, AudioResult]
