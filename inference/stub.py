import base64
import json
from typing import Any, AsyncIterator, Dict, List, Optional

from catalog import get_registry
from catalog.models import is_batch_model

from .base import InferenceBackend
from .types import (
    AudioInput,
    ByteStreamOutput,
    InferenceError,
    ObjectOutput,
    RawOutput,
)

STUB_REPLY = "This is a stubbed response."

# 1x1 transparent PNG
STUB_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


async def _iter_chunks(chunks: List[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


def _split(data: bytes, size: int) -> List[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)] or [b""]


class StubInferenceBackend(InferenceBackend):
    """
    Deterministic fake inference for testing and CI.

    Answers in the same raw shape the hosted model would use, so the
    normalizer sees realistic input. Pass error= to make every call fail.
    """

    name = "stub"

    def __init__(self, error: Optional[str] = None, chunk_size: int = 7):
        self.error = error
        self.chunk_size = chunk_size
        self.calls: List[Dict[str, Any]] = []

    async def run(
        self,
        model_id: str,
        payload: Dict[str, Any],
        *,
        stream: bool = False,
    ) -> RawOutput:
        self.calls.append({"model": model_id, "payload": payload, "stream": stream})
        if self.error:
            raise InferenceError(self.error)

        registry = get_registry()
        family = registry.get_descriptor(model_id).family if model_id in registry else None

        if family == "text" or is_batch_model(model_id):
            return self._text(model_id, stream)
        if family == "speech-to-text" or isinstance(payload.get("audio"), AudioInput):
            return self._transcription(payload)
        if family == "text-to-speech":
            return self._speech(model_id, payload)
        return self._image(model_id)

    def _text(self, model_id: str, stream: bool) -> RawOutput:
        if is_batch_model(model_id):
            return ObjectOutput({
                "output": [
                    {"type": "reasoning", "content": [{"type": "reasoning_text", "text": "..."}]},
                    {
                        "type": "message",
                        "role": "assistant",
                        "content": [{"type": "output_text", "text": STUB_REPLY}],
                    },
                ]
            })

        words = STUB_REPLY.split(" ")
        tokens = [word if i == 0 else f" {word}" for i, word in enumerate(words)]
        lines = [f"data: {json.dumps({'response': token})}\n\n" for token in tokens]
        lines.append("data: [DONE]\n\n")
        body = "".join(lines).encode("utf-8")
        # Uneven chunking so SSE lines straddle chunk boundaries
        return ByteStreamOutput(
            chunks=_iter_chunks(_split(body, self.chunk_size)),
            content_type="text/event-stream",
        )

    def _image(self, model_id: str) -> RawOutput:
        registry = get_registry()
        output_format = (
            registry.get_descriptor(model_id).output_format
            if model_id in registry
            else "base64"
        )
        if output_format == "binary":
            return ByteStreamOutput(
                chunks=_iter_chunks(_split(STUB_PNG, self.chunk_size)),
                content_type="image/png",
            )
        return ObjectOutput({"image": base64.b64encode(STUB_PNG).decode("ascii")})

    def _transcription(self, payload: Dict[str, Any]) -> RawOutput:
        audio = payload.get("audio")
        audio_len = len(audio.body) if isinstance(audio, AudioInput) else 0

        # Deterministic transcript based on audio size
        word_count = max(1, audio_len // 1000)
        words = [
            {
                "word": f"word_{i}",
                "start": round(i * 0.5, 2),
                "end": round(i * 0.5 + 0.4, 2),
                "confidence": 0.99,
            }
            for i in range(word_count)
        ]
        results: Dict[str, Any] = {
            "channels": [{
                "alternatives": [{
                    "transcript": " ".join(w["word"] for w in words),
                    "confidence": 0.99,
                    "words": words,
                }]
            }],
            "duration": round(word_count * 0.5, 2),
        }
        if payload.get("detect_language"):
            results["language"] = "en"
        return ObjectOutput({"results": results})

    def _speech(self, model_id: str, payload: Dict[str, Any]) -> RawOutput:
        text = str(payload.get("text") or payload.get("prompt") or "")
        audio_len = len(text) * 10  # 10 bytes per character
        audio_data = bytes([i % 256 for i in range(audio_len)])

        registry = get_registry()
        if registry.get_descriptor(model_id).output_format == "structured":
            return ObjectOutput({"audio": base64.b64encode(audio_data).decode("ascii")})
        return ByteStreamOutput(
            chunks=_iter_chunks(_split(audio_data, 64)),
            content_type="audio/mpeg",
        )
