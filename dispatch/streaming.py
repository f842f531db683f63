"""
Text invocation strategies and the SSE wire encoding.

Streaming models are driven as an incremental token stream; batch models
(gpt-oss) are called once and their reply replayed as a single delta.
Both produce the same TextStream.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator

from catalog.models import is_batch_model
from inference import RawOutput

from .normalizer import text_stream, tokens_from_raw
from .types import TextStream

logger = logging.getLogger(__name__)

SSE_DONE = b"data: [DONE]\n\n"

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "x-vercel-ai-ui-message-stream": "v1",
}


class TextInvocationStrategy(ABC):
    """How a text model is called. Output shape is the same either way."""

    name = "base"
    stream = False

    @abstractmethod
    def events(self, raw: RawOutput, reasoning: bool = False) -> TextStream:
        raise NotImplementedError


class StreamingStrategy(TextInvocationStrategy):
    """Forward token deltas as they arrive; nothing is buffered."""

    name = "stream"
    stream = True

    def events(self, raw: RawOutput, reasoning: bool = False) -> TextStream:
        return text_stream(tokens_from_raw(raw), reasoning=reasoning)


class BatchStrategy(TextInvocationStrategy):
    """Single complete reply, emitted as one delta between start/end markers."""

    name = "batch"
    stream = False

    def events(self, raw: RawOutput, reasoning: bool = False) -> TextStream:
        return text_stream(self._buffered(raw), reasoning=reasoning)

    @staticmethod
    async def _buffered(raw: RawOutput) -> AsyncIterator[str]:
        parts = [token async for token in tokens_from_raw(raw)]
        text = "".join(parts)
        if text:
            yield text


_STREAMING = StreamingStrategy()
_BATCH = BatchStrategy()


def select_strategy(model_id: str) -> TextInvocationStrategy:
    """Static lookup by model-id prefix."""
    return _BATCH if is_batch_model(model_id) else _STREAMING


async def encode_sse(events: TextStream) -> AsyncIterator[bytes]:
    """One 'data: <json>' frame per event, then 'data: [DONE]'."""
    async for event in events:
        yield f"data: {json.dumps(event.to_dict())}\n\n".encode("utf-8")
    yield SSE_DONE
