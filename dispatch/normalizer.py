"""
Response Normalizer.

The only place that looks inside raw upstream output. Each family has one
normalize_* function that turns the closed RawOutput union into a stable
result shape, or raises MalformedResponse.
"""

import base64
import binascii
import codecs
import json
import logging
import re
from typing import Any, AsyncIterator, List, Optional, Tuple

from catalog import ModelDescriptor
from catalog import models as catalog_models
from inference import (
    BinaryOutput,
    ByteStreamOutput,
    InferenceError,
    ObjectOutput,
    RawOutput,
    StringOutput,
    describe_raw,
)

from .errors import MalformedResponse, classify_upstream_error
from .types import (
    AudioResult,
    ImageResult,
    NormalizedResult,
    StreamEvent,
    TextStream,
    TranscriptionResult,
    WordTiming,
)

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:[a-zA-Z]+/[a-zA-Z0-9.+-]+;base64,")


async def drain(chunks: AsyncIterator[bytes]) -> bytes:
    """Accumulate a byte stream into one buffer."""
    buffer = bytearray()
    async for chunk in chunks:
        buffer.extend(chunk)
    return bytes(buffer)


def _malformed(family: str, raw: RawOutput, detail: str) -> MalformedResponse:
    logger.error(f"Malformed {family} response ({detail}): {describe_raw(raw)}")
    return MalformedResponse(f"Unexpected response from the {family} model")


def _checked_b64(value: str) -> Optional[str]:
    """Canonical base64 text, or None if value is not base64."""
    value = _DATA_URL_RE.sub("", value.strip(), count=1)
    if not value:
        return None
    try:
        base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None
    return value


# ──────────────────────────────────────────────────────────────────────────────
# Image
# ──────────────────────────────────────────────────────────────────────────────

def image_media_type(descriptor: ModelDescriptor, was_binary: bool) -> str:
    if descriptor.media_type:
        return descriptor.media_type
    return "image/png" if was_binary else "image/jpeg"


async def normalize_image(descriptor: ModelDescriptor, raw: RawOutput) -> ImageResult:
    if isinstance(raw, (ByteStreamOutput, BinaryOutput)):
        data = await drain(raw.chunks) if isinstance(raw, ByteStreamOutput) else raw.data
        if not data:
            raise _malformed("image", raw, "empty body")
        return ImageResult(
            base64=base64.b64encode(data).decode("ascii"),
            media_type=image_media_type(descriptor, was_binary=True),
            byte_length=len(data),
        )

    encoded: Optional[str] = None
    if isinstance(raw, StringOutput):
        encoded = _checked_b64(raw.value)
    elif isinstance(raw, ObjectOutput) and isinstance(raw.data, dict):
        image = raw.data.get("image")
        if isinstance(image, str):
            encoded = _checked_b64(image)

    if encoded is None:
        raise _malformed("image", raw, "no image data")
    return ImageResult(
        base64=encoded,
        media_type=image_media_type(descriptor, was_binary=False),
        byte_length=len(base64.b64decode(encoded)),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Speech-to-text
# ──────────────────────────────────────────────────────────────────────────────

def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _words(raw_words: Any) -> Optional[List[WordTiming]]:
    if not isinstance(raw_words, list):
        return None
    words = []
    for item in raw_words:
        if not isinstance(item, dict):
            continue
        words.append(WordTiming(
            word=str(item.get("word") or ""),
            start_seconds=_number(item.get("start")) or 0,
            end_seconds=_number(item.get("end")) or 0,
            confidence=_number(item.get("confidence")) or 0,
        ))
    return words


def normalize_transcription(raw: RawOutput) -> TranscriptionResult:
    """
    First channel, first alternative. A top-level transcript string is the
    degraded fallback.
    """
    data = raw.data if isinstance(raw, ObjectOutput) else None
    if not isinstance(data, dict):
        raise _malformed("speech-to-text", raw, "not an object")

    results = data.get("results")
    if isinstance(results, dict):
        channels = results.get("channels")
        if isinstance(channels, list) and channels and isinstance(channels[0], dict):
            alternatives = channels[0].get("alternatives")
            if isinstance(alternatives, list) and alternatives and isinstance(alternatives[0], dict):
                alternative = alternatives[0]
                language = results.get("language")
                return TranscriptionResult(
                    transcript=str(alternative.get("transcript") or ""),
                    confidence=_number(alternative.get("confidence")),
                    duration_seconds=_number(results.get("duration")),
                    language=language if isinstance(language, str) and language else None,
                    words=_words(alternative.get("words")),
                )

    for source in (results, data):
        if isinstance(source, dict) and isinstance(source.get("transcript"), str):
            language = source.get("language")
            return TranscriptionResult(
                transcript=source["transcript"],
                confidence=_number(source.get("confidence")),
                language=language if isinstance(language, str) and language else None,
            )

    raise _malformed("speech-to-text", raw, "no transcript")


# ──────────────────────────────────────────────────────────────────────────────
# Text-to-speech
# ──────────────────────────────────────────────────────────────────────────────

def audio_content_type(descriptor: ModelDescriptor, encoding: Optional[str]) -> str:
    if encoding and encoding in catalog_models.AUDIO_ENCODINGS:
        return catalog_models.AUDIO_ENCODINGS[encoding]
    return descriptor.media_type or catalog_models.AUDIO_ENCODINGS[
        catalog_models.DEFAULT_AUDIO_ENCODING
    ]


async def normalize_audio(
    descriptor: ModelDescriptor,
    raw: RawOutput,
    encoding: Optional[str] = None,
) -> AudioResult:
    """
    Accepts a byte stream, a binary buffer, a base64 string, or an object
    with an 'audio' field.
    """
    if isinstance(raw, (ByteStreamOutput, BinaryOutput)):
        data = await drain(raw.chunks) if isinstance(raw, ByteStreamOutput) else raw.data
        if not data:
            raise _malformed("text-to-speech", raw, "empty body")
        return AudioResult(
            base64=base64.b64encode(data).decode("ascii"),
            content_type=audio_content_type(descriptor, encoding),
        )

    if isinstance(raw, StringOutput):
        encoded = _checked_b64(raw.value)
        if encoded is None:
            raise _malformed("text-to-speech", raw, "string is not base64")
        return AudioResult(base64=encoded, content_type=audio_content_type(descriptor, encoding))

    if isinstance(raw, ObjectOutput) and isinstance(raw.data, dict):
        audio = raw.data.get("audio")
        encoded = _checked_b64(audio) if isinstance(audio, str) else None
        if encoded is not None:
            return AudioResult(
                base64=encoded,
                content_type=descriptor.media_type or audio_content_type(descriptor, encoding),
            )

    raise _malformed("text-to-speech", raw, "no audio data")


# ──────────────────────────────────────────────────────────────────────────────
# Text
# ──────────────────────────────────────────────────────────────────────────────

def extract_batch_text(data: Any) -> Optional[str]:
    """
    Reply text of a batch chat answer.

    Looks for the assistant message in output[], then top-level
    'response' or 'result' strings.
    """
    if isinstance(data, str):
        return data
    if not isinstance(data, dict):
        return None

    output = data.get("output")
    if isinstance(output, list):
        for item in output:
            if not isinstance(item, dict):
                continue
            if item.get("type") != "message" or item.get("role") != "assistant":
                continue
            for content in item.get("content") or []:
                if isinstance(content, dict) and content.get("type") == "output_text":
                    return str(content.get("text") or "")

    for key in ("response", "result"):
        value = data.get(key)
        if isinstance(value, str):
            return value
        if isinstance(value, dict):
            nested = extract_batch_text(value)
            if nested is not None:
                return nested
    return None


def _token_from_event(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    token = data.get("response")
    if isinstance(token, str):
        return token
    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        delta = choices[0].get("delta")
        if isinstance(delta, dict) and isinstance(delta.get("content"), str):
            return delta["content"]
    return None


async def iter_stream_tokens(chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """
    Token deltas from a server-sent event byte stream.

    Lines and multi-byte characters may be split across chunks. Stops at
    'data: [DONE]'.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""

    def parse(line: str) -> Tuple[bool, Optional[str]]:
        line = line.rstrip("\r")
        if not line.startswith("data:"):
            return False, None
        body = line[5:].strip()
        if body == "[DONE]":
            return True, None
        if not body:
            return False, None
        try:
            return False, _token_from_event(json.loads(body))
        except ValueError:
            logger.debug(f"Skipping unparseable stream line ({len(body)} chars)")
            return False, None

    async for chunk in chunks:
        pending += decoder.decode(chunk)
        while "\n" in pending:
            line, pending = pending.split("\n", 1)
            done, token = parse(line)
            if done:
                return
            if token:
                yield token

    pending += decoder.decode(b"", final=True)
    for line in pending.split("\n"):
        done, token = parse(line)
        if done:
            return
        if token:
            yield token


async def tokens_from_raw(raw: RawOutput) -> AsyncIterator[str]:
    """Token deltas from any raw text output shape."""
    if isinstance(raw, ByteStreamOutput):
        async for token in iter_stream_tokens(raw.chunks):
            yield token
        return
    if isinstance(raw, BinaryOutput):
        async def single():
            yield raw.data

        async for token in iter_stream_tokens(single()):
            yield token
        return

    text = raw.value if isinstance(raw, StringOutput) else extract_batch_text(
        raw.data if isinstance(raw, ObjectOutput) else None
    )
    if text is None:
        raise _malformed("text", raw, "no reply text")
    if text:
        yield text


_OPEN_TAGS = ("<think>", "<thinking>")
_CLOSE_TAGS = ("</think>", "</thinking>")


class ThinkTagSplitter:
    """
    Splits a token stream into text and reasoning segments on
    <think>/<thinking> tags, including tags split across tokens.
    """

    def __init__(self):
        self.in_reasoning = False
        self._buffer = ""

    @property
    def kind(self) -> str:
        return "reasoning" if self.in_reasoning else "text"

    def _find(self, tags: Tuple[str, ...]) -> Tuple[int, Optional[str]]:
        best_index, best_tag = -1, None
        for tag in tags:
            index = self._buffer.find(tag)
            if index != -1 and (best_index == -1 or index < best_index):
                best_index, best_tag = index, tag
        return best_index, best_tag

    def _partial_suffix(self, tags: Tuple[str, ...]) -> int:
        """Length of the longest buffer suffix that could start a tag."""
        longest = 0
        for tag in tags:
            for size in range(min(len(tag) - 1, len(self._buffer)), 0, -1):
                if self._buffer.endswith(tag[:size]):
                    longest = max(longest, size)
                    break
        return longest

    def feed(self, token: str) -> List[Tuple[str, str]]:
        self._buffer += token
        segments: List[Tuple[str, str]] = []
        while self._buffer:
            tags = _CLOSE_TAGS if self.in_reasoning else _OPEN_TAGS
            index, tag = self._find(tags)
            if tag is not None:
                if index:
                    segments.append((self.kind, self._buffer[:index]))
                self._buffer = self._buffer[index + len(tag):]
                self.in_reasoning = not self.in_reasoning
                continue

            hold = self._partial_suffix(tags)
            cut = len(self._buffer) - hold
            if cut:
                segments.append((self.kind, self._buffer[:cut]))
            self._buffer = self._buffer[cut:]
            break
        return segments

    def flush(self) -> List[Tuple[str, str]]:
        rest, self._buffer = self._buffer, ""
        return [(self.kind, rest)] if rest else []


async def text_stream(tokens: AsyncIterator[str], reasoning: bool = False) -> TextStream:
    """
    Wrap token deltas in start / text-start / text-delta / text-end / finish
    events. For reasoning models, think-tag spans become reasoning-* events.

    An upstream failure mid-stream ends the stream with an 'error' event.
    """
    splitter = ThinkTagSplitter() if reasoning else None
    counters = {"text": 0, "reasoning": 0}
    open_block: List[Optional[Tuple[str, str]]] = [None]

    def switch_to(kind: str) -> List[StreamEvent]:
        events = []
        current = open_block[0]
        if current is not None and current[0] == kind:
            return events
        if current is not None:
            events.append(StreamEvent(type=f"{current[0]}-end", id=current[1]))
        block_id = f"{kind}-{counters[kind]}"
        counters[kind] += 1
        open_block[0] = (kind, block_id)
        events.append(StreamEvent(type=f"{kind}-start", id=block_id))
        return events

    def segment_events(segments: List[Tuple[str, str]]) -> List[StreamEvent]:
        events = []
        for kind, text in segments:
            if not text:
                continue
            events.extend(switch_to(kind))
            events.append(StreamEvent(type=f"{kind}-delta", id=open_block[0][1], delta=text))
        return events

    yield StreamEvent(type="start")
    if splitter is None:
        for event in switch_to("text"):
            yield event

    try:
        async for token in tokens:
            segments = splitter.feed(token) if splitter else [("text", token)]
            for event in segment_events(segments):
                yield event
    except InferenceError as e:
        logger.error(f"Chat stream interrupted: {e.message}")
        yield StreamEvent(type="error", error_text=classify_upstream_error("chat", e).message)
        return
    except MalformedResponse as e:
        yield StreamEvent(type="error", error_text=e.message)
        return

    if splitter is not None:
        for event in segment_events(splitter.flush()):
            yield event
        if open_block[0] is None:
            for event in switch_to("text"):
                yield event

    kind, block_id = open_block[0]
    yield StreamEvent(type=f"{kind}-end", id=block_id)
    yield StreamEvent(type="finish")


# ──────────────────────────────────────────────────────────────────────────────
# Generic entry point
# ──────────────────────────────────────────────────────────────────────────────

async def normalize(
    descriptor: ModelDescriptor,
    raw: RawOutput,
    *,
    encoding: Optional[str] = None,
) -> NormalizedResult:
    """Dispatch on the model family."""
    family = descriptor.family
    if family == "text":
        return text_stream(tokens_from_raw(raw), reasoning=descriptor.supports("reasoning"))
    if family == "image":
        return await normalize_image(descriptor, raw)
    if family == "speech-to-text":
        return normalize_transcription(raw)
    if family == "text-to-speech":
        return await normalize_audio(descriptor, raw, encoding=encoding)
    raise _malformed(family, raw, "unknown family")
