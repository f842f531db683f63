"""
Test suite for text streaming and upstream error classification.

Verifies:
- SSE token parsing across chunk boundaries (lines and UTF-8)
- <think> tag splitting, including tags split across tokens
- Event order for text and reasoning streams
- Mid-stream upstream failure becomes an 'error' event
- Streaming and batch strategies produce the same event shape
- SSE wire encoding ends with [DONE]
- Upstream errors map onto timeout / rejected / generic
"""

import json

import pytest

from catalog import get_registry
from catalog import models as catalog_models
from dispatch import (
    BatchStrategy,
    InvocationPayload,
    StreamEvent,
    StreamingStrategy,
    UpstreamError,
    UpstreamRejected,
    UpstreamTimeout,
    classify_upstream_error,
    encode_sse,
    select_strategy,
)
from dispatch.errors import TIMEOUT_HINTS
from dispatch.normalizer import ThinkTagSplitter, iter_stream_tokens, text_stream
from dispatch.streaming import SSE_DONE, STREAM_HEADERS
from inference import ByteStreamOutput, InferenceError, ObjectOutput, StubInferenceBackend
from inference.stub import STUB_REPLY


async def _aiter(items):
    for item in items:
        yield item


async def _collect(events):
    return [event async for event in events]


def _types(events):
    return [event.type for event in events]


# ─────────────────────────────────────────────────────
# Token parsing
# ─────────────────────────────────────────────────────


class TestIterStreamTokens:
    """Server-sent event parsing of upstream token streams."""

    @pytest.mark.asyncio
    async def test_byte_at_a_time(self):
        """Lines and multi-byte characters split across chunks still decode."""
        body = (
            "data: " + json.dumps({"response": "café ☕"}, ensure_ascii=False) + "\n\n"
            "data: " + json.dumps({"response": " ok"}) + "\n\n"
            "data: [DONE]\n\n"
        ).encode("utf-8")
        chunks = [body[i:i + 1] for i in range(len(body))]

        tokens = [t async for t in iter_stream_tokens(_aiter(chunks))]

        assert tokens == ["café ☕", " ok"]

    @pytest.mark.asyncio
    async def test_stops_at_done(self):
        body = b'data: {"response": "a"}\n\ndata: [DONE]\n\ndata: {"response": "late"}\n\n'
        tokens = [t async for t in iter_stream_tokens(_aiter([body]))]
        assert tokens == ["a"]

    @pytest.mark.asyncio
    async def test_openai_delta_shape(self):
        body = b'data: {"choices": [{"delta": {"content": "x"}}]}\n'
        tokens = [t async for t in iter_stream_tokens(_aiter([body]))]
        assert tokens == ["x"]

    @pytest.mark.asyncio
    async def test_skips_noise(self):
        body = b': keep-alive\n\ndata: {oops\n\ndata:\n\nevent: ping\n\ndata: {"response": "y"}'
        tokens = [t async for t in iter_stream_tokens(_aiter([body]))]
        assert tokens == ["y"]


# ─────────────────────────────────────────────────────
# Think tags
# ─────────────────────────────────────────────────────


class TestThinkTagSplitter:
    """Reasoning span detection."""

    def test_tag_split_across_tokens(self):
        splitter = ThinkTagSplitter()
        segments = []
        for token in ["<thi", "nk>hmm</th", "ink>Answer"]:
            segments.extend(splitter.feed(token))
        segments.extend(splitter.flush())

        assert segments == [("reasoning", "hmm"), ("text", "Answer")]

    def test_thinking_variant(self):
        splitter = ThinkTagSplitter()
        segments = splitter.feed("<thinking>a</thinking>b") + splitter.flush()
        assert segments == [("reasoning", "a"), ("text", "b")]

    def test_plain_text_passes_through(self):
        splitter = ThinkTagSplitter()
        assert splitter.feed("a < b") == [("text", "a < b")]
        assert splitter.flush() == []

    def test_held_partial_is_flushed(self):
        splitter = ThinkTagSplitter()
        assert splitter.feed("x <th") == [("text", "x ")]
        assert splitter.flush() == [("text", "<th")]


# ─────────────────────────────────────────────────────
# Event stream
# ─────────────────────────────────────────────────────


class TestTextStream:
    """Event order and block ids."""

    @pytest.mark.asyncio
    async def test_plain_stream(self):
        events = await _collect(text_stream(_aiter(["Hel", "lo"])))

        assert _types(events) == [
            "start", "text-start", "text-delta", "text-delta", "text-end", "finish",
        ]
        assert {e.id for e in events[1:5]} == {"text-0"}
        assert "".join(e.delta for e in events if e.type == "text-delta") == "Hello"

    @pytest.mark.asyncio
    async def test_empty_stream_still_opens_and_closes(self):
        events = await _collect(text_stream(_aiter([])))
        assert _types(events) == ["start", "text-start", "text-end", "finish"]

    @pytest.mark.asyncio
    async def test_reasoning_stream(self):
        events = await _collect(
            text_stream(_aiter(["<think>", "hmm", "</think>", "Answer"]), reasoning=True)
        )

        assert _types(events) == [
            "start",
            "reasoning-start", "reasoning-delta", "reasoning-end",
            "text-start", "text-delta", "text-end",
            "finish",
        ]
        assert events[1].id == "reasoning-0"
        assert events[4].id == "text-0"

    @pytest.mark.asyncio
    async def test_reasoning_model_without_tags(self):
        events = await _collect(text_stream(_aiter(["just text"]), reasoning=True))
        assert _types(events) == ["start", "text-start", "text-delta", "text-end", "finish"]

    @pytest.mark.asyncio
    async def test_mid_stream_failure_emits_error_event(self):
        async def failing():
            yield "Hel"
            raise InferenceError("Upstream timeout while streaming: read timed out")

        events = await _collect(text_stream(failing()))

        assert _types(events) == ["start", "text-start", "text-delta", "error"]
        assert events[-1].error_text == TIMEOUT_HINTS["chat"]
        assert "read timed out" not in events[-1].error_text

    def test_event_dict(self):
        assert StreamEvent(type="text-delta", id="text-0", delta="x").to_dict() == {
            "type": "text-delta", "id": "text-0", "delta": "x",
        }
        assert StreamEvent(type="error", error_text="boom").to_dict() == {
            "type": "error", "errorText": "boom",
        }


# ─────────────────────────────────────────────────────
# Strategies + wire encoding
# ─────────────────────────────────────────────────────


class TestStrategies:
    """Streaming and batch strategies."""

    def test_selection_by_prefix(self):
        assert isinstance(select_strategy("@cf/openai/gpt-oss-20b"), BatchStrategy)
        assert isinstance(select_strategy(catalog_models.DEFAULT_CHAT_MODEL), StreamingStrategy)

    @pytest.mark.asyncio
    async def test_streaming_strategy_forwards_deltas(self):
        backend = StubInferenceBackend(chunk_size=3)
        strategy = StreamingStrategy()
        payload = InvocationPayload(
            model=get_registry().get_descriptor(catalog_models.DEFAULT_CHAT_MODEL),
            params={"messages": []},
        )
        raw = await backend.run(payload.model_id, payload.params, stream=strategy.stream)
        events = await _collect(strategy.events(raw))

        deltas = [e.delta for e in events if e.type == "text-delta"]
        assert len(deltas) > 1
        assert "".join(deltas) == STUB_REPLY
        assert backend.calls[0]["stream"] is True

    @pytest.mark.asyncio
    async def test_batch_strategy_single_delta(self):
        raw = ObjectOutput({
            "output": [{
                "type": "message",
                "role": "assistant",
                "content": [{"type": "output_text", "text": "Whole answer"}],
            }]
        })
        events = await _collect(BatchStrategy().events(raw))

        assert _types(events) == ["start", "text-start", "text-delta", "text-end", "finish"]
        assert events[2].delta == "Whole answer"

    @pytest.mark.asyncio
    async def test_batch_strategy_over_byte_stream(self):
        raw = ByteStreamOutput(chunks=_aiter([b'data: {"response": "a"}\n', b'data: {"response": "b"}\n']))
        events = await _collect(BatchStrategy().events(raw))
        assert [e.delta for e in events if e.type == "text-delta"] == ["ab"]


class TestEncodeSSE:
    """SSE framing."""

    @pytest.mark.asyncio
    async def test_frames_then_done(self):
        frames = [f async for f in encode_sse(text_stream(_aiter(["hi"])))]

        assert frames[0] == b'data: {"type": "start"}\n\n'
        assert frames[-1] == SSE_DONE
        payloads = [json.loads(f[len(b"data: "):]) for f in frames[:-1]]
        assert payloads[2] == {"type": "text-delta", "id": "text-0", "delta": "hi"}

    def test_stream_headers(self):
        assert STREAM_HEADERS["x-vercel-ai-ui-message-stream"] == "v1"
        assert STREAM_HEADERS["Cache-Control"] == "no-cache"


# ─────────────────────────────────────────────────────
# Error classification
# ─────────────────────────────────────────────────────


class TestClassifyUpstreamError:
    """Upstream failures map onto the error taxonomy."""

    def test_timeout(self):
        error = classify_upstream_error("image", InferenceError("Request timed out after 30s"))
        assert isinstance(error, UpstreamTimeout)
        assert error.status_code == 504
        assert "reducing steps" in error.message

    def test_rejected_by_message(self):
        error = classify_upstream_error("image", InferenceError("5012: Invalid input"))
        assert isinstance(error, UpstreamRejected)
        assert error.status_code == 400

    def test_rejected_by_code(self):
        error = classify_upstream_error("chat", InferenceError("boom", code=3030))
        assert isinstance(error, UpstreamRejected)

    def test_speech_rejection_message(self):
        error = classify_upstream_error("speech-to-text", InferenceError("model_error"))
        assert error.message.startswith("Audio format not supported")

    def test_generic_failure_hides_upstream_text(self):
        error = classify_upstream_error("chat", InferenceError("secret stack trace"))
        assert isinstance(error, UpstreamError)
        assert error.status_code == 500
        assert error.message == "AI processing error"
