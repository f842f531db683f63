"""
Test suite for the Dispatcher.

Verifies:
- Validation failures never reach the upstream and never consume quota
- Missing inference binding fails before the rate limit is touched
- Rate limit rejection happens before any upstream call
- Upstream failures are classified, and the quota is still spent
- Each capability returns its normalized result
"""

import base64

import pytest

from catalog import models as catalog_models
from dispatch import (
    Dispatcher,
    InvalidArgument,
    RateLimitExceeded,
    UnconfiguredDependency,
    UpstreamTimeout,
    envelope_for,
)
from inference import AudioInput, StubInferenceBackend
from inference.stub import STUB_REPLY
from ratelimit import RateLimiter


IP = "203.0.113.7"


async def _deltas(stream):
    return "".join([e.delta async for e in stream if e.type == "text-delta"])


async def _used(limiter, capability):
    return (await limiter.status(IP, capability)).used


# ─────────────────────────────────────────────────────
# Ordering
# ─────────────────────────────────────────────────────


class TestOrdering:
    """validate -> binding -> rate limit -> invoke."""

    @pytest.mark.asyncio
    async def test_invalid_prompt_is_free(self, dispatcher, stub_backend, limiter):
        envelope = envelope_for("image", IP, "flux-1-schnell", {"prompt": "x" * 3000})

        with pytest.raises(InvalidArgument) as exc_info:
            await dispatcher.generate_image(envelope)

        assert exc_info.value.field == "prompt"
        assert stub_backend.calls == []
        assert await _used(limiter, "image") == 0

    @pytest.mark.asyncio
    async def test_invalid_messages_are_free(self, dispatcher, stub_backend, limiter):
        with pytest.raises(InvalidArgument):
            await dispatcher.chat(envelope_for("chat", IP), [])

        assert stub_backend.calls == []
        assert await _used(limiter, "chat") == 0

    @pytest.mark.asyncio
    async def test_unconfigured_backend(self, limiter, builder):
        dispatcher = Dispatcher(backend=None, limiter=limiter, builder=builder)

        with pytest.raises(UnconfiguredDependency) as exc_info:
            await dispatcher.synthesize(envelope_for("text-to-speech", IP, raw_params={"text": "hi"}))

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "AI service is not configured"
        assert await _used(limiter, "text-to-speech") == 0

    @pytest.mark.asyncio
    async def test_rate_limited_before_upstream(self, stub_backend, sqlite_store, clock, builder):
        limiter = RateLimiter(durable_store=sqlite_store, limits={"image": 1}, clock=clock)
        dispatcher = Dispatcher(stub_backend, limiter, builder=builder)
        envelope = envelope_for("image", IP, "flux-1-schnell", {"prompt": "a red fox"})

        await dispatcher.generate_image(envelope)
        with pytest.raises(RateLimitExceeded) as exc_info:
            await dispatcher.generate_image(envelope)

        assert len(stub_backend.calls) == 1
        assert exc_info.value.status_code == 429
        assert exc_info.value.result.remaining == 0
        assert exc_info.value.message == "Rate limit exceeded. 1 image requests allowed per day."

    @pytest.mark.asyncio
    async def test_upstream_failure_still_spends_quota(self, limiter, builder):
        dispatcher = Dispatcher(StubInferenceBackend(error="Request timed out"), limiter, builder)

        with pytest.raises(UpstreamTimeout):
            await dispatcher.generate_image(
                envelope_for("image", IP, "flux-1-schnell", {"prompt": "a red fox"})
            )

        assert await _used(limiter, "image") == 1


# ─────────────────────────────────────────────────────
# Capabilities
# ─────────────────────────────────────────────────────


class TestChat:
    """Chat dispatch."""

    @pytest.mark.asyncio
    async def test_streaming_model(self, dispatcher, stub_backend):
        stream = await dispatcher.chat(
            envelope_for("chat", IP), [{"role": "user", "content": "hello"}]
        )

        assert await _deltas(stream) == STUB_REPLY
        call = stub_backend.calls[0]
        assert call["model"] == catalog_models.DEFAULT_CHAT_MODEL
        assert call["stream"] is True
        assert call["payload"]["messages"][-1] == {"role": "user", "content": "hello"}

    @pytest.mark.asyncio
    async def test_batch_model(self, dispatcher, stub_backend):
        stream = await dispatcher.chat(
            envelope_for("chat", IP, "@cf/openai/gpt-oss-20b"),
            [{"role": "user", "content": "hello"}],
        )

        assert await _deltas(stream) == STUB_REPLY
        assert stub_backend.calls[0]["stream"] is False
        assert stub_backend.calls[0]["payload"] == {"input": "user: hello"}

    @pytest.mark.asyncio
    async def test_web_search_prompt(self, dispatcher, stub_backend):
        await dispatcher.chat(
            envelope_for("chat", IP), [{"role": "user", "content": "news?"}], web_search=True
        )
        system = stub_backend.calls[0]["payload"]["messages"][0]
        assert system["role"] == "system"


class TestImage:
    """Image dispatch."""

    @pytest.mark.asyncio
    async def test_clamped_payload_reaches_upstream(self, dispatcher, stub_backend):
        result = await dispatcher.generate_image(
            envelope_for("image", IP, "flux-1-schnell", {"prompt": "a red fox", "steps": 999})
        )

        sent = stub_backend.calls[0]
        assert sent["model"] == "@cf/black-forest-labs/flux-1-schnell"
        assert sent["payload"]["steps"] == 8
        assert sent["payload"]["seed"] == 42
        assert result.media_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_binary_model(self, dispatcher):
        result = await dispatcher.generate_image(
            envelope_for("image", IP, "@cf/lykon/dreamshaper-8-lcm", {"prompt": "a red fox"})
        )
        assert result.media_type == "image/png"
        assert base64.b64decode(result.base64).startswith(b"\x89PNG")


class TestSpeech:
    """Speech-to-text and text-to-speech dispatch."""

    @pytest.mark.asyncio
    async def test_transcribe(self, dispatcher, stub_backend):
        result, payload = await dispatcher.transcribe(
            envelope_for("speech-to-text", IP),
            b"\x01" * 2500,
            "note.webm",
            "audio/webm",
            detect_language="true",
        )

        assert result.transcript == "word_0 word_1"
        assert result.language == "en"
        assert payload.model_id == catalog_models.SPEECH_TO_TEXT_MODEL
        assert payload.params["audio"] == AudioInput(body=b"\x01" * 2500, content_type="audio/webm")

    @pytest.mark.asyncio
    async def test_transcribe_rejects_tiny_upload(self, dispatcher, stub_backend):
        with pytest.raises(InvalidArgument):
            await dispatcher.transcribe(
                envelope_for("speech-to-text", IP), b"\x01" * 10, "note.webm", "audio/webm"
            )
        assert stub_backend.calls == []

    @pytest.mark.asyncio
    async def test_synthesize_aura(self, dispatcher):
        audio, payload = await dispatcher.synthesize(
            envelope_for("text-to-speech", IP, raw_params={"text": "hello"})
        )

        assert audio.content_type == "audio/mpeg"
        assert len(base64.b64decode(audio.base64)) == 50
        assert payload.model_id == catalog_models.AURA_MODEL

    @pytest.mark.asyncio
    async def test_synthesize_melotts(self, dispatcher):
        audio, payload = await dispatcher.synthesize(
            envelope_for("text-to-speech", IP, "melotts", {"text": "bonjour", "language": "FR"})
        )

        assert audio.content_type == "audio/mpeg"
        assert payload.params["lang"] == "FR"


class TestRateLimitStatus:
    """Pre-flight status reads."""

    @pytest.mark.asyncio
    async def test_status(self, dispatcher):
        status = await dispatcher.rate_limit_status(IP, "chat")
        assert status.remaining == 20

    @pytest.mark.asyncio
    async def test_unknown_capability(self, dispatcher):
        with pytest.raises(InvalidArgument) as exc_info:
            await dispatcher.rate_limit_status(IP, "video")
        assert exc_info.value.field == "capability"


class TestEnvelope:
    """envelope_for helper."""

    def test_drops_none_values(self):
        envelope = envelope_for("image", IP, "", {"prompt": "x", "seed": None})
        assert envelope.model_id is None
        assert envelope.raw_params == {"prompt": "x"}
