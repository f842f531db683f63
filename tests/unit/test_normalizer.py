"""
Test suite for the response normalizer.

Verifies:
- Image: byte streams drained losslessly, embedded base64 used directly
- Image media type from the catalog, heuristic for unknown models
- Speech-to-text: channels path, top-level fallback, malformed shapes
- Text-to-speech: all four raw shapes
- Batch text extraction
"""

import base64

import pytest

from catalog import fallback_descriptor, get_registry
from catalog import models as catalog_models
from dispatch import MalformedResponse, normalize
from dispatch.normalizer import (
    drain,
    extract_batch_text,
    normalize_audio,
    normalize_image,
    normalize_transcription,
)
from inference import BinaryOutput, ByteStreamOutput, ObjectOutput, StringOutput


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


@pytest.fixture
def registry():
    return get_registry()


# ─────────────────────────────────────────────────────
# Image
# ─────────────────────────────────────────────────────


class TestNormalizeImage:
    """Test image normalization."""

    @pytest.mark.asyncio
    async def test_byte_stream_round_trip(self, registry):
        """Chunked accumulation reproduces the source bytes exactly."""
        source = bytes(range(256)) * 37
        pieces = [source[i:i + 101] for i in range(0, len(source), 101)]
        raw = ByteStreamOutput(chunks=_chunks(*pieces), content_type="image/png")

        result = await normalize_image(registry.get_descriptor("@cf/lykon/dreamshaper-8-lcm"), raw)

        assert base64.b64decode(result.base64) == source
        assert result.byte_length == len(source)
        assert result.media_type == "image/png"

    @pytest.mark.asyncio
    async def test_embedded_base64(self, registry):
        encoded = base64.b64encode(b"jpeg bytes").decode("ascii")
        raw = ObjectOutput({"image": encoded})

        result = await normalize_image(registry.get_descriptor("flux-1-schnell"), raw)

        assert result.base64 == encoded
        assert result.media_type == "image/jpeg"
        assert result.byte_length == len(b"jpeg bytes")

    @pytest.mark.asyncio
    async def test_phoenix_binary_is_jpeg(self, registry):
        raw = BinaryOutput(data=b"\xff\xd8\xff")
        result = await normalize_image(registry.get_descriptor("@cf/leonardo/phoenix-1.0"), raw)
        assert result.media_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_unknown_model_heuristic(self):
        descriptor = fallback_descriptor("@cf/new/image-model", "image")
        encoded = base64.b64encode(b"abc").decode("ascii")

        binary = await normalize_image(descriptor, BinaryOutput(data=b"abc"))
        embedded = await normalize_image(descriptor, StringOutput(encoded))

        assert binary.media_type == "image/png"
        assert embedded.media_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_to_dict_shape(self, registry):
        raw = BinaryOutput(data=b"\x01\x02\x03")
        result = await normalize_image(registry.get_descriptor("@cf/lykon/dreamshaper-8-lcm"), raw)

        assert result.to_dict() == {
            "base64": "AQID",
            "mediaType": "image/png",
            "uint8Array": [1, 2, 3],
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [
        ObjectOutput({"images": []}),
        ObjectOutput(["not", "a", "dict"]),
        StringOutput("%%% not base64 %%%"),
        BinaryOutput(data=b""),
    ])
    async def test_malformed(self, registry, raw):
        with pytest.raises(MalformedResponse):
            await normalize_image(registry.get_descriptor("flux-1-schnell"), raw)


# ─────────────────────────────────────────────────────
# Speech-to-text
# ─────────────────────────────────────────────────────


class TestNormalizeTranscription:
    """Test transcription normalization."""

    def test_channels_first_alternative(self):
        raw = ObjectOutput({
            "results": {
                "channels": [{
                    "alternatives": [
                        {"transcript": "hello world", "confidence": 0.95},
                        {"transcript": "hollow word", "confidence": 0.99},
                    ]
                }]
            }
        })

        result = normalize_transcription(raw)

        assert result.transcript == "hello world"
        assert result.confidence == 0.95
        assert result.to_dict() == {"transcript": "hello world", "confidence": 0.95}

    def test_words_duration_language(self):
        raw = ObjectOutput({
            "results": {
                "channels": [{
                    "alternatives": [{
                        "transcript": "hi there",
                        "confidence": 0.9,
                        "words": [
                            {"word": "hi", "start": 0.0, "end": 0.3, "confidence": 0.91},
                            {"word": "there", "start": 0.35, "end": 0.8},
                        ],
                    }]
                }],
                "duration": 1.2,
                "language": "en",
            }
        })

        data = normalize_transcription(raw).to_dict()

        assert data["duration"] == 1.2
        assert data["language"] == "en"
        assert data["words"] == [
            {"word": "hi", "start": 0.0, "end": 0.3, "confidence": 0.91},
            {"word": "there", "start": 0.35, "end": 0.8, "confidence": 0},
        ]

    def test_top_level_transcript_fallback(self):
        result = normalize_transcription(ObjectOutput({"transcript": "plain", "confidence": 0.5}))
        assert result.transcript == "plain"
        assert result.confidence == 0.5
        assert result.words is None

    def test_zero_duration_kept(self):
        raw = ObjectOutput({
            "results": {
                "channels": [{"alternatives": [{"transcript": "hi", "confidence": 0.9}]}],
                "duration": 0,
            }
        })
        assert normalize_transcription(raw).to_dict()["duration"] == 0

    def test_results_transcript_fallback(self):
        result = normalize_transcription(ObjectOutput({"results": {"transcript": "nested"}}))
        assert result.transcript == "nested"

    @pytest.mark.parametrize("raw", [
        ObjectOutput({"results": {"channels": []}}),
        ObjectOutput({"nothing": True}),
        StringOutput("hello"),
    ])
    def test_malformed(self, raw):
        with pytest.raises(MalformedResponse):
            normalize_transcription(raw)


# ─────────────────────────────────────────────────────
# Text-to-speech
# ─────────────────────────────────────────────────────


class TestNormalizeAudio:
    """Test the four audio source shapes."""

    @pytest.mark.asyncio
    async def test_plain_base64_string_mp3(self, registry):
        aura = registry.get_descriptor(catalog_models.AURA_MODEL)
        result = await normalize_audio(aura, StringOutput("QUJD"), encoding="mp3")

        assert result.base64 == "QUJD"
        assert result.content_type == "audio/mpeg"

    @pytest.mark.asyncio
    async def test_byte_stream_uses_encoding(self, registry):
        aura = registry.get_descriptor(catalog_models.AURA_MODEL)
        raw = ByteStreamOutput(chunks=_chunks(b"AB", b"C"))

        result = await normalize_audio(aura, raw, encoding="wav")

        assert result.base64 == "QUJD"
        assert result.content_type == "audio/wav"

    @pytest.mark.asyncio
    async def test_binary_buffer(self, registry):
        aura = registry.get_descriptor(catalog_models.AURA_MODEL)
        result = await normalize_audio(aura, BinaryOutput(data=b"ABC"), encoding="flac")
        assert result.content_type == "audio/flac"

    @pytest.mark.asyncio
    async def test_object_is_model_fixed(self, registry):
        melotts = registry.get_descriptor(catalog_models.MELOTTS_MODEL)
        result = await normalize_audio(melotts, ObjectOutput({"audio": "QUJD"}), encoding="wav")

        assert result.base64 == "QUJD"
        assert result.content_type == "audio/mpeg"

    @pytest.mark.asyncio
    async def test_malformed(self, registry):
        aura = registry.get_descriptor(catalog_models.AURA_MODEL)
        with pytest.raises(MalformedResponse):
            await normalize_audio(aura, ObjectOutput({"result": 1}), encoding="mp3")


# ─────────────────────────────────────────────────────
# Text + generic entry point
# ─────────────────────────────────────────────────────


class TestBatchText:
    """Reply extraction for batch chat answers."""

    def test_output_message(self):
        data = {
            "output": [
                {"type": "reasoning", "content": [{"type": "reasoning_text", "text": "hmm"}]},
                {
                    "type": "message",
                    "role": "assistant",
                    "content": [{"type": "output_text", "text": "Answer"}],
                },
            ]
        }
        assert extract_batch_text(data) == "Answer"

    def test_response_field(self):
        assert extract_batch_text({"response": "hi"}) == "hi"

    def test_nested_result(self):
        assert extract_batch_text({"result": {"response": "hi"}}) == "hi"

    def test_unrecognised(self):
        assert extract_batch_text({"output": []}) is None


class TestGenericNormalize:
    """normalize() dispatches on the model family."""

    @pytest.mark.asyncio
    async def test_image(self, registry):
        result = await normalize(registry.get_descriptor("flux-1-schnell"), StringOutput("QUJD"))
        assert result.media_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_text_returns_event_stream(self, registry):
        events = await normalize(
            registry.get_descriptor(catalog_models.DEFAULT_CHAT_MODEL), StringOutput("hi")
        )
        types = [event.type async for event in events]
        assert types == ["start", "text-start", "text-delta", "text-end", "finish"]

    @pytest.mark.asyncio
    async def test_drain(self):
        assert await drain(_chunks(b"a", b"", b"bc")) == b"abc"
