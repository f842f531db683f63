"""
Dispatcher: per-route orchestration.

Every capability follows the same order:
    validate + build payload -> inference binding check -> rate limit check
    -> invoke (single call site) -> normalize

Validation failures never consume quota or reach the upstream. Upstream
failures are classified once, in _invoke, and never retried.
"""

import logging
import time
from typing import Any, Mapping, Optional, Tuple

from catalog import ModelSchemaRegistry, get_registry
from catalog.types import REASONING
from inference import InferenceBackend, InferenceError, RawOutput
from ratelimit import CAPABILITIES, RateLimiter, RateLimitResult

from .errors import (
    InvalidArgument,
    RateLimitExceeded,
    UnconfiguredDependency,
    classify_upstream_error,
)
from .normalizer import normalize_audio, normalize_image, normalize_transcription
from .payload import PayloadBuilder
from .streaming import select_strategy
from .types import (
    AudioResult,
    ImageResult,
    InvocationPayload,
    RequestEnvelope,
    TextStream,
    TranscriptionResult,
)

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Routes a RequestEnvelope through builder, limiter, inference and
    normalizer. Holds no per-request state.
    """

    def __init__(
        self,
        backend: Optional[InferenceBackend],
        limiter: RateLimiter,
        builder: Optional[PayloadBuilder] = None,
        registry: Optional[ModelSchemaRegistry] = None,
    ):
        self.backend = backend
        self.limiter = limiter
        self.registry = registry or get_registry()
        self.builder = builder or PayloadBuilder(self.registry)

    # ── Shared steps ───────────────────────────────────────────────────────

    def _require_backend(self, capability: str) -> InferenceBackend:
        if self.backend is None:
            logger.error(
                f"Inference binding is not configured; cannot serve {capability} "
                f"(set CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN, or INFERENCE_BACKEND=stub)"
            )
            raise UnconfiguredDependency("AI service is not configured")
        return self.backend

    async def _check_rate(self, envelope: RequestEnvelope) -> RateLimitResult:
        result = await self.limiter.check(envelope.client_identity, envelope.capability)
        if not result.allowed:
            raise RateLimitExceeded(envelope.capability, result)
        if result.warning:
            logger.warning(f"{envelope.capability}: {result.warning}")
        return result

    async def _invoke(
        self,
        backend: InferenceBackend,
        capability: str,
        payload: InvocationPayload,
        stream: bool = False,
    ) -> RawOutput:
        started = time.monotonic()
        try:
            raw = await backend.run(payload.model_id, payload.params, stream=stream)
        except InferenceError as e:
            error = classify_upstream_error(capability, e)
            logger.error(
                f"Inference failed: capability={capability} model={payload.model_id} "
                f"kind={error.kind} upstream={e.message}"
            )
            raise error from e

        logger.info(
            f"Inference ok: capability={capability} model={payload.model_id} "
            f"backend={backend.name} latency_ms={int((time.monotonic() - started) * 1000)}"
        )
        return raw

    # ── Chat ───────────────────────────────────────────────────────────────

    async def chat(
        self,
        envelope: RequestEnvelope,
        raw_messages: Any,
        web_search: bool = False,
    ) -> TextStream:
        """
        Returns the event stream. Failures before the first byte raise;
        failures mid-stream become an 'error' event.
        """
        messages = self.builder.coerce_messages(raw_messages)
        payload = self.builder.build_chat(
            envelope.model_id, messages, web_search=web_search, overrides=envelope.raw_params
        )
        envelope.messages = messages

        backend = self._require_backend(envelope.capability)
        await self._check_rate(envelope)

        strategy = select_strategy(payload.model_id)
        logger.info(
            f"Chat request: model={payload.model_id} strategy={strategy.name} "
            f"messages={len(messages)} web_search={web_search}"
        )
        raw = await self._invoke(backend, envelope.capability, payload, stream=strategy.stream)
        return strategy.events(raw, reasoning=payload.model.supports(REASONING))

    # ── Image ──────────────────────────────────────────────────────────────

    async def generate_image(self, envelope: RequestEnvelope) -> ImageResult:
        params = dict(envelope.raw_params)
        prompt = params.pop("prompt", None)
        payload = self.builder.build_image(envelope.model_id, prompt, params)

        backend = self._require_backend(envelope.capability)
        await self._check_rate(envelope)

        logger.info(
            f"Image request: model={payload.model_id} prompt_chars={len(payload.params['prompt'])} "
            f"has_image={'image_b64' in payload.params or 'image' in payload.params} "
            f"has_mask={'mask' in payload.params}"
        )
        raw = await self._invoke(backend, envelope.capability, payload)
        return await normalize_image(payload.model, raw)

    # ── Speech-to-text ─────────────────────────────────────────────────────

    async def transcribe(
        self,
        envelope: RequestEnvelope,
        audio: bytes,
        filename: Optional[str],
        content_type: Optional[str],
        detect_language: Optional[str] = None,
        punctuate: Optional[str] = None,
        smart_format: Optional[str] = None,
    ) -> Tuple[TranscriptionResult, InvocationPayload]:
        self.builder.validate_audio_upload(filename, content_type, len(audio))
        payload = self.builder.build_transcription(
            audio,
            content_type,
            detect_language=detect_language,
            punctuate=punctuate,
            smart_format=smart_format,
        )

        backend = self._require_backend(envelope.capability)
        await self._check_rate(envelope)

        logger.info(
            f"Transcription request: bytes={len(audio)} content_type={content_type}"
        )
        raw = await self._invoke(backend, envelope.capability, payload)
        return normalize_transcription(raw), payload

    # ── Text-to-speech ─────────────────────────────────────────────────────

    async def synthesize(self, envelope: RequestEnvelope) -> Tuple[AudioResult, InvocationPayload]:
        params = envelope.raw_params
        payload = self.builder.build_speech(
            text=params.get("text"),
            model_id=envelope.model_id,
            speaker=params.get("speaker"),
            encoding=params.get("encoding"),
            sample_rate=params.get("sample_rate"),
            language=params.get("language"),
        )

        backend = self._require_backend(envelope.capability)
        await self._check_rate(envelope)

        logger.info(
            f"Speech request: model={payload.model_id} voice={payload.context.get('voice')} "
            f"text_chars={len(params['text'])}"
        )
        raw = await self._invoke(backend, envelope.capability, payload)
        audio = await normalize_audio(
            payload.model, raw, encoding=payload.context.get("encoding")
        )
        return audio, payload

    # ── Rate limit pre-flight ──────────────────────────────────────────────

    async def rate_limit_status(self, client_identity: str, capability: str) -> RateLimitResult:
        if capability not in CAPABILITIES:
            raise InvalidArgument(
                f"Unknown capability '{capability}'. Expected one of: {', '.join(CAPABILITIES)}",
                field="capability",
            )
        return await self.limiter.status(client_identity, capability)

    async def aclose(self) -> None:
        if self.backend is not None:
            await self.backend.aclose()
        await self.limiter.aclose()


def envelope_for(
    capability: str,
    client_identity: str,
    model_id: Optional[str] = None,
    raw_params: Optional[Mapping[str, Any]] = None,
) -> RequestEnvelope:
    return RequestEnvelope(
        capability=capability,
        client_identity=client_identity,
        model_id=model_id or None,
        raw_params={k: v for k, v in (raw_params or {}).items() if v is not None},
    )
