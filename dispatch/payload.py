"""
Payload Builder.

Turns a generic request (prompt / messages / audio plus untyped overrides)
into the flat, validated parameter map a specific model accepts.

Validation policy:
- Finite numeric parameters with a declared range are clamped, never rejected;
  non-numbers, inf and NaN are rejected with InvalidArgument.
- Text presence/length, enumerations (speaker, language, encoding, sample
  rate) and audio formats are rejected with InvalidArgument.
- Fields gated by a capability tag are stripped when the model lacks it.
"""

import base64
import binascii
import logging
import math
import random
import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from catalog import (
    ModelDescriptor,
    ModelSchemaRegistry,
    UnknownModel,
    fallback_descriptor,
    get_registry,
    merge_params,
)
from catalog import models as catalog_models
from catalog.types import IMAGE_TO_IMAGE, INPAINTING, NEGATIVE_PROMPT
from inference import AudioInput

from .errors import InvalidArgument
from .types import InvocationPayload, Message

logger = logging.getLogger(__name__)

MAX_SEED = 2**32 - 1

# Parameters sent upstream as integers
INTEGER_PARAMS = frozenset({"steps", "num_steps", "width", "height", "seed", "max_tokens"})

_DATA_URL_RE = re.compile(r"^data:[a-zA-Z]+/[a-zA-Z0-9.+-]+;base64,")

CHAT_ROLES = ("system", "user", "assistant", "tool")

SYSTEM_PROMPT_BASE = "You are a helpful AI assistant. "
SYSTEM_PROMPT_WEB_SEARCH = "When web search is enabled, provide sources for your information."
SYSTEM_PROMPT_REASONING = (
    "For complex questions that require reasoning, show your step-by-step thinking "
    "process. You can use <think> tags to wrap your reasoning if helpful."
)


def _to_number(field: str, value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidArgument(f"'{field}' must be a number", field=field)
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"'{field}' must be a number", field=field)
    if not math.isfinite(number):
        raise InvalidArgument(f"'{field}' must be a finite number", field=field)
    return number


def _finish_number(param: str, value: float) -> Any:
    return int(round(value)) if param in INTEGER_PARAMS else value


def _strip_data_url(value: str) -> str:
    return _DATA_URL_RE.sub("", value.strip(), count=1)


def _decode_b64(field: str, value: str) -> bytes:
    try:
        return base64.b64decode(_strip_data_url(value), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidArgument(f"'{field}' is not valid base64", field=field)


def _byte_list(field: str, value: Any) -> List[int]:
    if not isinstance(value, list) or not all(
        isinstance(v, int) and not isinstance(v, bool) and 0 <= v <= 255 for v in value
    ):
        raise InvalidArgument(f"'{field}' must be a list of byte values (0-255)", field=field)
    return value


def _present(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and not value.strip())


def parse_flag(value: Optional[str], default: bool) -> bool:
    """Form flag parsing. Default-true flags are only disabled by 'false'."""
    if value is None:
        return default
    if default:
        return value != "false"
    return value in ("true", "1")


class PayloadBuilder:
    """
    Builds InvocationPayloads from generic requests.

    Pure apart from seed generation, which uses the injected rng.
    """

    def __init__(
        self,
        registry: Optional[ModelSchemaRegistry] = None,
        rng: Optional[Callable[[], int]] = None,
    ):
        self.registry = registry or get_registry()
        self._rng = rng or (lambda: random.randint(0, MAX_SEED))

    # ── Generic entry point ────────────────────────────────────────────────

    def build(
        self,
        model_id: Optional[str],
        user_prompt: str,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> InvocationPayload:
        """
        Build a payload for an image or text-to-speech model from a prompt.

        Chat and speech-to-text take structured input; use build_chat and
        build_transcription for those.
        """
        overrides = dict(overrides or {})
        family = None
        if model_id:
            try:
                family = self.registry.get_descriptor(model_id).family
            except UnknownModel:
                family = None

        if family == "text-to-speech":
            return self.build_speech(
                text=user_prompt,
                model_id=model_id,
                speaker=overrides.get("speaker"),
                encoding=overrides.get("encoding"),
                sample_rate=overrides.get("sample_rate"),
                language=overrides.get("language"),
            )
        if family in ("text", "speech-to-text"):
            raise InvalidArgument(
                f"Model '{model_id}' does not accept a plain prompt", field="model"
            )
        return self.build_image(model_id, user_prompt, overrides)

    # ── Image ──────────────────────────────────────────────────────────────

    def resolve_image_model(self, model_id: Optional[str]) -> ModelDescriptor:
        model_id = model_id or catalog_models.DEFAULT_IMAGE_MODEL
        try:
            descriptor = self.registry.get_descriptor(model_id)
        except UnknownModel:
            logger.info(f"Image model not in catalog, using minimal descriptor: {model_id}")
            return fallback_descriptor(model_id, "image")
        if descriptor.family != "image":
            raise InvalidArgument(f"'{model_id}' is not an image model", field="model")
        return descriptor

    def validate_image_prompt(self, prompt: Any) -> str:
        if not isinstance(prompt, str) or not prompt.strip():
            raise InvalidArgument("Prompt is required", field="prompt")
        if len(prompt) > catalog_models.MAX_IMAGE_PROMPT_LENGTH:
            raise InvalidArgument(
                f"Prompt must be {catalog_models.MAX_IMAGE_PROMPT_LENGTH} characters or less",
                field="prompt",
            )
        return prompt.strip()

    def _apply_seed(self, params: Dict[str, Any], seed: Any) -> None:
        if seed is not None:
            value = _to_number("seed", seed)
            if value > 0:
                params["seed"] = min(int(value), MAX_SEED)
                return
        if not params.get("seed"):
            params["seed"] = self._rng()

    def _apply_numeric(
        self,
        descriptor: ModelDescriptor,
        params: Dict[str, Any],
        overrides: Mapping[str, Any],
        names: Iterable[str],
    ) -> None:
        for name in names:
            value = overrides.get(name)
            if value is None:
                continue
            number = _to_number(name, value)

            target = name
            if name == "steps" and "num_steps" in descriptor.parameter_ranges:
                target = "num_steps"

            rng = descriptor.range_for(target)
            if rng is not None and rng.is_numeric:
                params[target] = _finish_number(target, rng.clamp(number))
            elif target == "steps" and descriptor.declares("steps") and number > 0:
                # Declared without bounds: passed through as given
                params[target] = _finish_number(target, number)

    def build_image(
        self,
        model_id: Optional[str],
        prompt: Any,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> InvocationPayload:
        overrides = dict(overrides or {})
        prompt = self.validate_image_prompt(prompt)
        descriptor = self.resolve_image_model(model_id)

        params = merge_params(descriptor, {"prompt": prompt})
        self._apply_seed(params, overrides.get("seed"))

        accepts_image = descriptor.supports(IMAGE_TO_IMAGE) or descriptor.supports(INPAINTING)
        numeric = ["steps", "width", "height", "guidance"]
        if descriptor.supports(IMAGE_TO_IMAGE):
            numeric.append("strength")
        self._apply_numeric(descriptor, params, overrides, numeric)

        # Input image: base64 preferred over a byte list
        if accepts_image:
            if _present(overrides.get("image_b64")):
                image_b64 = overrides["image_b64"]
                if not isinstance(image_b64, str):
                    raise InvalidArgument("'image_b64' must be a string", field="image_b64")
                _decode_b64("image_b64", image_b64)
                params["image_b64"] = _strip_data_url(image_b64)
            elif overrides.get("image") is not None:
                params["image"] = _byte_list("image", overrides["image"])

        if descriptor.supports(INPAINTING):
            if overrides.get("mask") is not None:
                params["mask"] = _byte_list("mask", overrides["mask"])
            elif _present(overrides.get("mask_b64")):
                mask_b64 = overrides["mask_b64"]
                if not isinstance(mask_b64, str):
                    raise InvalidArgument("'mask_b64' must be a string", field="mask_b64")
                params["mask"] = list(_decode_b64("mask_b64", mask_b64))

        has_image = "image_b64" in params or "image" in params
        if "mask" in params:
            if not has_image:
                raise InvalidArgument(
                    "Inpainting requires an input image. Please upload a base image.",
                    field="image_b64",
                )
            params["mask_image"] = params["mask"]

        if descriptor.supports(NEGATIVE_PROMPT):
            negative = overrides.get("negative_prompt")
            if isinstance(negative, str) and negative.strip():
                params["negative_prompt"] = negative.strip()
        else:
            params.pop("negative_prompt", None)

        # Let the model infer dimensions from the source image
        if has_image:
            params.pop("width", None)
            params.pop("height", None)

        return InvocationPayload(model=descriptor, params=params)

    # ── Chat ───────────────────────────────────────────────────────────────

    def resolve_chat_model(self, model_id: Optional[str]) -> ModelDescriptor:
        """Catalogued text model, or the default model for anything else."""
        if model_id:
            try:
                descriptor = self.registry.get_descriptor(model_id)
                if descriptor.family == "text":
                    return descriptor
            except UnknownModel:
                pass
            logger.info(f"Unknown chat model '{model_id}', using default")
        return self.registry.get_descriptor(catalog_models.DEFAULT_CHAT_MODEL)

    def coerce_messages(self, raw_messages: Any) -> List[Message]:
        """
        Validate and flatten incoming chat messages.

        Accepts content as a string, a list of {type, text} parts, or a
        'parts' list. Role 'tool' is folded into 'assistant'.
        """
        if not isinstance(raw_messages, list) or not raw_messages:
            raise InvalidArgument("Missing or empty messages array", field="messages")

        messages: List[Message] = []
        for index, raw in enumerate(raw_messages):
            if not isinstance(raw, Mapping):
                raise InvalidArgument(
                    f"messages[{index}] must be an object", field="messages"
                )
            role = raw.get("role")
            if role not in CHAT_ROLES:
                raise InvalidArgument(
                    f"messages[{index}].role must be one of: {', '.join(CHAT_ROLES)}",
                    field="messages",
                )

            content = raw.get("content")
            parts = raw.get("parts")
            if isinstance(content, str):
                text = content
            elif isinstance(content, list):
                text = "".join(
                    str(part.get("text") or "") for part in content if isinstance(part, Mapping)
                )
            elif isinstance(parts, list):
                text = "".join(
                    str(part.get("text") or "") for part in parts if isinstance(part, Mapping)
                )
            else:
                text = ""

            messages.append(Message(role="assistant" if role == "tool" else role, content=text))
        return messages

    def system_message(self, web_search: bool) -> Message:
        hint = SYSTEM_PROMPT_WEB_SEARCH if web_search else SYSTEM_PROMPT_REASONING
        return Message(role="system", content=SYSTEM_PROMPT_BASE + hint)

    def build_chat(
        self,
        model_id: Optional[str],
        messages: List[Message],
        web_search: bool = False,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> InvocationPayload:
        descriptor = self.resolve_chat_model(model_id)
        context = {"web_search": web_search}

        if descriptor.invocation_strategy == "batch":
            conversation = "\n\n".join(f"{m.role}: {m.content}" for m in messages)
            return InvocationPayload(
                model=descriptor, params={"input": conversation}, context=context
            )

        params = merge_params(descriptor)
        self._apply_numeric(descriptor, params, overrides or {}, ["temperature", "max_tokens"])
        params["messages"] = [self.system_message(web_search).to_dict()] + [
            m.to_dict() for m in messages
        ]
        return InvocationPayload(model=descriptor, params=params, context=context)

    # ── Speech-to-text ─────────────────────────────────────────────────────

    def validate_audio_upload(
        self,
        filename: Optional[str],
        content_type: Optional[str],
        size: int,
    ) -> None:
        content_type = (content_type or "").strip().lower()
        supported = content_type in catalog_models.SUPPORTED_AUDIO_TYPES
        if not supported:
            name = (filename or "").lower()
            supported = name.endswith(catalog_models.SUPPORTED_AUDIO_EXTENSIONS)
        if not supported:
            raise InvalidArgument(
                f"Unsupported audio format: {content_type or 'unknown'}. "
                f"Supported formats: {', '.join(catalog_models.SUPPORTED_AUDIO_TYPES)}",
                field="audio",
            )

        if size > catalog_models.MAX_AUDIO_FILE_SIZE:
            raise InvalidArgument(
                f"File too large. Maximum size: "
                f"{catalog_models.MAX_AUDIO_FILE_SIZE // (1024 * 1024)}MB",
                field="audio",
            )
        if size < catalog_models.MIN_AUDIO_FILE_SIZE:
            raise InvalidArgument(
                "Audio file too small. Please record for at least 1 second.",
                field="audio",
            )

    def build_transcription(
        self,
        audio: bytes,
        content_type: Optional[str],
        detect_language: Optional[str] = None,
        punctuate: Optional[str] = None,
        smart_format: Optional[str] = None,
    ) -> InvocationPayload:
        descriptor = self.registry.get_descriptor(catalog_models.SPEECH_TO_TEXT_MODEL)
        params: Dict[str, Any] = {
            "audio": AudioInput(body=audio, content_type=content_type or "application/octet-stream"),
        }
        if parse_flag(detect_language, default=False):
            params["detect_language"] = True
        if parse_flag(punctuate, default=True):
            params["punctuate"] = True
        if parse_flag(smart_format, default=True):
            params["smart_format"] = True
        return InvocationPayload(model=descriptor, params=params)

    # ── Text-to-speech ─────────────────────────────────────────────────────

    def validate_speech_text(self, text: Any) -> str:
        if not isinstance(text, str) or not text:
            raise InvalidArgument(
                "Text parameter is required and must be a string", field="text"
            )
        if len(text) > catalog_models.MAX_TTS_TEXT_LENGTH:
            raise InvalidArgument(
                f"Text too long. Maximum length: {catalog_models.MAX_TTS_TEXT_LENGTH} "
                f"characters. Provided: {len(text)}",
                field="text",
            )
        if not text.strip():
            raise InvalidArgument("Text cannot be empty", field="text")
        return text.strip()

    def resolve_speech_model(self, model_id: Optional[str]) -> ModelDescriptor:
        model_id = model_id or catalog_models.DEFAULT_TTS_MODEL
        try:
            descriptor = self.registry.get_descriptor(model_id)
        except UnknownModel:
            descriptor = None
        if descriptor is None or descriptor.family != "text-to-speech":
            supported = ", ".join(d.id for d in self.registry.list_by_family("text-to-speech"))
            raise InvalidArgument(
                f"Invalid TTS model. Supported models: {supported}", field="model"
            )
        return descriptor

    def build_speech(
        self,
        text: Any,
        model_id: Optional[str] = None,
        speaker: Optional[str] = None,
        encoding: Optional[str] = None,
        sample_rate: Optional[int] = None,
        language: Optional[str] = None,
    ) -> InvocationPayload:
        text = self.validate_speech_text(text)
        descriptor = self.resolve_speech_model(model_id)

        rate = sample_rate if sample_rate is not None else catalog_models.DEFAULT_SAMPLE_RATE
        if rate not in catalog_models.SAMPLE_RATES:
            raise InvalidArgument(
                "Invalid sample rate. Supported rates: "
                + ", ".join(str(r) for r in catalog_models.SAMPLE_RATES),
                field="sample_rate",
            )

        if descriptor.id == catalog_models.MELOTTS_MODEL:
            return self._build_melotts(descriptor, text, speaker, language)
        return self._build_aura(descriptor, text, speaker, encoding, rate)

    def _build_aura(
        self,
        descriptor: ModelDescriptor,
        text: str,
        speaker: Optional[str],
        encoding: Optional[str],
        sample_rate: int,
    ) -> InvocationPayload:
        voice = speaker or catalog_models.DEFAULT_AURA_SPEAKER
        if voice not in catalog_models.AURA_SPEAKERS:
            raise InvalidArgument(
                f"Invalid speaker. Supported speakers: {', '.join(catalog_models.AURA_SPEAKERS)}",
                field="speaker",
            )

        encoding = encoding or catalog_models.DEFAULT_AUDIO_ENCODING
        if encoding not in catalog_models.AUDIO_ENCODINGS:
            raise InvalidArgument(
                f"Invalid encoding. Supported formats: "
                f"{', '.join(catalog_models.AUDIO_ENCODINGS)}",
                field="encoding",
            )

        # Defaults are implied upstream and left out of the payload
        params: Dict[str, Any] = {"text": text}
        if voice != catalog_models.DEFAULT_AURA_SPEAKER:
            params["speaker"] = voice
        if encoding != catalog_models.DEFAULT_AUDIO_ENCODING:
            params["encoding"] = encoding

        return InvocationPayload(
            model=descriptor,
            params=params,
            context={"voice": voice, "encoding": encoding, "sample_rate": sample_rate},
        )

    def _build_melotts(
        self,
        descriptor: ModelDescriptor,
        text: str,
        speaker: Optional[str],
        language: Optional[str],
    ) -> InvocationPayload:
        english_speaker: Optional[str] = None

        if speaker in catalog_models.MELO_ENGLISH_SPEAKERS:
            lang = "EN"
            english_speaker = speaker
        else:
            lang = language or speaker or catalog_models.DEFAULT_MELO_LANGUAGE
            if lang not in catalog_models.MELO_LANGUAGES:
                raise InvalidArgument(
                    f"Invalid language. Supported languages: "
                    f"{', '.join(catalog_models.MELO_LANGUAGES)}",
                    field="language",
                )
            if lang == "EN" and speaker and speaker != lang:
                raise InvalidArgument(
                    f"Invalid English speaker. Supported speakers: "
                    f"{', '.join(catalog_models.MELO_ENGLISH_SPEAKERS)}",
                    field="speaker",
                )

        params: Dict[str, Any] = {"prompt": text, "lang": lang}
        if lang == "EN":
            params["speaker"] = english_speaker or catalog_models.DEFAULT_MELO_ENGLISH_SPEAKER

        return InvocationPayload(
            model=descriptor,
            params=params,
            context={"voice": lang, "english_speaker": english_speaker},
        )
