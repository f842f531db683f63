"""
Static model catalog.

Loaded once at import time. Parameter ranges and defaults follow the
provider documentation for each hosted model.
"""

from typing import Dict, List, Tuple

from .types import (
    COHERENT_TEXT,
    FAST_GENERATION,
    GRAPHIC_DESIGN,
    HIGH_RESOLUTION,
    IMAGE_TO_IMAGE,
    INPAINTING,
    NEGATIVE_PROMPT,
    PHOTOREALISM,
    PROMPT_ADHERENCE,
    REASONING,
    TEXT_TO_IMAGE,
    ModelDescriptor,
    ParameterRange,
)


# ──────────────────────────────────────────────────────────────────────────────
# Text generation
# ──────────────────────────────────────────────────────────────────────────────

# Models under these prefixes do not support token streaming and are driven
# as a single batched call.
BATCH_MODEL_PREFIXES: Tuple[str, ...] = ("@cf/openai/gpt-oss-",)

DEFAULT_CHAT_MODEL = "@cf/meta/llama-4-scout-17b-16e-instruct"

TEXT_GENERATION_MODELS: Tuple[str, ...] = (
    "@cf/openai/gpt-oss-120b",
    "@cf/openai/gpt-oss-20b",
    "@cf/meta/llama-4-scout-17b-16e-instruct",
    "@cf/meta/llama-3.3-70b-instruct-fp8-fast",
    "@cf/meta/llama-3.1-8b-instruct-fast",
    "@cf/meta/llama-3.1-8b-instruct-awq",
    "@cf/meta/llama-3.1-8b-instruct-fp8",
    "@cf/meta/llama-3.1-8b-instruct",
    "@cf/meta/llama-3.1-70b-instruct",
    "@cf/google/gemma-3-12b-it",
    "@cf/google/gemma-7b-it",
    "@cf/google/gemma-7b-it-lora",
    "@cf/google/gemma-2b-it-lora",
    "@cf/mistralai/mistral-small-3.1-24b-instruct",
    "@cf/mistral/mistral-7b-instruct-v0.1",
    "@cf/mistral/mistral-7b-instruct-v0.2-lora",
    "@cf/qwen/qwq-32b",
    "@cf/qwen/qwen2.5-coder-32b-instruct",
    "@cf/meta/llama-guard-3-8b",
    "@cf/deepseek-ai/deepseek-r1-distill-qwen-32b",
    "@cf/meta/llama-3.2-1b-instruct",
    "@cf/meta/llama-3.2-3b-instruct",
    "@cf/meta/llama-3.2-11b-vision-instruct",
    "@cf/meta/llama-3-8b-instruct",
    "@cf/meta/llama-3-8b-instruct-awq",
    "@hf/meta-llama/meta-llama-3-8b-instruct",
    "@hf/nousresearch/hermes-2-pro-mistral-7b",
    "@cf/microsoft/phi-2",
    "@cf/defog/sqlcoder-7b-2",
    "@cf/meta/llama-2-7b-chat-fp16",
    "@cf/meta/llama-2-7b-chat-int8",
    "@cf/meta/llama-2-7b-chat-hf-lora",
)

# Models that emit <think> reasoning spans in their output
REASONING_MODELS = frozenset({
    "@cf/qwen/qwq-32b",
    "@cf/deepseek-ai/deepseek-r1-distill-qwen-32b",
})

_PROVIDERS = (
    ("gpt-oss", "OpenAI"),
    ("openai", "OpenAI"),
    ("llama", "Meta"),
    ("meta", "Meta"),
    ("gemma", "Google"),
    ("google", "Google"),
    ("mistral", "Mistral"),
    ("deepseek", "DeepSeek"),
    ("qwen", "Qwen"),
)


def provider_label(model_id: str) -> str:
    """Provider label derived from a model id."""
    for needle, label in _PROVIDERS:
        if needle in model_id:
            return label
    return "Other"


def is_batch_model(model_id: str) -> bool:
    return model_id.startswith(BATCH_MODEL_PREFIXES)


def _text_descriptor(model_id: str) -> ModelDescriptor:
    if is_batch_model(model_id):
        return ModelDescriptor(
            id=model_id,
            family="text",
            invocation_strategy="batch",
            output_format="structured",
            provider=provider_label(model_id),
        )

    capabilities = {REASONING} if model_id in REASONING_MODELS else set()
    return ModelDescriptor(
        id=model_id,
        family="text",
        invocation_strategy="stream",
        output_format="token-stream",
        capabilities=frozenset(capabilities),
        parameter_ranges={
            "temperature": ParameterRange(min=0, max=5),
            "max_tokens": ParameterRange(min=1, max=4096),
        },
        default_params={"temperature": 0.7, "max_tokens": 1000},
        provider=provider_label(model_id),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Image generation
# ──────────────────────────────────────────────────────────────────────────────

DEFAULT_IMAGE_MODEL = "@cf/black-forest-labs/flux-1-schnell"
MAX_IMAGE_PROMPT_LENGTH = 2048

IMAGE_MODELS: Tuple[ModelDescriptor, ...] = (
    ModelDescriptor(
        id="@cf/leonardo/lucid-origin",
        name="Lucid Origin",
        provider="Leonardo",
        description=(
            "Most adaptable and prompt-responsive model with sharp graphic "
            "design and text accuracy"
        ),
        family="image",
        invocation_strategy="batch",
        output_format="base64",
        media_type="image/jpeg",
        is_partner=True,
        capabilities=frozenset({TEXT_TO_IMAGE, HIGH_RESOLUTION, GRAPHIC_DESIGN}),
        default_params={"guidance": 4.5, "height": 1120, "width": 1120, "steps": 25},
        parameter_ranges={
            "guidance": ParameterRange(min=0, max=10),
            "height": ParameterRange(min=0, max=2500),
            "width": ParameterRange(min=0, max=2500),
            "steps": ParameterRange(min=1, max=40),
        },
        estimated_response_time="3-5s",
    ),
    ModelDescriptor(
        id="@cf/leonardo/phoenix-1.0",
        name="Phoenix 1.0",
        provider="Leonardo",
        description="Exceptional prompt adherence and coherent text generation",
        family="image",
        invocation_strategy="batch",
        output_format="binary",
        media_type="image/jpeg",
        is_partner=True,
        capabilities=frozenset(
            {TEXT_TO_IMAGE, PROMPT_ADHERENCE, COHERENT_TEXT, NEGATIVE_PROMPT}
        ),
        default_params={
            "guidance": 2.5,
            "height": 1024,
            "width": 1024,
            "num_steps": 35,
            "negative_prompt": (
                "low quality, low-res, grain, noisy, noise, artifacts, "
                "jpeg artifacts, blurry, deformed, oversharpened"
            ),
        },
        parameter_ranges={
            "guidance": ParameterRange(min=2, max=10),
            "height": ParameterRange(min=0, max=2048),
            "width": ParameterRange(min=0, max=2048),
            "num_steps": ParameterRange(min=1, max=50),
            "negative_prompt": ParameterRange(min_length=1),
        },
        estimated_response_time="4-8s",
    ),
    ModelDescriptor(
        id="@cf/black-forest-labs/flux-1-schnell",
        name="FLUX.1 [schnell]",
        provider="Black Forest Labs",
        description=(
            "12B parameter rectified flow transformer for fast, high-quality "
            "image generation"
        ),
        family="image",
        invocation_strategy="batch",
        output_format="base64",
        media_type="image/jpeg",
        capabilities=frozenset({TEXT_TO_IMAGE, FAST_GENERATION, HIGH_RESOLUTION}),
        default_params={"steps": 8},
        parameter_ranges={
            "steps": ParameterRange(min=1, max=8),
            "prompt": ParameterRange(min_length=1, max_length=MAX_IMAGE_PROMPT_LENGTH),
        },
        estimated_response_time="2-3s",
    ),
    ModelDescriptor(
        id="@cf/bytedance/stable-diffusion-xl-lightning",
        name="SDXL-Lightning",
        provider="ByteDance",
        description=(
            "Lightning-fast text-to-image generation with high-quality 1024px images"
        ),
        family="image",
        invocation_strategy="batch",
        output_format="binary",
        media_type="image/png",
        is_beta=True,
        capabilities=frozenset(
            {TEXT_TO_IMAGE, FAST_GENERATION, IMAGE_TO_IMAGE, INPAINTING, NEGATIVE_PROMPT}
        ),
        default_params={"num_steps": 20, "guidance": 7.5, "height": 1024, "width": 1024},
        parameter_ranges={
            "height": ParameterRange(min=256, max=2048),
            "width": ParameterRange(min=256, max=2048),
            "num_steps": ParameterRange(min=20, max=20),
            "strength": ParameterRange(min=0, max=1),
        },
        estimated_response_time="1-2s",
    ),
    ModelDescriptor(
        id="@cf/lykon/dreamshaper-8-lcm",
        name="DreamShaper 8 LCM",
        provider="Lykon",
        description="Fine-tuned for photorealism without sacrificing range",
        family="image",
        invocation_strategy="batch",
        output_format="binary",
        media_type="image/png",
        capabilities=frozenset(
            {TEXT_TO_IMAGE, PHOTOREALISM, IMAGE_TO_IMAGE, INPAINTING, NEGATIVE_PROMPT}
        ),
        default_params={"num_steps": 20, "guidance": 7.5, "height": 1024, "width": 1024},
        parameter_ranges={
            "height": ParameterRange(min=256, max=2048),
            "width": ParameterRange(min=256, max=2048),
            "num_steps": ParameterRange(min=20, max=20),
            "strength": ParameterRange(min=0, max=1),
        },
        estimated_response_time="1-3s",
    ),
    ModelDescriptor(
        id="@cf/stabilityai/stable-diffusion-xl-base-1.0",
        name="Stable Diffusion XL Base 1.0",
        provider="Stability.ai",
        description="Diffusion-based text-to-image generative model",
        family="image",
        invocation_strategy="batch",
        output_format="binary",
        media_type="image/png",
        is_beta=True,
        capabilities=frozenset(
            {TEXT_TO_IMAGE, IMAGE_TO_IMAGE, INPAINTING, NEGATIVE_PROMPT}
        ),
        default_params={"num_steps": 20, "guidance": 7.5, "height": 1024, "width": 1024},
        parameter_ranges={
            "height": ParameterRange(min=256, max=2048),
            "width": ParameterRange(min=256, max=2048),
            "num_steps": ParameterRange(min=20, max=20),
            "strength": ParameterRange(min=0, max=1),
        },
        estimated_response_time="2-4s",
    ),
    ModelDescriptor(
        id="@cf/runwayml/stable-diffusion-v1-5-img2img",
        name="Stable Diffusion v1.5 Img2Img",
        provider="RunwayML",
        description="Generate new images from input images. Supports inpainting via masks.",
        family="image",
        invocation_strategy="batch",
        output_format="binary",
        media_type="image/png",
        is_beta=True,
        capabilities=frozenset({IMAGE_TO_IMAGE, INPAINTING, NEGATIVE_PROMPT}),
        default_params={
            "num_steps": 20,
            "strength": 0.8,
            "guidance": 7.5,
            "height": 512,
            "width": 512,
        },
        parameter_ranges={
            "height": ParameterRange(min=256, max=2048),
            "width": ParameterRange(min=256, max=2048),
            "num_steps": ParameterRange(min=20, max=20),
            "strength": ParameterRange(min=0, max=1),
        },
        estimated_response_time="3-6s",
    ),
)

# Picked by hand for output quality
HIGH_QUALITY_IMAGE_MODELS: Tuple[str, ...] = (
    "@cf/leonardo/phoenix-1.0",
    "@cf/leonardo/lucid-origin",
)


# ──────────────────────────────────────────────────────────────────────────────
# Speech-to-text
# ──────────────────────────────────────────────────────────────────────────────

SPEECH_TO_TEXT_MODEL = "@cf/deepgram/nova-3"
MAX_AUDIO_FILE_SIZE = 25 * 1024 * 1024  # 25MB
MIN_AUDIO_FILE_SIZE = 1000  # roughly one second of compressed audio

SUPPORTED_AUDIO_TYPES: Tuple[str, ...] = (
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/wave",
    "audio/x-wav",
    "audio/mp4",
    "audio/m4a",
    "audio/aac",
    "audio/ogg",
    "audio/webm",
    "audio/webm;codecs=opus",
    "audio/flac",
    "audio/3gpp",
    "audio/amr",
)

SUPPORTED_AUDIO_EXTENSIONS: Tuple[str, ...] = (
    ".mp3", ".wav", ".mp4", ".m4a", ".aac", ".ogg", ".webm", ".flac", ".3gp", ".amr",
)

SPEECH_TO_TEXT_MODELS: Tuple[ModelDescriptor, ...] = (
    ModelDescriptor(
        id=SPEECH_TO_TEXT_MODEL,
        name="Nova 3",
        provider="Deepgram",
        description="Speech-to-text transcription with word timings",
        family="speech-to-text",
        invocation_strategy="batch",
        output_format="structured",
        default_params={"punctuate": True, "smart_format": True},
    ),
)


# ──────────────────────────────────────────────────────────────────────────────
# Text-to-speech
# ──────────────────────────────────────────────────────────────────────────────

AURA_MODEL = "@cf/deepgram/aura-1"
MELOTTS_MODEL = "@cf/myshell-ai/melotts"
DEFAULT_TTS_MODEL = AURA_MODEL
MAX_TTS_TEXT_LENGTH = 10000

AURA_SPEAKERS: Tuple[str, ...] = (
    "angus", "asteria", "arcas", "orion", "orpheus", "athena",
    "luna", "zeus", "perseus", "helios", "hera", "stella",
)
DEFAULT_AURA_SPEAKER = "angus"

AUDIO_ENCODINGS: Dict[str, str] = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "flac": "audio/flac",
    "ogg": "audio/ogg",
    "aac": "audio/aac",
}
DEFAULT_AUDIO_ENCODING = "mp3"

SAMPLE_RATES: Tuple[int, ...] = (8000, 16000, 22050, 24000, 44100, 48000)
DEFAULT_SAMPLE_RATE = 22050

MELO_LANGUAGES: Tuple[str, ...] = ("EN", "ES", "FR", "ZH", "JP", "KR")
MELO_ENGLISH_SPEAKERS: Tuple[str, ...] = (
    "EN-Default", "EN-US", "EN-BR", "EN_INDIA", "EN-AU",
)
DEFAULT_MELO_LANGUAGE = "EN"
DEFAULT_MELO_ENGLISH_SPEAKER = "EN-Default"

TEXT_TO_SPEECH_MODELS: Tuple[ModelDescriptor, ...] = (
    ModelDescriptor(
        id=AURA_MODEL,
        name="Aura 1",
        provider="Deepgram",
        description="Context-aware text-to-speech with natural pacing",
        family="text-to-speech",
        invocation_strategy="batch",
        output_format="binary",
        default_params={"speaker": DEFAULT_AURA_SPEAKER, "encoding": DEFAULT_AUDIO_ENCODING},
        parameter_ranges={"text": ParameterRange(min_length=1, max_length=MAX_TTS_TEXT_LENGTH)},
    ),
    ModelDescriptor(
        id=MELOTTS_MODEL,
        name="MeloTTS",
        provider="MyShell.ai",
        description="Multi-lingual text-to-speech",
        family="text-to-speech",
        invocation_strategy="batch",
        output_format="structured",
        media_type="audio/mpeg",
        default_params={"lang": DEFAULT_MELO_LANGUAGE},
        parameter_ranges={"prompt": ParameterRange(min_length=1, max_length=MAX_TTS_TEXT_LENGTH)},
    ),
)


def build_catalog() -> List[ModelDescriptor]:
    """All descriptors, text models first."""
    catalog = [_text_descriptor(model_id) for model_id in TEXT_GENERATION_MODELS]
    catalog.extend(IMAGE_MODELS)
    catalog.extend(SPEECH_TO_TEXT_MODELS)
    catalog.extend(TEXT_TO_SPEECH_MODELS)
    return catalog
