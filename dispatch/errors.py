"""
Dispatch error taxonomy.

Every failure a route can surface is one of these. Each carries the HTTP
status it maps to and a message that is safe to show the caller.
"""

import re
from typing import Optional

from inference import InferenceError
from ratelimit import RateLimitResult


class DispatchError(Exception):
    """Base class for failures surfaced to the caller."""

    status_code = 500
    kind = "internal_error"

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class InvalidArgument(DispatchError):
    """Malformed or out-of-catalog input. message names the offending field."""

    status_code = 400
    kind = "invalid_argument"


class RateLimitExceeded(DispatchError):
    status_code = 429
    kind = "rate_limit_exceeded"

    def __init__(self, capability: str, result: RateLimitResult):
        self.capability = capability
        self.result = result
        super().__init__(result.error or "Rate limit exceeded.")


class UnconfiguredDependency(DispatchError):
    """A required binding (inference, storage) is not configured."""

    status_code = 500
    kind = "unconfigured_dependency"


class UpstreamTimeout(DispatchError):
    status_code = 504
    kind = "upstream_timeout"


class UpstreamRejected(DispatchError):
    status_code = 400
    kind = "upstream_rejected"


class UpstreamError(DispatchError):
    """Upstream failure that is neither a timeout nor a rejection."""

    status_code = 500
    kind = "upstream_error"


class MalformedResponse(DispatchError):
    """Upstream output matches no recognised shape for the model family."""

    status_code = 500
    kind = "malformed_response"


_TIMEOUT_RE = re.compile(r"time(d)?[\s_-]?out", re.IGNORECASE)
_REJECTED_RE = re.compile(r"invalid|model_error|\b5012\b|\b3030\b", re.IGNORECASE)

TIMEOUT_HINTS = {
    "chat": "Chat request timed out. Try a shorter conversation.",
    "image": "Image generation timed out. Try reducing steps or image size.",
    "speech-to-text": "Transcription timed out. Try a shorter recording.",
    "text-to-speech": "Speech synthesis timed out. Try shorter text.",
}

REJECTED_MESSAGES = {
    "chat": "Invalid parameters for the selected model.",
    "image": "Invalid parameters for the selected model.",
    "speech-to-text": (
        "Audio format not supported or file too small. "
        "Please try recording again with a longer message."
    ),
    "text-to-speech": "Invalid request parameters. Please check your input and try again.",
}

FAILURE_MESSAGES = {
    "chat": "AI processing error",
    "image": "Internal server error",
    "speech-to-text": "Speech-to-text processing failed",
    "text-to-speech": "Text-to-speech processing failed",
}


def classify_upstream_error(capability: str, error: InferenceError) -> DispatchError:
    """
    Map an upstream failure onto the taxonomy by its message text.

    The upstream message is never copied into the returned error.
    """
    text = error.message or ""
    if _TIMEOUT_RE.search(text):
        return UpstreamTimeout(TIMEOUT_HINTS.get(capability, "Upstream request timed out."))
    if _REJECTED_RE.search(text) or error.code in (5012, 3030):
        return UpstreamRejected(
            REJECTED_MESSAGES.get(capability, "Invalid parameters for the selected model.")
        )
    return UpstreamError(FAILURE_MESSAGES.get(capability, "Internal server error"))
