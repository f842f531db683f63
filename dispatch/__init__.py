"""
Request dispatch layer.

Payload building, response normalization, text invocation strategies and
the per-route Dispatcher, plus the error taxonomy routes surface.

Example usage:
    from dispatch import Dispatcher, envelope_for

    dispatcher = Dispatcher(backend, limiter)
    result = await dispatcher.generate_image(
        envelope_for("image", "203.0.113.7", "flux-1-schnell", {"prompt": "a red fox"})
    )
"""

from .errors import (
    DispatchError,
    InvalidArgument,
    MalformedResponse,
    RateLimitExceeded,
    UnconfiguredDependency,
    UpstreamError,
    UpstreamRejected,
    UpstreamTimeout,
    classify_upstream_error,
)
from .types import (
    AudioResult,
    ImageResult,
    InvocationPayload,
    Message,
    NormalizedResult,
    RequestEnvelope,
    StreamEvent,
    TextStream,
    TranscriptionResult,
    WordTiming,
)
from .payload import PayloadBuilder
from .normalizer import normalize
from .streaming import (
    STREAM_HEADERS,
    BatchStrategy,
    StreamingStrategy,
    TextInvocationStrategy,
    encode_sse,
    select_strategy,
)
from .dispatcher import Dispatcher, envelope_for

__all__ = [
    "DispatchError",
    "InvalidArgument",
    "MalformedResponse",
    "RateLimitExceeded",
    "UnconfiguredDependency",
    "UpstreamError",
    "UpstreamRejected",
    "UpstreamTimeout",
    "classify_upstream_error",
    "AudioResult",
    "ImageResult",
    "InvocationPayload",
    "Message",
    "NormalizedResult",
    "RequestEnvelope",
    "StreamEvent",
    "TextStream",
    "TranscriptionResult",
    "WordTiming",
    "PayloadBuilder",
    "normalize",
    "STREAM_HEADERS",
    "BatchStrategy",
    "StreamingStrategy",
    "TextInvocationStrategy",
    "encode_sse",
    "select_strategy",
    "Dispatcher",
    "envelope_for",
]
