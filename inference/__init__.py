"""
Inference boundary layer.

This package provides a clean abstraction for model invocation, so the
dispatch layer stays agnostic of the hosting provider.

Supported backends:
- StubInferenceBackend: Deterministic fake model (default for CI/tests)
- WorkersAIBackend: Hosted Workers AI over HTTPS

Example usage:
    from inference import StubInferenceBackend

    backend = StubInferenceBackend()
    raw = await backend.run("@cf/black-forest-labs/flux-1-schnell", {"prompt": "a red fox"})
"""

from .types import (
    AudioInput,
    BinaryOutput,
    ByteStreamOutput,
    InferenceError,
    ObjectOutput,
    RawOutput,
    StringOutput,
    describe_raw,
)
from .base import InferenceBackend
from .stub import StubInferenceBackend
from .workers_ai import WorkersAIBackend

__all__ = [
    "AudioInput",
    "BinaryOutput",
    "ByteStreamOutput",
    "InferenceError",
    "ObjectOutput",
    "RawOutput",
    "StringOutput",
    "describe_raw",
    "InferenceBackend",
    "StubInferenceBackend",
    "WorkersAIBackend",
]
