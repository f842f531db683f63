"""
Raw output shapes returned by the inference capability.

The upstream answers in one of four shapes depending on the model. They are
modelled as a closed union here; only the response normalizer looks inside.
"""

from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Union


@dataclass(frozen=True)
class AudioInput:
    """Binary audio body for speech-to-text calls."""

    body: bytes
    content_type: str


@dataclass
class ByteStreamOutput:
    """Incremental byte stream (binary media or server-sent events)."""

    chunks: AsyncIterator[bytes]
    content_type: Optional[str] = None


@dataclass(frozen=True)
class StringOutput:
    """Plain string result (base64 media, or text for batch chat)."""

    value: str


@dataclass(frozen=True)
class BinaryOutput:
    """Fully buffered binary result."""

    data: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class ObjectOutput:
    """Structured (JSON) result."""

    data: Any


RawOutput = Union[ByteStreamOutput, StringOutput, BinaryOutput, ObjectOutput]


class InferenceError(Exception):
    """The inference capability rejected or failed a call."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


def describe_raw(raw: object) -> str:
    """Short description of a raw output's shape, for logs."""
    if isinstance(raw, ByteStreamOutput):
        return f"byte-stream(content_type={raw.content_type})"
    if isinstance(raw, StringOutput):
        return f"string(len={len(raw.value)})"
    if isinstance(raw, BinaryOutput):
        return f"binary(bytes={len(raw.data)}, content_type={raw.content_type})"
    if isinstance(raw, ObjectOutput):
        data = raw.data
        if isinstance(data, dict):
            return f"object(keys={sorted(data.keys())})"
        return f"object(type={type(data).__name__})"
    return f"unknown(type={type(raw).__name__})"
