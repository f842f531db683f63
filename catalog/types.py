"""
Model descriptor types.

A ModelDescriptor is the immutable, process-wide description of one hosted
inference model: which family it belongs to, how it must be invoked, what
shape its output takes, and which parameters it accepts.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Literal, Mapping, Optional, Union


ModelFamily = Literal["text", "image", "speech-to-text", "text-to-speech"]
InvocationStrategy = Literal["stream", "batch"]
OutputFormat = Literal["token-stream", "base64", "binary", "structured"]

# Capability tags
TEXT_TO_IMAGE = "text-to-image"
IMAGE_TO_IMAGE = "image-to-image"
INPAINTING = "inpainting"
NEGATIVE_PROMPT = "negative-prompt"
HIGH_RESOLUTION = "high-resolution"
FAST_GENERATION = "fast-generation"
PHOTOREALISM = "photorealism"
GRAPHIC_DESIGN = "graphic-design"
PROMPT_ADHERENCE = "prompt-adherence"
COHERENT_TEXT = "coherent-text"
REASONING = "reasoning"

Number = Union[int, float]


@dataclass(frozen=True)
class ParameterRange:
    """Allowed range for one parameter (numeric bounds or text length)."""

    min: Optional[Number] = None
    max: Optional[Number] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None

    @property
    def is_numeric(self) -> bool:
        return self.min is not None or self.max is not None

    def clamp(self, value: Number) -> Number:
        """Pull value into [min, max]. Bounds that are not set are open."""
        if self.min is not None and value < self.min:
            value = self.min
        if self.max is not None and value > self.max:
            value = self.max
        return value

    def to_dict(self) -> Dict[str, Number]:
        data = {
            "min": self.min,
            "max": self.max,
            "minLength": self.min_length,
            "maxLength": self.max_length,
        }
        return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class ModelDescriptor:
    """Immutable description of a single inference model."""

    id: str
    family: ModelFamily
    invocation_strategy: InvocationStrategy
    output_format: OutputFormat
    capabilities: FrozenSet[str] = frozenset()
    parameter_ranges: Mapping[str, ParameterRange] = field(default_factory=dict)
    default_params: Mapping[str, Any] = field(default_factory=dict)
    name: str = ""
    provider: str = ""
    description: str = ""
    media_type: Optional[str] = None  # documented output MIME type, when fixed
    is_partner: bool = False
    is_beta: bool = False
    estimated_response_time: Optional[str] = None  # e.g. "2-4s"

    def __post_init__(self):
        # Freeze the mappings so shared descriptors cannot be mutated by a request
        object.__setattr__(self, "capabilities", frozenset(self.capabilities))
        object.__setattr__(
            self, "parameter_ranges", MappingProxyType(dict(self.parameter_ranges))
        )
        object.__setattr__(
            self, "default_params", MappingProxyType(dict(self.default_params))
        )

    def supports(self, tag: str) -> bool:
        return tag in self.capabilities

    def range_for(self, param: str) -> Optional[ParameterRange]:
        return self.parameter_ranges.get(param)

    def declares(self, param: str) -> bool:
        """True if the model has a default or a range for param."""
        return param in self.parameter_ranges or param in self.default_params

    def to_dict(self) -> Dict[str, Any]:
        """Public, JSON-safe view used by the catalog endpoint."""
        return {
            "id": self.id,
            "name": self.name or self.id.split("/")[-1],
            "provider": self.provider,
            "description": self.description,
            "family": self.family,
            "invocationStrategy": self.invocation_strategy,
            "outputFormat": self.output_format,
            "capabilities": sorted(self.capabilities),
            "parameterRanges": {
                name: rng.to_dict() for name, rng in self.parameter_ranges.items()
            },
            "defaultParams": dict(self.default_params),
            "mediaType": self.media_type,
            "isPartner": self.is_partner,
            "isBeta": self.is_beta,
            "estimatedResponseTime": self.estimated_response_time,
        }
