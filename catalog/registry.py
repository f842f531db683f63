"""
Model Schema Registry.

Read-only lookups over the static catalog. The registry is built once per
process and shared by every request; nothing here mutates state.
"""

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import HIGH_QUALITY_IMAGE_MODELS, build_catalog
from .types import (
    IMAGE_TO_IMAGE,
    INPAINTING,
    PHOTOREALISM,
    TEXT_TO_IMAGE,
    InvocationStrategy,
    ModelDescriptor,
    ModelFamily,
)


class UnknownModel(LookupError):
    """Model id is not present in the compiled catalog."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Unknown model: {model_id}")


def merge_params(
    descriptor: ModelDescriptor,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Defaults of descriptor with overrides laid on top. No validation."""
    merged = dict(descriptor.default_params)
    merged.update(overrides or {})
    return merged


def fallback_descriptor(model_id: str, family: ModelFamily) -> ModelDescriptor:
    """
    Minimal descriptor for a model that is not in the catalog.

    No ranges and no capability tags, so nothing is clamped and every
    gated field is stripped.
    """
    if family == "image":
        return ModelDescriptor(
            id=model_id,
            family="image",
            invocation_strategy="batch",
            output_format="base64",
            default_params={"steps": 4},
        )
    if family == "text":
        return ModelDescriptor(
            id=model_id,
            family="text",
            invocation_strategy="stream",
            output_format="token-stream",
        )
    return ModelDescriptor(
        id=model_id,
        family=family,
        invocation_strategy="batch",
        output_format="structured",
    )


_RESPONSE_TIME_RE = re.compile(r"(\d+)")


def _response_seconds(descriptor: ModelDescriptor) -> int:
    match = _RESPONSE_TIME_RE.search(descriptor.estimated_response_time or "")
    return int(match.group(1)) if match else 5


class ModelSchemaRegistry:
    """Lookup and merge utilities over a fixed set of descriptors."""

    def __init__(self, descriptors: Iterable[ModelDescriptor]):
        self._by_id: Dict[str, ModelDescriptor] = {}
        for descriptor in descriptors:
            self._by_id[descriptor.id] = descriptor

        # Short aliases: the last path segment, when it is unambiguous
        aliases: Dict[str, Optional[str]] = {}
        for model_id in self._by_id:
            short = model_id.rsplit("/", 1)[-1]
            aliases[short] = None if short in aliases else model_id
        self._aliases = {
            short: model_id for short, model_id in aliases.items() if model_id
        }

    def __contains__(self, model_id: object) -> bool:
        return isinstance(model_id, str) and self._resolve(model_id) is not None

    def __len__(self) -> int:
        return len(self._by_id)

    def _resolve(self, model_id: str) -> Optional[ModelDescriptor]:
        descriptor = self._by_id.get(model_id)
        if descriptor is None and model_id in self._aliases:
            descriptor = self._by_id[self._aliases[model_id]]
        return descriptor

    def get_descriptor(self, model_id: str) -> ModelDescriptor:
        """
        Return the descriptor for model_id (full id or short alias).

        Raises:
            UnknownModel: model_id is not in the catalog
        """
        descriptor = self._resolve(model_id) if model_id else None
        if descriptor is None:
            raise UnknownModel(model_id)
        return descriptor

    def merge_defaults(
        self,
        model_id: str,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """{**default_params, **overrides}. Range validation is not done here."""
        return merge_params(self.get_descriptor(model_id), overrides)

    def all(self) -> List[ModelDescriptor]:
        return list(self._by_id.values())

    def list_by_family(self, family: ModelFamily) -> List[ModelDescriptor]:
        return [d for d in self._by_id.values() if d.family == family]

    def list_by_capability(self, tag: str) -> List[ModelDescriptor]:
        return [d for d in self._by_id.values() if d.supports(tag)]

    def list_by_invocation_strategy(
        self,
        strategy: InvocationStrategy,
        family: Optional[ModelFamily] = None,
    ) -> List[ModelDescriptor]:
        return [
            d
            for d in self._by_id.values()
            if d.invocation_strategy == strategy and (family is None or d.family == family)
        ]

    def list_by_performance(self, family: ModelFamily = "image") -> List[ModelDescriptor]:
        """Models of family ordered fastest first (stable for ties)."""
        return sorted(self.list_by_family(family), key=_response_seconds)

    def recommended_models(self) -> Dict[str, List[str]]:
        """Model id groupings for UI pickers."""

        def ids(descriptors: Iterable[ModelDescriptor]) -> List[str]:
            return [d.id for d in descriptors]

        images = self.list_by_family("image")
        return {
            "fastest": ids(self.list_by_performance("image")[:3]),
            "highQuality": [m for m in HIGH_QUALITY_IMAGE_MODELS if m in self._by_id],
            "photorealistic": ids(d for d in images if d.supports(PHOTOREALISM)),
            "textToImage": ids(d for d in images if d.supports(TEXT_TO_IMAGE)),
            "imageToImage": ids(d for d in images if d.supports(IMAGE_TO_IMAGE)),
            "inpainting": ids(d for d in images if d.supports(INPAINTING)),
        }


_registry: Optional[ModelSchemaRegistry] = None


def get_registry() -> ModelSchemaRegistry:
    """Process-wide registry over the compiled catalog."""
    global _registry
    if _registry is None:
        _registry = ModelSchemaRegistry(build_catalog())
    return _registry
