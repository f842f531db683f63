"""
Model Schema Registry.

Static catalog of hosted inference models and read-only lookups over it.

Example usage:
    from catalog import get_registry

    registry = get_registry()
    descriptor = registry.get_descriptor("flux-1-schnell")
    params = registry.merge_defaults(descriptor.id, {"steps": 4})
"""

from .types import (
    ModelDescriptor,
    ModelFamily,
    InvocationStrategy,
    OutputFormat,
    ParameterRange,
)
from .registry import (
    ModelSchemaRegistry,
    UnknownModel,
    fallback_descriptor,
    get_registry,
    merge_params,
)

__all__ = [
    "ModelDescriptor",
    "ModelFamily",
    "InvocationStrategy",
    "OutputFormat",
    "ParameterRange",
    "ModelSchemaRegistry",
    "UnknownModel",
    "fallback_descriptor",
    "get_registry",
    "merge_params",
]
