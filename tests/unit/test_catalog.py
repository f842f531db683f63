"""
Test suite for the model schema registry.

Verifies:
- Lookup by full id and short alias
- Unknown ids raise UnknownModel
- merge_defaults is deterministic and never mutates the catalog
- Capability / strategy / performance listings
"""

import dataclasses

import pytest

from catalog import (
    ModelDescriptor,
    ModelSchemaRegistry,
    ParameterRange,
    UnknownModel,
    fallback_descriptor,
    get_registry,
)
from catalog import models as catalog_models
from catalog.types import IMAGE_TO_IMAGE, INPAINTING, REASONING


FLUX = "@cf/black-forest-labs/flux-1-schnell"


@pytest.fixture
def registry():
    return get_registry()


class TestLookup:
    """Test descriptor lookup."""

    def test_full_id(self, registry):
        descriptor = registry.get_descriptor(FLUX)
        assert descriptor.family == "image"
        assert descriptor.output_format == "base64"
        assert descriptor.range_for("steps") == ParameterRange(min=1, max=8)

    def test_short_alias(self, registry):
        """The last path segment resolves to the full id."""
        assert registry.get_descriptor("flux-1-schnell").id == FLUX
        assert "flux-1-schnell" in registry

    def test_unknown_model_raises(self, registry):
        with pytest.raises(UnknownModel) as exc_info:
            registry.get_descriptor("@cf/nobody/nothing")
        assert exc_info.value.model_id == "@cf/nobody/nothing"
        assert "@cf/nobody/nothing" not in registry

    def test_empty_id_raises(self, registry):
        with pytest.raises(UnknownModel):
            registry.get_descriptor("")

    def test_ambiguous_alias_is_not_registered(self):
        a = ModelDescriptor(id="@cf/a/model", family="text", invocation_strategy="stream",
                            output_format="token-stream")
        b = ModelDescriptor(id="@cf/b/model", family="text", invocation_strategy="stream",
                            output_format="token-stream")
        registry = ModelSchemaRegistry([a, b])

        assert "model" not in registry
        assert registry.get_descriptor("@cf/b/model") is b

    def test_catalog_covers_every_family(self, registry):
        for family in ("text", "image", "speech-to-text", "text-to-speech"):
            assert registry.list_by_family(family), family


class TestMergeDefaults:
    """Test default merging."""

    def test_overrides_win(self, registry):
        merged = registry.merge_defaults(FLUX, {"steps": 4, "prompt": "a red fox"})
        assert merged == {"steps": 4, "prompt": "a red fox"}

    def test_no_range_validation(self, registry):
        merged = registry.merge_defaults(FLUX, {"steps": 999})
        assert merged["steps"] == 999

    def test_idempotent(self, registry):
        first = registry.merge_defaults("@cf/leonardo/phoenix-1.0", {"guidance": 3})
        second = registry.merge_defaults("@cf/leonardo/phoenix-1.0", {"guidance": 3})
        assert first == second

    def test_does_not_mutate_descriptor(self, registry):
        merged = registry.merge_defaults(FLUX, {"steps": 2})
        merged["steps"] = 100
        assert registry.get_descriptor(FLUX).default_params["steps"] == 8


class TestDescriptorImmutability:
    """Descriptors are shared across requests and must stay frozen."""

    def test_fields_are_frozen(self, registry):
        descriptor = registry.get_descriptor(FLUX)
        with pytest.raises(dataclasses.FrozenInstanceError):
            descriptor.family = "text"  # type: ignore

    def test_mappings_are_read_only(self, registry):
        descriptor = registry.get_descriptor(FLUX)
        with pytest.raises(TypeError):
            descriptor.default_params["steps"] = 1  # type: ignore
        with pytest.raises(TypeError):
            descriptor.parameter_ranges["steps"] = ParameterRange(min=0)  # type: ignore


class TestListings:
    """Test capability and strategy listings."""

    def test_list_by_capability_inpainting(self, registry):
        ids = {d.id for d in registry.list_by_capability(INPAINTING)}
        assert "@cf/runwayml/stable-diffusion-v1-5-img2img" in ids
        assert FLUX not in ids

    def test_image_to_image_models_also_inpaint(self, registry):
        img2img = {d.id for d in registry.list_by_capability(IMAGE_TO_IMAGE)}
        inpaint = {d.id for d in registry.list_by_capability(INPAINTING)}
        assert img2img == inpaint

    def test_batch_text_models_are_gpt_oss(self, registry):
        batch = registry.list_by_invocation_strategy("batch", family="text")
        assert {d.id for d in batch} == {"@cf/openai/gpt-oss-120b", "@cf/openai/gpt-oss-20b"}

    def test_reasoning_models_tagged(self, registry):
        ids = {d.id for d in registry.list_by_capability(REASONING)}
        assert ids == set(catalog_models.REASONING_MODELS)

    def test_list_by_performance_fastest_first(self, registry):
        ordered = [d.id for d in registry.list_by_performance("image")]
        assert ordered[0] == "@cf/bytedance/stable-diffusion-xl-lightning"
        assert ordered[-1] == "@cf/leonardo/phoenix-1.0"

    def test_recommended_models(self, registry):
        recommended = registry.recommended_models()
        assert len(recommended["fastest"]) == 3
        assert recommended["highQuality"] == list(catalog_models.HIGH_QUALITY_IMAGE_MODELS)
        assert "@cf/lykon/dreamshaper-8-lcm" in recommended["photorealistic"]

    def test_to_dict_is_json_safe(self, registry):
        data = registry.get_descriptor(FLUX).to_dict()
        assert data["name"] == "FLUX.1 [schnell]"
        assert data["parameterRanges"]["steps"] == {"min": 1, "max": 8}
        assert data["capabilities"] == sorted(data["capabilities"])


class TestParameterRange:
    """Test clamping."""

    def test_clamp(self):
        rng = ParameterRange(min=1, max=8)
        assert rng.clamp(0) == 1
        assert rng.clamp(5) == 5
        assert rng.clamp(999) == 8

    def test_open_bounds(self):
        assert ParameterRange(min=0).clamp(10_000) == 10_000
        assert ParameterRange(max=1).clamp(-5) == -5

    def test_text_range_is_not_numeric(self):
        assert not ParameterRange(min_length=1, max_length=10).is_numeric


class TestFallbackDescriptor:
    """Minimal descriptors for models outside the catalog."""

    def test_image_fallback(self):
        descriptor = fallback_descriptor("@cf/new/image-model", "image")
        assert descriptor.default_params == {"steps": 4}
        assert descriptor.parameter_ranges == {}
        assert not descriptor.capabilities

    def test_text_fallback_streams(self):
        descriptor = fallback_descriptor("@cf/new/text-model", "text")
        assert descriptor.invocation_strategy == "stream"
