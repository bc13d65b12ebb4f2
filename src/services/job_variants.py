"""Ordered input-shape variants for the inference API.

Different model versions expect the cross-image reference under different
key names. Each variant is a pure transform from a GenerationRequest to an
UpstreamJobInput; the fallback client tries them in the declared order.
"""

from typing import Callable

from models.generation import GenerationRequest, UpstreamJobInput
from services.prompt_builder import build_base_input, reference_image

VariantTransform = Callable[[GenerationRequest], UpstreamJobInput]

# Declared order matters: the fallback client stops at the first success
REFERENCE_KEYS = (
    "ip_adapter_image",
    "reference_image",
    "secondary_image",
    "conditioning_image",
)


def _reference_variant(key: str) -> VariantTransform:
    def transform(request: GenerationRequest) -> UpstreamJobInput:
        params = build_base_input(request)
        reference = reference_image(request)
        if reference is not None:
            params[key] = reference.to_upstream()
        return UpstreamJobInput(variant=key, params=params)

    transform.__name__ = f"with_{key}"
    return transform


def base_variant(request: GenerationRequest) -> UpstreamJobInput:
    """Single shape for requests without a reference image."""
    return UpstreamJobInput(variant="base", params=build_base_input(request))


REFERENCE_VARIANTS: tuple[VariantTransform, ...] = tuple(
    _reference_variant(key) for key in REFERENCE_KEYS
)


def variants_for(request: GenerationRequest) -> tuple[VariantTransform, ...]:
    """Transforms applicable to this request, in attempt order."""
    if reference_image(request) is None:
        return (base_variant,)
    return REFERENCE_VARIANTS


def build_candidates(request: GenerationRequest) -> list[UpstreamJobInput]:
    """Apply every applicable transform, preserving order."""
    return [transform(request) for transform in variants_for(request)]
