"""Prompt and parameter builder for upstream image edit jobs."""

from typing import Any, Optional

from models.generation import GenerationRequest, ImageSource, Operation

KEEP_BACKGROUND = "Keep the original background unchanged"
PRESERVE_SUBJECT = "Preserve the main subject's identity, proportions and details"
PRESERVE_LAYOUT = "Preserve the original composition, camera angle and layout"

OPERATION_PHRASES = {
    Operation.REPLACE: "Replace the target element with the matching element from the reference image",
    Operation.OVERLAY: "Overlay the content of the reference image onto the base image, matching lighting and perspective",
    Operation.INSERT: "Insert the subject from the reference image into the base image naturally",
    Operation.REMOVE: "Remove the described element and fill the area seamlessly",
    Operation.SECONDARY_ONLY: "Use the reference image as the only visual source",
    Operation.DEFAULT: "",
}


def build_guidance_text(request: GenerationRequest) -> str:
    """Concatenate the fixed instruction fragments and the user's free text."""
    parts = []
    if request.keep_background:
        parts.append(KEEP_BACKGROUND)
    if request.preserve_subject:
        parts.append(PRESERVE_SUBJECT)
    if request.preserve_layout:
        parts.append(PRESERVE_LAYOUT)
    parts.append(OPERATION_PHRASES[request.operation])
    parts.append(request.prompt.strip())
    return ". ".join(part.rstrip(".") for part in parts if part)


def build_negative_prompt(request: GenerationRequest) -> str:
    """Negative prompt comes from the caller only."""
    return request.negative_prompt.strip()


def primary_image(request: GenerationRequest) -> Optional[ImageSource]:
    """Image placed in the base slot of the upstream input."""
    if request.operation is Operation.SECONDARY_ONLY:
        return request.secondary_image
    return request.base_image or request.secondary_image


def reference_image(request: GenerationRequest) -> Optional[ImageSource]:
    """Image carried under a cross-image reference key, if the operation uses one."""
    if request.operation in (Operation.REPLACE, Operation.OVERLAY, Operation.INSERT):
        return request.secondary_image
    return None


def build_base_input(request: GenerationRequest) -> dict[str, Any]:
    """Core upstream parameters shared by every variant."""
    params: dict[str, Any] = {
        "prompt": build_guidance_text(request),
        "guidance_scale": round(request.guidance_scale, 4),
        "strength": request.strength,
        "width": request.width,
        "height": request.height,
    }

    image = primary_image(request)
    if image is not None:
        params["image"] = image.to_upstream()

    negative = build_negative_prompt(request)
    if negative:
        params["negative_prompt"] = negative

    if request.seed is not None:
        params["seed"] = request.seed

    return params
