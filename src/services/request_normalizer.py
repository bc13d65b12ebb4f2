"""Request normalizer - turns a raw JSON body into a GenerationRequest.

Handles key aliasing, parameter defaults, strength clamping, guidance
derivation and image canonicalisation (data URLs, bare base64, remote URLs).
Every check here runs before any call to the inference API.
"""

import base64
import binascii
import dataclasses
import logging
import math
import re
from typing import Any, Awaitable, Callable, Optional

import httpx

from models.generation import GenerationRequest, ImageSource, Operation
from services.errors import ValidationError
from utils.config import ServiceConfig

logger = logging.getLogger(__name__)

BASE_IMAGE_KEYS = ("baseImage", "base_image", "imageA", "image")
SECONDARY_IMAGE_KEYS = (
    "secondaryImage",
    "secondary_image",
    "imageB",
    "referenceImage",
    "reference_image",
    "overlayImage",
)
OPERATION_KEYS = ("operation", "mode")
NEGATIVE_KEYS = ("negative", "negativePrompt", "negative_prompt")
PARAMETER_KEYS = ("parameters", "params")

STRENGTH_KEYS = ("strength", "fidelity")
GUIDANCE_KEYS = ("guidanceScale", "guidance_scale", "cfgScale", "cfg_scale")
FLAG_KEYS = {
    "keep_background": ("keepBackground", "keep_background"),
    "preserve_subject": ("preserveSubject", "preserve_subject"),
    "preserve_layout": ("preserveLayout", "preserve_layout"),
}

OPERATION_ALIASES = {
    "": Operation.DEFAULT,
    "use-secondary-only": Operation.SECONDARY_ONLY,
    "use_secondary_only": Operation.SECONDARY_ONLY,
    "secondary-only": Operation.SECONDARY_ONLY,
    "b_to_a": Operation.OVERLAY,
}

MIN_DIMENSION = 256
MAX_DIMENSION = 2048

DATA_URL_PATTERN = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w-]+=[\w.-]+)*;base64,(?P<data>.*)$",
    re.DOTALL,
)

# Magic-byte prefixes for sniffing bare base64 payloads
IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)

ImageFetcher = Callable[[str], Awaitable[ImageSource]]


def _first(mapping: dict, keys: tuple[str, ...]) -> Any:
    """First alias holding a value. Blank strings count as absent."""
    for key in keys:
        value = mapping.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        return value
    return None


def sniff_mime_type(raw: bytes) -> str:
    """Guess an image mime type from its leading bytes (PNG if unknown)."""
    for signature, mime in IMAGE_SIGNATURES:
        if raw.startswith(signature):
            return mime
    if raw[:4] == b"RIFF" and raw[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def strip_data_url(value: str) -> tuple[Optional[str], str]:
    """Split a data URL into (mime type, raw base64). Bare base64 passes through."""
    match = DATA_URL_PATTERN.match(value)
    if not match:
        return None, value
    return match.group("mime"), match.group("data")


def parse_inline_image(value: str, field_name: str, max_bytes: int) -> ImageSource:
    """Validate an embedded image and return it with a canonical header."""
    mime_type, payload = strip_data_url(value.strip())
    payload = re.sub(r"\s+", "", payload)
    if not payload:
        raise ValidationError(f"{field_name} is empty")

    try:
        raw = base64.b64decode(payload + "=" * (-len(payload) % 4), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(
            f"{field_name} is not a valid URL or base64 image",
            detail="Expected an http(s) URL, a data:image/... URL or raw base64",
        )

    if not raw:
        raise ValidationError(f"{field_name} decoded to an empty image")
    if len(raw) > max_bytes:
        raise ValidationError(
            f"{field_name} is too large",
            detail=f"{len(raw)} bytes exceeds the {max_bytes} byte limit",
        )

    if not mime_type or not mime_type.startswith("image/"):
        mime_type = sniff_mime_type(raw)

    return ImageSource(
        mime_type=mime_type,
        data=base64.b64encode(raw).decode("ascii"),
        size_bytes=len(raw),
    )


def make_remote_fetcher(client: httpx.AsyncClient, max_bytes: int) -> ImageFetcher:
    """Build a fetcher that downloads a remote image into an inline ImageSource."""

    def too_large(url: str, detail: str) -> ValidationError:
        return ValidationError(f"Image at {url} is too large", detail=detail)

    async def fetch(url: str) -> ImageSource:
        chunks: list[bytes] = []
        received = 0
        try:
            async with client.stream("GET", url, follow_redirects=True) as response:
                response.raise_for_status()

                declared = response.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > max_bytes:
                    raise too_large(
                        url, f"{declared} bytes exceeds the {max_bytes} byte limit"
                    )

                # Stop reading as soon as the limit is passed
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > max_bytes:
                        raise too_large(
                            url, f"more than {max_bytes} bytes received"
                        )
                    chunks.append(chunk)

                content_type = response.headers.get("content-type", "").split(";")[0].strip()
        except httpx.HTTPError as e:
            raise ValidationError(f"Could not fetch image from {url}", detail=str(e))

        content = b"".join(chunks)
        if not content:
            raise ValidationError(f"Image at {url} is empty")
        if not content_type.startswith("image/"):
            content_type = sniff_mime_type(content)

        logger.debug(f"Inlined remote image {url} ({len(content)} bytes)")
        return ImageSource(
            mime_type=content_type,
            data=base64.b64encode(content).decode("ascii"),
            size_bytes=len(content),
        )

    return fetch


def resolve_image(value: Any, field_name: str, config: ServiceConfig) -> Optional[ImageSource]:
    """Turn a raw image field into an ImageSource (None when absent).

    Remote URLs are kept as references; see inline_remote_images().
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string (URL or base64)")

    value = value.strip()
    if not value:
        return None

    if value.lower().startswith(("http://", "https://")):
        return ImageSource(url=value)

    return parse_inline_image(value, field_name, config.max_image_bytes)


async def inline_remote_images(
    request: GenerationRequest,
    config: ServiceConfig,
    fetcher: Optional[ImageFetcher],
) -> GenerationRequest:
    """Download URL images into inline payloads when the service is set up to."""
    if not config.inline_remote_images or fetcher is None:
        return request

    changes = {}
    for field in ("base_image", "secondary_image"):
        source = getattr(request, field)
        if source is not None and not source.is_inline:
            changes[field] = await fetcher(source.url)
    return dataclasses.replace(request, **changes) if changes else request


def parse_operation(value: Any) -> Operation:
    if value is None:
        return Operation.DEFAULT
    if not isinstance(value, str):
        raise ValidationError("operation must be a string")

    tag = value.strip().lower()
    if tag in OPERATION_ALIASES:
        return OPERATION_ALIASES[tag]
    try:
        return Operation(tag)
    except ValueError:
        valid = [op.value for op in Operation]
        raise ValidationError(
            f"Unknown operation '{value}'", detail=f"Valid operations: {valid}"
        )


def parse_strength(value: Any, default: float) -> float:
    """Coerce strength to a float and clamp it to [0, 1]."""
    if value is None:
        value = default
    if isinstance(value, bool):
        raise ValidationError("strength must be a number")
    try:
        strength = float(value)
    except (TypeError, ValueError):
        raise ValidationError("strength must be a number")
    if math.isnan(strength):
        raise ValidationError("strength must be a number")
    return min(1.0, max(0.0, strength))


def parse_guidance(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError("guidanceScale must be a number")
    try:
        guidance = float(value)
    except (TypeError, ValueError):
        raise ValidationError("guidanceScale must be a number")
    if not math.isfinite(guidance) or guidance <= 0:
        raise ValidationError("guidanceScale must be a positive number")
    return guidance


def parse_int(value: Any, name: str, minimum: int, maximum: Optional[int] = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{name} must be an integer")
        value = int(value)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")
    if number < minimum or (maximum is not None and number > maximum):
        bounds = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
        raise ValidationError(f"{name} must be {bounds}")
    return number


def parse_flag(value: Any, name: str, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
    raise ValidationError(f"{name} must be a boolean")


def check_required_images(
    operation: Operation,
    base: Optional[ImageSource],
    secondary: Optional[ImageSource],
) -> None:
    """Reject requests missing an image the operation depends on."""
    if base is None and secondary is None:
        raise ValidationError("A base image or secondary image is required")
    if operation.needs_base and base is None:
        raise ValidationError(f"Operation '{operation.value}' requires a base image")
    if operation.needs_secondary and secondary is None:
        raise ValidationError(
            f"Operation '{operation.value}' requires a secondary (reference) image",
            detail="Send it as secondaryImage (aliases: imageB, referenceImage)",
        )


async def normalize_request(
    payload: Any,
    config: ServiceConfig,
    fetcher: Optional[ImageFetcher] = None,
) -> GenerationRequest:
    """Build a canonical GenerationRequest from a raw request body.

    Args:
        payload: Decoded JSON body
        config: Service configuration (defaults and guidance range)
        fetcher: Optional downloader used when remote images are inlined.
            It only runs after every shape check has passed.

    Returns:
        GenerationRequest ready for the prompt builder

    Raises:
        ValidationError: If the body is malformed or an image is missing
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    params = _first(payload, PARAMETER_KEYS) or {}
    if not isinstance(params, dict):
        raise ValidationError("parameters must be an object")

    def lookup(keys: tuple[str, ...]) -> Any:
        value = _first(params, keys)
        return value if value is not None else _first(payload, keys)

    prompt = payload.get("prompt") or ""
    if not isinstance(prompt, str):
        raise ValidationError("prompt must be a string")
    negative = _first(payload, NEGATIVE_KEYS) or ""
    if not isinstance(negative, str):
        raise ValidationError("negative must be a string")

    operation = parse_operation(_first(payload, OPERATION_KEYS))
    strength = parse_strength(lookup(STRENGTH_KEYS), config.default_strength)
    guidance = parse_guidance(lookup(GUIDANCE_KEYS))
    if guidance is None:
        guidance = config.guidance_for_strength(strength)

    seed = lookup(("seed",))
    if seed is not None:
        seed = parse_int(seed, "seed", 0)
    width = lookup(("width",))
    width = 1024 if width is None else parse_int(width, "width", MIN_DIMENSION, MAX_DIMENSION)
    height = lookup(("height",))
    height = 1024 if height is None else parse_int(height, "height", MIN_DIMENSION, MAX_DIMENSION)

    flags = {
        name: parse_flag(lookup(keys), keys[0]) for name, keys in FLAG_KEYS.items()
    }

    base_raw = _first(payload, BASE_IMAGE_KEYS)
    secondary_raw = _first(payload, SECONDARY_IMAGE_KEYS)

    base = resolve_image(base_raw, "baseImage", config)
    secondary = resolve_image(secondary_raw, "secondaryImage", config)
    check_required_images(operation, base, secondary)

    if operation is Operation.DEFAULT and base is None:
        base, secondary = secondary, None

    request = GenerationRequest(
        prompt=prompt.strip(),
        operation=operation,
        base_image=base,
        secondary_image=secondary,
        negative_prompt=negative.strip(),
        strength=strength,
        guidance_scale=guidance,
        seed=seed,
        width=width,
        height=height,
        **flags,
    )
    logger.debug(
        f"Normalized request: operation={operation.value} strength={strength:.2f} "
        f"guidance={guidance:.2f}"
    )
    return await inline_remote_images(request, config, fetcher)
