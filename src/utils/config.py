"""Configuration loading and validation for the image edit proxy."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")

DEFAULT_MODEL_VERSION = "stability-ai/sdxl:1c7d06f4d08e01d75b825ad8f5644c46cd365382"
DEFAULT_API_BASE = "https://api.replicate.com/v1"


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config() -> dict:
    """Load configuration from environment variables."""
    config = {
        # Upstream credentials and model
        "replicate_api_token": os.getenv("REPLICATE_API_TOKEN"),
        "model_version": os.getenv("REPLICATE_MODEL_VERSION", DEFAULT_MODEL_VERSION),
        "fallback_versions": _split_list(os.getenv("REPLICATE_FALLBACK_VERSIONS")),
        "api_base": os.getenv("REPLICATE_API_BASE", DEFAULT_API_BASE),
        # Polling
        "poll_interval": float(os.getenv("POLL_INTERVAL_SECONDS", "1.5")),
        "max_poll_attempts": int(os.getenv("MAX_POLL_ATTEMPTS", "80")),
        "http_timeout": float(os.getenv("HTTP_TIMEOUT_SECONDS", "60")),
        # Parameter mapping
        "guidance_min": float(os.getenv("GUIDANCE_MIN", "3")),
        "guidance_max": float(os.getenv("GUIDANCE_MAX", "8")),
        "default_strength": float(os.getenv("DEFAULT_STRENGTH", "0.35")),
        # Input images
        "inline_remote_images": os.getenv("INLINE_REMOTE_IMAGES", "false").lower()
        == "true",
        "max_image_bytes": int(os.getenv("MAX_IMAGE_BYTES", str(20 * 1024 * 1024))),
        # Server
        "cors_origins": _split_list(os.getenv("CORS_ORIGINS", "*")),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": os.getenv("LOG_JSON", "false").lower() == "true",
        "host": os.getenv("HOST", "0.0.0.0"),
        "port": int(os.getenv("PORT", "3000")),
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if not config.get("replicate_api_token"):
        errors.append("REPLICATE_API_TOKEN is not set; /generate will answer 401")

    if not config.get("model_version"):
        errors.append("REPLICATE_MODEL_VERSION must not be empty")

    if config.get("poll_interval", 0) <= 0:
        errors.append("POLL_INTERVAL_SECONDS must be positive")

    if config.get("max_poll_attempts", 0) < 1:
        errors.append("MAX_POLL_ATTEMPTS must be at least 1")

    if config.get("guidance_min", 0) > config.get("guidance_max", 0):
        errors.append("GUIDANCE_MIN must not exceed GUIDANCE_MAX")

    strength = config.get("default_strength", 0.35)
    if not 0.0 <= strength <= 1.0:
        errors.append("DEFAULT_STRENGTH must be between 0 and 1")

    return errors


@dataclass(frozen=True)
class ServiceConfig:
    """Immutable process-wide settings, built once at startup."""

    replicate_api_token: str | None = None
    model_version: str = DEFAULT_MODEL_VERSION
    fallback_versions: tuple[str, ...] = ()
    api_base: str = DEFAULT_API_BASE
    poll_interval: float = 1.5
    max_poll_attempts: int = 80
    http_timeout: float = 60.0
    guidance_min: float = 3.0
    guidance_max: float = 8.0
    default_strength: float = 0.35
    inline_remote_images: bool = False
    max_image_bytes: int = 20 * 1024 * 1024
    cors_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_mapping(cls, config: dict) -> "ServiceConfig":
        """Freeze a dict produced by load_config().

        An inverted guidance range is swapped so the strength map stays
        non-decreasing; validate_config() still reports it.
        """
        guidance_min, guidance_max = sorted(
            (float(config.get("guidance_min", 3.0)), float(config.get("guidance_max", 8.0)))
        )
        return cls(
            replicate_api_token=config.get("replicate_api_token") or None,
            model_version=config.get("model_version") or DEFAULT_MODEL_VERSION,
            fallback_versions=tuple(config.get("fallback_versions") or ()),
            api_base=(config.get("api_base") or DEFAULT_API_BASE).rstrip("/"),
            poll_interval=float(config.get("poll_interval", 1.5)),
            max_poll_attempts=int(config.get("max_poll_attempts", 80)),
            http_timeout=float(config.get("http_timeout", 60.0)),
            guidance_min=guidance_min,
            guidance_max=guidance_max,
            default_strength=float(config.get("default_strength", 0.35)),
            inline_remote_images=bool(config.get("inline_remote_images", False)),
            max_image_bytes=int(config.get("max_image_bytes", 20 * 1024 * 1024)),
            cors_origins=tuple(config.get("cors_origins") or ("*",)),
        )

    @property
    def model_versions(self) -> tuple[str, ...]:
        """Primary model version followed by the fallbacks, deduplicated."""
        ordered: list[str] = []
        for version in (self.model_version, *self.fallback_versions):
            if version and version not in ordered:
                ordered.append(version)
        return tuple(ordered)

    @property
    def engine(self) -> str:
        return f"replicate:{self.model_version}"

    def guidance_for_strength(self, strength: float) -> float:
        """Linear map from clamped strength to guidance scale."""
        strength = min(1.0, max(0.0, strength))
        low, high = sorted((self.guidance_min, self.guidance_max))
        return low + strength * (high - low)
