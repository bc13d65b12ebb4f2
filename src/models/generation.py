"""Models for image edit requests and upstream prediction jobs."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Operation(str, Enum):
    """Supported edit operations."""

    REPLACE = "replace"
    OVERLAY = "overlay"
    INSERT = "insert"
    REMOVE = "remove"
    SECONDARY_ONLY = "secondary_only"
    DEFAULT = "default"

    @property
    def needs_base(self) -> bool:
        return self in (
            Operation.REPLACE,
            Operation.OVERLAY,
            Operation.INSERT,
            Operation.REMOVE,
        )

    @property
    def needs_secondary(self) -> bool:
        return self in (
            Operation.REPLACE,
            Operation.OVERLAY,
            Operation.INSERT,
            Operation.SECONDARY_ONLY,
        )


class JobState(str, Enum):
    """Lifecycle of a single upstream prediction."""

    CREATED = "created"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self not in (JobState.CREATED, JobState.RUNNING)


@dataclass(frozen=True)
class ImageSource:
    """An input image, either inline base64 or a remote URL."""

    url: Optional[str] = None
    mime_type: str = "image/png"
    data: Optional[str] = None  # raw base64, no data: header
    size_bytes: int = 0

    @property
    def is_inline(self) -> bool:
        return self.data is not None

    def to_upstream(self) -> str:
        """Render as the value the inference API accepts."""
        if self.is_inline:
            return f"data:{self.mime_type};base64,{self.data}"
        return self.url or ""

    def describe(self) -> dict:
        """Summary safe to echo back to the caller."""
        if self.is_inline:
            return {"kind": "inline", "mime_type": self.mime_type, "bytes": self.size_bytes}
        return {"kind": "url", "url": self.url}


@dataclass(frozen=True)
class GenerationRequest:
    """Canonical image edit request produced by the normalizer."""

    prompt: str
    operation: Operation = Operation.DEFAULT
    base_image: Optional[ImageSource] = None
    secondary_image: Optional[ImageSource] = None
    negative_prompt: str = ""
    strength: float = 0.35
    guidance_scale: float = 4.75
    seed: Optional[int] = None
    width: int = 1024
    height: int = 1024
    keep_background: bool = True
    preserve_subject: bool = True
    preserve_layout: bool = True

    def summary(self) -> dict:
        """Convert to the echo dictionary returned in API responses."""
        return {
            "prompt": self.prompt,
            "negative": self.negative_prompt,
            "operation": self.operation.value,
            "baseImage": self.base_image.describe() if self.base_image else None,
            "secondaryImage": (
                self.secondary_image.describe() if self.secondary_image else None
            ),
            "strength": self.strength,
            "guidanceScale": self.guidance_scale,
            "seed": self.seed,
            "width": self.width,
            "height": self.height,
            "keepBackground": self.keep_background,
            "preserveSubject": self.preserve_subject,
            "preserveLayout": self.preserve_layout,
        }


@dataclass
class UpstreamJobInput:
    """One candidate input payload for the inference API."""

    variant: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class JobHandle:
    """Identifier and polling address of a submitted prediction."""

    id: str
    poll_url: str
    status: str = "starting"


@dataclass
class JobResult:
    """Outcome of one submit-and-poll cycle."""

    job_id: str
    state: JobState
    outputs: list[str] = field(default_factory=list)
    error: Optional[str] = None
    attempts: int = 0

    @property
    def first_output(self) -> Optional[str]:
        return self.outputs[0] if self.outputs else None


@dataclass
class GenerationOutcome:
    """Successful result of the fallback chain."""

    image: str
    engine: str
    variant: str
    job_id: str
    attempts: int
    request: GenerationRequest

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "ok": True,
            "image": self.image,
            "engine": self.engine,
            "variant": self.variant,
            "jobId": self.job_id,
            "attempts": self.attempts,
            "echo": self.request.summary(),
        }
