# Data models for the image edit proxy
from .generation import (
    Operation,
    JobState,
    ImageSource,
    GenerationRequest,
    UpstreamJobInput,
    JobHandle,
    JobResult,
    GenerationOutcome,
)

__all__ = [
    "Operation",
    "JobState",
    "ImageSource",
    "GenerationRequest",
    "UpstreamJobInput",
    "JobHandle",
    "JobResult",
    "GenerationOutcome",
]
