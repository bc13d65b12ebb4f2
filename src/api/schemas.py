"""Pydantic request/response models for the image edit proxy API."""

from pydantic import BaseModel, Field

# =============================================================================
# Response Models
# =============================================================================


class RootResponse(BaseModel):
    """Root endpoint response."""

    message: str
    version: str

    model_config = {"json_schema_extra": {"examples": [{"message": "Image Edit Proxy", "version": "1.0.0"}]}}


class HealthResponse(BaseModel):
    """Health check response."""

    ok: bool
    engine: str
    time: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "ok": True,
                    "engine": "replicate:stability-ai/sdxl:1c7d06f4d08e01d75b825ad8f5644c46cd365382",
                    "time": "2026-01-01T12:00:00+00:00",
                }
            ]
        }
    }


class GenerateResponse(BaseModel):
    """Successful generation response."""

    ok: bool = True
    image: str
    engine: str
    variant: str
    jobId: str
    attempts: int = Field(ge=1)
    echo: dict


class ErrorResponse(BaseModel):
    """Error envelope shared by every failure status."""

    ok: bool = False
    message: str
    detail: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "ok": False,
                    "message": "Operation 'replace' requires a secondary (reference) image",
                    "detail": "Send it as secondaryImage (aliases: imageB, referenceImage)",
                }
            ]
        }
    }

