"""Core routes for the image edit proxy API (root and health check)."""

from api.dependencies import get_generation_service
from api.schemas import HealthResponse, RootResponse
from fastapi import APIRouter, Depends
from services.generation_service import GenerationService

router = APIRouter(tags=["Core"])


@router.get(
    "/",
    response_model=RootResponse,
    summary="API root",
    description="Returns API name and version.",
)
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Image Edit Proxy", "version": "1.0.0"}


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns server health, the configured engine and the server time.",
)
async def health(service: GenerationService = Depends(get_generation_service)) -> dict:
    """Health check endpoint."""
    return service.health()


@router.get("/api/health", response_model=HealthResponse, include_in_schema=False)
async def legacy_health(service: GenerationService = Depends(get_generation_service)) -> dict:
    """Alias kept for clients of the original /api prefix."""
    return await health(service)
