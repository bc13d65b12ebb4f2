"""Image edit routes for the image edit proxy API."""

import logging
import uuid

from api.dependencies import get_generation_service
from api.schemas import ErrorResponse, GenerateResponse
from fastapi import APIRouter, Body, Depends
from services.generation_service import GenerationService
from utils.logging import clear_request_context, set_request_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Image Editing"])

GENERATE_EXAMPLE = {
    "prompt": "red car",
    "operation": "replace",
    "baseImage": "https://example.com/street.png",
    "secondaryImage": "https://example.com/car.png",
    "parameters": {"strength": 0.4, "seed": 42},
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid or missing input"},
    401: {"model": ErrorResponse, "description": "Upstream credential missing or rejected"},
    422: {"model": ErrorResponse, "description": "Every input variant failed"},
    502: {"model": ErrorResponse, "description": "Upstream job failed"},
    504: {"model": ErrorResponse, "description": "Upstream job did not finish in time"},
}


@router.post(
    "/generate",
    response_model=GenerateResponse,
    summary="Edit an image",
    description=(
        "Normalizes the request, submits it to the inference API and polls until a "
        "result is available, trying alternative input shapes in order."
    ),
    responses=ERROR_RESPONSES,
)
async def generate(
    payload: dict = Body(..., examples=[GENERATE_EXAMPLE]),
    service: GenerationService = Depends(get_generation_service),
) -> dict:
    """Run one image edit from request body to selected image."""
    request_id = uuid.uuid4().hex[:12]
    set_request_context(request_id)
    try:
        outcome = await service.generate(payload)
        logger.info(
            f"Request {request_id} done: variant={outcome.variant} attempts={outcome.attempts}"
        )
        return outcome.to_dict()
    finally:
        clear_request_context()


@router.post(
    "/api/generate",
    response_model=GenerateResponse,
    include_in_schema=False,
)
async def legacy_generate(
    payload: dict = Body(...),
    service: GenerationService = Depends(get_generation_service),
) -> dict:
    """Alias kept for clients of the original /api prefix."""
    return await generate(payload, service)
