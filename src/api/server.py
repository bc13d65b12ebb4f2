#!/usr/bin/env python
"""FastAPI server for the image edit proxy."""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add src directory to Python path for imports
src_dir = Path(__file__).parent.parent
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import get_service_config, shutdown_services
from api.routers import core, generate
from services.errors import ImageProxyError, UnexpectedError, ValidationError
from utils.config import load_config, validate_config
from utils.logging import setup_logging

config = load_config()
setup_logging(config["log_level"], json_output=config["log_json"])
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    for problem in validate_config(config):
        logger.warning(f"Configuration: {problem}")
    logger.info(f"Image edit proxy starting (engine: {get_service_config().engine})")
    yield
    await shutdown_services()


app = FastAPI(title="Image Edit Proxy", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_service_config().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ImageProxyError)
async def image_proxy_error_handler(request: Request, exc: ImageProxyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error = ValidationError("Request body must be a JSON object", detail=str(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    error = UnexpectedError("Unexpected server error", detail=type(exc).__name__)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


app.include_router(core.router)
app.include_router(generate.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config["host"], port=config["port"], log_level="info")
