"""Generation service - ties the normalizer and the Replicate client together."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from models.generation import GenerationOutcome
from services.replicate_client import ReplicateClient, Sleep
from services.request_normalizer import (
    inline_remote_images,
    make_remote_fetcher,
    normalize_request,
)
from utils.config import ServiceConfig

logger = logging.getLogger(__name__)


class GenerationService:
    """Handles one /generate call from raw body to selected image."""

    def __init__(
        self,
        config: ServiceConfig,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.config = config
        self.client = client or httpx.AsyncClient(timeout=config.http_timeout)
        self.replicate = ReplicateClient(config, self.client, sleep=sleep or asyncio.sleep)
        self._fetcher = (
            make_remote_fetcher(self.client, config.max_image_bytes)
            if config.inline_remote_images
            else None
        )

    @property
    def engine(self) -> str:
        return self.config.engine

    async def generate(self, payload: Any) -> GenerationOutcome:
        """Normalize the body, run the fallback chain and return the winner.

        Shape validation runs first, then the credential check, then any
        remote image download. All three happen before any request reaches
        the inference API.
        """
        request = await normalize_request(payload, self.config)
        self.replicate.ensure_configured()
        request = await inline_remote_images(request, self.config, self._fetcher)
        logger.info(
            f"Generating: operation={request.operation.value} "
            f"strength={request.strength:.2f} guidance={request.guidance_scale:.2f} "
            f"{request.width}x{request.height}"
        )
        return await self.replicate.run_with_fallback(request)

    def health(self) -> dict:
        return {
            "ok": True,
            "engine": self.engine,
            "time": datetime.now(timezone.utc).isoformat(),
        }

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
