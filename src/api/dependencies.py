"""Service singletons and dependency injection for the image edit proxy API."""

from services.generation_service import GenerationService
from utils.config import ServiceConfig, load_config

# Service singletons
_service_config: ServiceConfig | None = None
_generation_service: GenerationService | None = None


def get_service_config() -> ServiceConfig:
    """Get or build the immutable service configuration."""
    global _service_config
    if _service_config is None:
        _service_config = ServiceConfig.from_mapping(load_config())
    return _service_config


def get_generation_service() -> GenerationService:
    """Get or create the generation service instance."""
    global _generation_service
    if _generation_service is None:
        _generation_service = GenerationService(get_service_config())
    return _generation_service


async def shutdown_services() -> None:
    """Close shared HTTP clients."""
    global _generation_service
    if _generation_service is not None:
        await _generation_service.close()
        _generation_service = None
