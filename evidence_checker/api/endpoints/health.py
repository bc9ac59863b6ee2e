"""Health check endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ...infrastructure.dependencies import ServiceContainer, get_service_container

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(container: ServiceContainer = Depends(get_service_container)) -> Dict[str, Any]:
    """Service status and which judges are running."""
    return {
        "status": "healthy",
        "version": "0.1.0",
        "semantic_enabled": container.settings.judge_configured,
        "judges": {
            name.title(): is_active
            for name, is_active in container.judge_factory.available_providers.items()
        },
    }
