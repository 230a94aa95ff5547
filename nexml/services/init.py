"""
NexML Marketplace - Service Initialization

Configures logging and builds the registry from application settings.
Hosts embedding the registry call these on startup and shutdown.
"""

from __future__ import annotations

import structlog

from nexml.config import Settings, get_settings
from nexml.monitoring.logging import configure_logging, log_duration
from nexml.services.marketplace import (
    MarketplaceService,
    close_marketplace_service,
    init_marketplace_service,
)

logger = structlog.get_logger(__name__)


def init_all_services(settings: Settings | None = None, **collaborators) -> MarketplaceService:
    """
    Initialize logging and the marketplace service.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
        **collaborators: Passed through to init_marketplace_service
            (repository, payments, events)
    """
    settings = settings or get_settings()
    configure_logging(
        level=settings.log_level,
        json_output=settings.log_json or settings.is_production,
    )

    with log_duration(logger, "services_init", backend=settings.storage_backend):
        service = init_marketplace_service(settings=settings, **collaborators)

    logger.info(
        "services_initialized",
        app=settings.app_name,
        env=settings.app_env,
        strict_update_validation=settings.strict_update_validation,
    )
    return service


async def shutdown_all_services() -> None:
    """Release storage connections."""
    logger.info("shutting_down_services")
    await close_marketplace_service()
