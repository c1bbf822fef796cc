"""
Geo Service Factory

Provides a single entry point for obtaining an IP geolocation service.
Automatically selects Mock or ip-api based on ENV_MODE configuration.

Usage:
    from dinehub.services.geo import get_geo_service

    geo_service = get_geo_service()
    location = await geo_service.locate_ip("8.8.8.8")
"""

import logging
from functools import lru_cache

from dinehub.core.config import get_settings
from dinehub.services.geo.base import BaseGeoService, LocationResult, is_public_ip
from dinehub.services.geo.mock import MockGeoService
from dinehub.services.geo.ip_api import IpApiGeoService

logger = logging.getLogger(__name__)


@lru_cache()
def get_geo_service() -> BaseGeoService:
    """Get the configured geo service instance (cached per process)."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Geo Service: Using MockGeoService (development mode)")
        return MockGeoService()
    else:
        logger.info(f"Geo Service: Using IpApiGeoService ({settings.env_mode.value} mode)")
        return IpApiGeoService()


def reset_geo_service() -> None:
    """Clear the cached geo service instance."""
    get_geo_service.cache_clear()
    logger.debug("Geo service cache cleared")


__all__ = [
    "get_geo_service",
    "reset_geo_service",
    "BaseGeoService",
    "LocationResult",
    "is_public_ip",
    "MockGeoService",
    "IpApiGeoService",
]
