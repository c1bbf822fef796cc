"""
ip-api.com Geo Service Implementation

Looks up login IP addresses against the ip-api JSON endpoint with httpx.
Used when ENV_MODE=production or ENV_MODE=staging.
"""

import logging
from datetime import datetime

import httpx

from dinehub.core.config import get_settings
from dinehub.services.geo.base import BaseGeoService, LocationResult, is_public_ip

logger = logging.getLogger(__name__)


class IpApiGeoService(BaseGeoService):
    """
    Production geolocation via ``GET {ip_geolocation_url}/{ip}``.

    The free endpoint answers ``{"status": "success" | "fail", ...}``.
    """

    def __init__(self):
        settings = get_settings()
        self._base_url = settings.ip_geolocation_url.rstrip("/")
        self._timeout = settings.ip_geolocation_timeout
        logger.info(f"IpApiGeoService initialized ({self._base_url})")

    @property
    def provider_name(self) -> str:
        return "ip-api"

    async def locate_ip(self, ip_address: str) -> LocationResult:
        if not is_public_ip(ip_address):
            return LocationResult(success=False, ip_address=ip_address, error_message="private range")

        start_time = datetime.now()
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(f"{self._base_url}/{ip_address}")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"⚠️ Geolocation lookup failed for {ip_address}: {e}")
            return LocationResult(success=False, ip_address=ip_address, error_message=str(e))

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000

        if data.get("status") != "success":
            return LocationResult(
                success=False,
                ip_address=ip_address,
                error_message=data.get("message", "lookup failed"),
                response_time_ms=elapsed_ms,
                raw=data,
            )

        return LocationResult(
            success=True,
            ip_address=ip_address,
            city=data.get("city"),
            region_name=data.get("regionName"),
            country=data.get("country"),
            country_code=data.get("countryCode"),
            latitude=data.get("lat"),
            longitude=data.get("lon"),
            timezone=data.get("timezone"),
            isp=data.get("isp"),
            response_time_ms=elapsed_ms,
            raw=data,
        )

    async def health_check(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self._base_url)
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.error(f"Geolocation health check failed: {e}")
            return False
