"""
Mock Geo Service Implementation

Simulates an IP geolocation API without network calls. Used in development
mode (ENV_MODE=development).

Behavior:
    - Non-public addresses (loopback, private) fail like the real API
    - Public addresses map deterministically onto a small set of cities
"""

import hashlib
import logging

from dinehub.services.geo.base import BaseGeoService, LocationResult, is_public_ip

logger = logging.getLogger(__name__)


class MockGeoService(BaseGeoService):
    """Deterministic fake geolocation keyed on the IP address."""

    CITIES = [
        ("New York", "New York", "United States", "US", 40.7128, -74.0060, "America/New_York"),
        ("Chicago", "Illinois", "United States", "US", 41.8781, -87.6298, "America/Chicago"),
        ("London", "England", "United Kingdom", "GB", 51.5072, -0.1276, "Europe/London"),
        ("Paris", "Ile-de-France", "France", "FR", 48.8566, 2.3522, "Europe/Paris"),
        ("Toronto", "Ontario", "Canada", "CA", 43.6532, -79.3832, "America/Toronto"),
    ]

    @property
    def provider_name(self) -> str:
        return "mock"

    async def locate_ip(self, ip_address: str) -> LocationResult:
        if not is_public_ip(ip_address):
            return LocationResult(
                success=False,
                ip_address=ip_address,
                error_message="private range",
            )

        index = int(hashlib.md5(ip_address.encode()).hexdigest(), 16) % len(self.CITIES)
        city, region, country, code, lat, lon, tz = self.CITIES[index]
        logger.debug(f"Mock: {ip_address} -> {city}")

        return LocationResult(
            success=True,
            ip_address=ip_address,
            city=city,
            region_name=region,
            country=country,
            country_code=code,
            latitude=lat,
            longitude=lon,
            timezone=tz,
            isp="Mock ISP",
        )

    async def health_check(self) -> bool:
        return True
