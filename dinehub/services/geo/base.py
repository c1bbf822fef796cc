"""
Geo Service Abstract Base Class

Defines the interface contract for IP geolocation implementations.
Both MockGeoService and IpApiGeoService implement these methods.

Use Cases:
    - Tagging each login with an approximate location
    - Grouping active sessions by city in the admin session list
"""

import ipaddress
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class LocationResult:
    """
    Standardized result from an IP lookup.

    Attributes:
        success: Whether the lookup resolved the address
        ip_address: The address that was looked up
        city, region_name, country, country_code: Place names
        latitude, longitude: Approximate coordinates
        timezone: IANA timezone name
        isp: Internet service provider
        error_message: Error description if the lookup failed
        response_time_ms: API response time
    """
    success: bool
    ip_address: str
    city: Optional[str] = None
    region_name: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: Optional[str] = None
    isp: Optional[str] = None
    error_message: Optional[str] = None
    response_time_ms: float = 0.0
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def summary(self) -> str:
        """Human readable "City, Region, Country"."""
        parts = [p for p in (self.city, self.region_name, self.country) if p]
        return ", ".join(parts) if parts else "Unknown"

    def to_dict(self) -> dict:
        """Convert to dictionary; stored as JSON on the login log."""
        return {
            "status": "success" if self.success else "fail",
            "query": self.ip_address,
            "city": self.city,
            "regionName": self.region_name,
            "country": self.country,
            "countryCode": self.country_code,
            "lat": self.latitude,
            "lon": self.longitude,
            "timezone": self.timezone,
            "isp": self.isp,
        }


def is_public_ip(ip: str) -> bool:
    """Loopback, private and malformed addresses are never looked up."""
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return not (addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_unspecified)


class BaseGeoService(ABC):
    """Abstract base class for IP geolocation services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the geolocation provider."""
        pass

    @abstractmethod
    async def locate_ip(self, ip_address: str) -> LocationResult:
        """
        Resolve an IP address to an approximate location.

        Implementations never raise; failures are reported through
        ``LocationResult.success`` and ``error_message``.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify the geolocation provider is reachable."""
        pass
