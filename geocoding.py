import logging
from typing import Optional

import httpx

from models import GeocodingConfig

logger = logging.getLogger(__name__)

# Nominatim address fields, most specific first
ADDRESS_FIELDS = ("city", "town", "county", "state")

# ipapi.co fields, most specific first
IP_LOCATION_FIELDS = ("city", "region", "country_name")


class Geocoder:
    """Best-effort adapters over the reverse-geocoding and IP-geolocation services.

    Every lookup returns None on failure instead of raising.
    """

    def __init__(self, client: httpx.AsyncClient, config: GeocodingConfig):
        self.client = client
        self.config = config

    async def reverse_geocode(self, lat: float, lon: float) -> Optional[str]:
        params = {
            "format": "jsonv2",
            "lat": lat,
            "lon": lon,
            "accept-language": self.config.accept_language,
        }
        headers = {"User-Agent": self.config.user_agent}

        try:
            resp = await self.client.get(self.config.reverse_url, params=params, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Reverse geocoding failed for ({lat}, {lon}): {e}")
            return None

        address = data.get("address") if isinstance(data, dict) else None
        if not isinstance(address, dict):
            logger.warning(f"Reverse geocoding for ({lat}, {lon}) returned no usable address")
            return None

        name = first_present(address, ADDRESS_FIELDS)
        logger.debug(f"Reverse geocoded ({lat}, {lon}) -> {name}")
        return name

    async def locate_ip(self, ip: Optional[str]) -> Optional[str]:
        if not ip:
            return None

        url = f"{self.config.ip_lookup_url.rstrip('/')}/{ip}/json/"
        try:
            resp = await self.client.get(url)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"IP geolocation failed for {ip}: {e}")
            return None

        if not isinstance(data, dict):
            return None

        name = first_present(data, IP_LOCATION_FIELDS)
        logger.debug(f"IP {ip} located at {name}")
        return name


def first_present(data: dict, fields) -> Optional[str]:
    for field in fields:
        value = data.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
