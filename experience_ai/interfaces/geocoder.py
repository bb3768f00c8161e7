"""
Geocoder - reverse lookups against a Nominatim-compatible service
"""

from collections import OrderedDict
from typing import Optional, Tuple

import httpx
from loguru import logger

from ..config import settings


class Geocoder:
    """
    Turns coordinates into a "City, Country" label

    Usage:
        geocoder = Geocoder()
        await geocoder.reverse_geocode(38.72, -9.14)  # "Lisbon, Portugal"
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: float = 5.0,
        http_client: Optional[httpx.AsyncClient] = None,
        max_memo: Optional[int] = None
    ):
        self.base_url = (base_url or settings.GEOCODER_BASE_URL).rstrip("/")
        self.user_agent = user_agent or settings.GEOCODER_USER_AGENT
        self.timeout = timeout
        self._http_client = http_client
        self.max_memo = settings.MEMO_MAX_ENTRIES if max_memo is None else max_memo
        self._memo: "OrderedDict[Tuple[float, float], Optional[str]]" = OrderedDict()

    async def reverse_geocode(self, latitude: float, longitude: float) -> Optional[str]:
        """
        Reverse geocode a coordinate pair.

        Args:
            latitude: Decimal degrees
            longitude: Decimal degrees

        Returns:
            "City, Country", "City" or None when the lookup fails
        """
        # ~1km grid is plenty for city resolution
        key = (round(latitude, 2), round(longitude, 2))
        if key in self._memo:
            self._memo.move_to_end(key)
            return self._memo[key]

        params = {"lat": latitude, "lon": longitude, "format": "json", "zoom": 10, "accept-language": "en"}
        headers = {"User-Agent": self.user_agent}

        try:
            if self._http_client is not None:
                response = await self._http_client.get(f"{self.base_url}/reverse", params=params, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(f"{self.base_url}/reverse", params=params, headers=headers)
            response.raise_for_status()
            data = response.json()
        except Exception as e:
            logger.error(f"Reverse geocoding failed for ({latitude}, {longitude}): {e}")
            return None

        address = data.get("address") or {}
        city = (
            address.get("city")
            or address.get("town")
            or address.get("village")
            or address.get("municipality")
            or address.get("county")
        )
        country = address.get("country")

        if city and country:
            label = f"{city}, {country}"
        else:
            label = city or None

        self._memo[key] = label
        while len(self._memo) > self.max_memo:
            self._memo.popitem(last=False)
        logger.info(f"Geocoded ({latitude}, {longitude}) -> {label}")
        return label
