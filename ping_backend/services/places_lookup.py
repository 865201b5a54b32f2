# ping_backend/services/places_lookup.py
"""
Official place names from the Google Places API (v1)
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

PLACES_API_URL = "https://places.googleapis.com/v1"


@dataclass
class OfficialPlace:
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class GooglePlacesLookup:
    """Resolves official names; returns None on any failure"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = PLACES_API_URL,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_PLACES_API_KEY
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or settings.EXTERNAL_TIMEOUT_SECONDS
        self._transport = transport
        if not self.api_key:
            logger.warning("GOOGLE_PLACES_API_KEY is not set, place lookup is disabled")

    async def resolve_by_coordinates(self, latitude: float, longitude: float) -> Optional[str]:
        """Name of the closest known place within 50 m"""
        if not self.api_key:
            return None
        body = {
            "maxResultCount": 1,
            "locationRestriction": {
                "circle": {
                    "center": {"latitude": latitude, "longitude": longitude},
                    "radius": 50.0,
                }
            },
        }
        data = await self._request("POST", "/places:searchNearby", "places.displayName", json=body)
        if not data:
            return None
        places = data.get("places") or []
        if not places:
            return None
        return (places[0].get("displayName") or {}).get("text") or None

    async def resolve_by_id(self, place_id: str) -> Optional[OfficialPlace]:
        if not self.api_key or not place_id:
            return None
        data = await self._request("GET", f"/places/{place_id}", "displayName,location")
        if not data:
            return None
        name = (data.get("displayName") or {}).get("text")
        if not name:
            return None
        location = data.get("location") or {}
        return OfficialPlace(
            name=name,
            latitude=location.get("latitude"),
            longitude=location.get("longitude"),
        )

    async def _request(self, method: str, path: str, field_mask: str, json: Optional[dict] = None) -> Optional[dict]:
        headers = {
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": field_mask,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, f"{self.base_url}{path}", json=json, headers=headers)
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Google Places request {path} failed: {e}")
            return None
