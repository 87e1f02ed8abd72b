"""Photon-compatible geocoding client."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import httpx

from metacanvas import logger
from metacanvas.exceptions import GeocodingError
from metacanvas.typing.models import EnrichedAddress, GeocodingResult, OsmData

if TYPE_CHECKING:
    from metacanvas.settings import Settings

_ADDRESS_KEYS = ("streetAddress", "postalCode", "addressLocality", "addressRegion", "addressCountry")


def address_query(address: dict[str, Any]) -> str | None:
    """Join the populated address components into a free-text query."""
    parts = [str(address[key]).strip() for key in _ADDRESS_KEYS if address.get(key)]
    query = ", ".join(part for part in parts if part)
    return query or None


class PhotonGeocoder:
    """Resolve postal addresses to coordinates."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        """Initialize geocoder.

        Args:
            settings (Settings): Runtime settings.
            client (httpx.AsyncClient | None): HTTP client; defaults to the
                settings-owned geocoding client.
        """
        self._settings = settings
        self._client = client

    async def _search(self, query: str) -> dict[str, Any]:
        client = self._client or self._settings.select_async_httpx_client("geocoding")
        if client is None:
            raise GeocodingError(query=query, message="httpx clients are not initialized in settings")

        params = {"q": query, "lang": self._settings.geocoding_language, "limit": 1}
        try:
            response = await client.get(self._settings.geocoding_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise GeocodingError(query=query, message=f"Geocoding request failed: {exc}") from exc
        except ValueError as exc:
            raise GeocodingError(query=query, message="Geocoding endpoint answered with invalid JSON") from exc
        if not isinstance(payload, dict):
            raise GeocodingError(query=query, message="Geocoding endpoint answered with an unexpected payload")
        return payload

    async def geocode_address(self, address: dict[str, Any]) -> GeocodingResult | None:
        """Geocode a postal address.

        Args:
            address (dict[str, Any]): Schema.org `PostalAddress`-like mapping.

        Returns:
            GeocodingResult | None: First match, None when nothing was found or
            the endpoint failed.
        """
        query = address_query(address)
        if query is None:
            logger.info("Geocoding skipped, address has no components")
            return None

        try:
            payload = await self._search(query)
        except GeocodingError as exc:
            logger.warning("Geocoding failed", extra={"query": exc.query, "error": exc.message})
            return None

        features = payload.get("features") or []
        if not features:
            logger.info("No geocoding match", extra={"query": query})
            return None

        feature = features[0]
        coordinates = (feature.get("geometry") or {}).get("coordinates") or []
        if len(coordinates) < 2:  # noqa: PLR2004
            logger.warning("Geocoding match has no coordinates", extra={"query": query})
            return None

        props = feature.get("properties") or {}
        return GeocodingResult(
            latitude=coordinates[1],
            longitude=coordinates[0],
            enriched_address=EnrichedAddress(
                street_address=props.get("street") or address.get("streetAddress"),
                housenumber=props.get("housenumber"),
                postal_code=props.get("postcode") or address.get("postalCode"),
                address_locality=props.get("city") or address.get("addressLocality"),
                address_region=props.get("state") or address.get("addressRegion"),
                address_country=props.get("country") or address.get("addressCountry"),
                country_code=props.get("countrycode") or address.get("addressCountry"),
                district=props.get("district"),
            ),
            osm_data=OsmData(
                osm_type=props.get("osm_type"),
                osm_id=props.get("osm_id"),
                osm_key=props.get("osm_key"),
                osm_value=props.get("osm_value"),
                type=props.get("type"),
                extent=props.get("extent"),
            ),
        )

    async def geocode_place(self, place: Any) -> Any:
        """Add `geo` coordinates and an enriched address to a place.

        Args:
            place (Any): Schema.org `Place`-like mapping with an `address`.

        Returns:
            Any: Enriched copy, or the input unchanged when geocoding fails.
        """
        if not isinstance(place, dict) or not isinstance(place.get("address"), dict):
            return place

        result = await self.geocode_address(place["address"])
        if result is None:
            return place

        enriched = result.enriched_address
        street = enriched.street_address or place["address"].get("streetAddress")
        if enriched.housenumber and enriched.street_address:
            street = f"{enriched.street_address} {enriched.housenumber}"

        address = {
            "@type": "PostalAddress",
            **place["address"],
            **enriched.model_dump(by_alias=True, exclude_none=True),
        }
        if street:
            address["streetAddress"] = street

        return {
            **place,
            "geo": {"@type": "GeoCoordinates", "latitude": result.latitude, "longitude": result.longitude},
            "address": address,
        }

    async def geocode_locations(self, locations: list[Any]) -> list[Any]:
        """Geocode every `Place` with an address; other entries pass through."""
        if not locations:
            return locations

        async def _one(location: Any) -> Any:
            if isinstance(location, dict) and location.get("@type") == "Place" and location.get("address"):
                return await self.geocode_place(location)
            return location

        geocoded = await asyncio.gather(*[_one(location) for location in locations])
        logger.info(
            "Locations geocoded",
            extra={
                "geocoded": sum(1 for item in geocoded if isinstance(item, dict) and "geo" in item),
                "total": len(locations),
            },
        )
        return list(geocoded)
