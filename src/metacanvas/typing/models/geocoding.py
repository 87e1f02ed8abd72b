"""Geocoding result models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class EnrichedAddress(BaseModel):
    """Postal address completed by the geocoder."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    street_address: str | None = Field(default=None, alias="streetAddress")
    housenumber: str | None = None
    postal_code: str | None = Field(default=None, alias="postalCode")
    address_locality: str | None = Field(default=None, alias="addressLocality")
    address_region: str | None = Field(default=None, alias="addressRegion")
    address_country: str | None = Field(default=None, alias="addressCountry")
    country_code: str | None = Field(default=None, alias="countryCode")
    district: str | None = None


class OsmData(BaseModel):
    """OpenStreetMap identifiers of a geocoding match."""

    model_config = ConfigDict(extra="forbid")

    osm_type: str | None = None
    osm_id: int | None = None
    osm_key: str | None = None
    osm_value: str | None = None
    type: str | None = None
    extent: list[float] | None = None


class GeocodingResult(BaseModel):
    """Coordinates and enriched address of one geocoded query."""

    model_config = ConfigDict(extra="forbid")

    latitude: float
    longitude: float
    enriched_address: EnrichedAddress
    osm_data: OsmData | None = None
