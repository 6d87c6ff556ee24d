"""Pydantic models for geocoding results."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    """A validated latitude/longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Address(BaseModel):
    """Structured address details returned alongside a match."""

    model_config = ConfigDict(frozen=True)

    house_number: Optional[str] = None
    road: Optional[str] = None
    neighbourhood: Optional[str] = None
    suburb: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None


class GeocodeResult(BaseModel):
    """One successful resolution."""

    model_config = ConfigDict(frozen=True)

    coordinates: Coordinates
    display_name: str
    confidence: Optional[float] = None
    address: Optional[Address] = None
