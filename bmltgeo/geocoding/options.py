"""Validated per-call geocoding options and queue rate limits."""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from bmltgeo.geocoding.errors import ConfigurationError, ValidationError

DEFAULT_USER_AGENT = "bmlt-query-client/1.0.0"
DEFAULT_BASE_URL = "https://nominatim.openstreetmap.org"

Viewbox = Tuple[float, float, float, float]


class GeocodeOptions(BaseModel):
    """Options applied to a single geocode or reverse-geocode call.

    ``viewbox`` is ``(west, south, east, north)`` in decimal degrees and
    ``bounded`` restricts matches to it. ``timeout`` is in seconds.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    retry_count: int = Field(default=3, ge=0)
    timeout: float = Field(default=10.0, gt=0)
    user_agent: str = Field(default=DEFAULT_USER_AGENT, min_length=1)
    country_code: Optional[str] = "us"
    viewbox: Optional[Viewbox] = None
    bounded: bool = False

    @field_validator("country_code", mode="before")
    @classmethod
    def _blank_country_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("viewbox")
    @classmethod
    def _check_viewbox(cls, value: Optional[Viewbox]) -> Optional[Viewbox]:
        if value is None:
            return value
        west, south, east, north = value
        if not (-180 <= west <= 180 and -180 <= east <= 180):
            raise ValueError("viewbox longitudes must be within [-180, 180]")
        if not (-90 <= south <= 90 and -90 <= north <= 90):
            raise ValueError("viewbox latitudes must be within [-90, 90]")
        return value

    def merged(self, **overrides: Any) -> "GeocodeOptions":
        """Return a copy with ``overrides`` applied, re-validating the result."""
        if not overrides:
            return self
        try:
            return GeocodeOptions(**{**self.model_dump(), **overrides})
        except pydantic.ValidationError as exc:
            raise ValidationError(
                f"Invalid geocode options: {exc.error_count()} error(s)",
                cause=exc,
                context={"overrides": sorted(overrides)},
            ) from exc


class RateLimitOptions(BaseModel):
    """Admission limits for the request queue; ``interval`` is in seconds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    interval_cap: int = Field(default=1, ge=1)
    interval: float = Field(default=1.0, ge=0)
    concurrency: int = Field(default=1, ge=1)
    carryover_concurrency_count: bool = False


class ProviderSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = DEFAULT_BASE_URL

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


def options_from_settings(
    settings: Dict[str, Any],
) -> Tuple[GeocodeOptions, RateLimitOptions, ProviderSettings]:
    """Build validated option models from the ``[geocoding]``/``[rate_limit]`` tables."""
    geocoding = dict(settings.get("geocoding", {}))
    provider = {}
    if "base_url" in geocoding:
        provider["base_url"] = geocoding.pop("base_url")
    if "viewbox" in geocoding and geocoding["viewbox"] is not None:
        geocoding["viewbox"] = tuple(geocoding["viewbox"])
    try:
        return (
            GeocodeOptions(**geocoding),
            RateLimitOptions(**settings.get("rate_limit", {})),
            ProviderSettings(**provider),
        )
    except pydantic.ValidationError as exc:
        raise ConfigurationError(
            f"Invalid geocoding settings: {exc}",
            cause=exc,
            context={"sections": sorted(key for key in settings if key in {"geocoding", "rate_limit"})},
        ) from exc
