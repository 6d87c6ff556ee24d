"""Single-request transport to the Nominatim geocoding provider."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional, Union

import httpx
import orjson

from bmltgeo.geocoding.errors import GeocodingError, NetworkError, RateLimitError, RequestTimeoutError
from bmltgeo.geocoding.models import Coordinates
from bmltgeo.geocoding.options import DEFAULT_BASE_URL, GeocodeOptions
from bmltgeo.observability.metrics import MetricsRegistry
from bmltgeo.observability.tracing import log_request_result

Payload = Union[Dict[str, Any], list, None]


class NominatimTransport:
    """Builds provider URLs and performs exactly one GET per call."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str = DEFAULT_BASE_URL,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._metrics = metrics or MetricsRegistry()

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    def search_url(self, query: str, options: GeocodeOptions) -> str:
        params: Dict[str, Union[str, int]] = {
            "q": query,
            "format": "json",
            "addressdetails": 1,
            "limit": 1,
            "dedupe": 1,
        }
        if options.country_code:
            params["countrycodes"] = options.country_code
        if options.viewbox is not None:
            params["viewbox"] = ",".join(str(value) for value in options.viewbox)
            if options.bounded:
                params["bounded"] = 1
        return str(httpx.URL(f"{self._base_url}/search", params=params))

    def reverse_url(self, coordinates: Coordinates) -> str:
        params = {
            "lat": str(coordinates.latitude),
            "lon": str(coordinates.longitude),
            "format": "json",
            "addressdetails": 1,
        }
        return str(httpx.URL(f"{self._base_url}/reverse", params=params))

    async def get_json(self, url: str, *, timeout: float, user_agent: str) -> Payload:
        """GET ``url`` and return the decoded JSON body.

        Raises ``RequestTimeoutError`` when ``timeout`` seconds pass without a
        response, ``RateLimitError`` on 429, ``GeocodingError`` on any other
        status >= 400 or an undecodable body, and ``NetworkError`` on
        transport failures. Other exceptions propagate unchanged.
        """
        self._metrics.incr("requests_sent")
        start = time.perf_counter()
        try:
            async with asyncio.timeout(timeout):
                response = await self._client.get(url, headers={"User-Agent": user_agent}, timeout=timeout)
        except (TimeoutError, httpx.TimeoutException) as exc:
            self._metrics.incr("timeouts")
            raise RequestTimeoutError(
                "Request timeout during geocoding",
                cause=exc,
                context={"url": url, "timeout": timeout},
            ) from exc
        except httpx.TransportError as exc:
            self._metrics.incr("network_errors")
            raise NetworkError(
                "Network error occurred during geocoding",
                cause=exc,
                context={"url": url},
            ) from exc

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        self._metrics.incr(f"http_{response.status_code // 100}xx")
        log_request_result(
            url=url,
            status=response.status_code,
            bytes_read=len(response.content),
            elapsed_ms=elapsed_ms,
        )

        if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
            self._metrics.incr("rate_limited")
            raise RateLimitError(
                "Rate limit exceeded for geocoding service",
                status_code=response.status_code,
                context={"url": url},
            )
        if response.status_code >= 400:
            raise GeocodingError(
                f"Geocoding service error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                context={"url": url},
            )

        try:
            return orjson.loads(response.content)
        except orjson.JSONDecodeError as exc:
            raise GeocodingError(
                "Malformed payload received from geocoding service",
                status_code=response.status_code,
                cause=exc,
                context={"reason": "malformed_payload", "url": url},
            ) from exc
