"""Public geocoding facade composing the queue, retries, transport and normalizer."""
from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional

import structlog

from bmltgeo.fetch.session import build_client
from bmltgeo.fetch.transport import NominatimTransport
from bmltgeo.geocoding.errors import BmltGeoError, ValidationError
from bmltgeo.geocoding.models import Coordinates, GeocodeResult
from bmltgeo.geocoding.options import DEFAULT_BASE_URL, GeocodeOptions, RateLimitOptions, options_from_settings
from bmltgeo.normalize.geo import normalize_reverse, normalize_search
from bmltgeo.observability.metrics import MetricsRegistry
from bmltgeo.observability.tracing import log_retry, span
from bmltgeo.orchestrator.queue import RequestQueue
from bmltgeo.orchestrator.retry import RetryPolicy

LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BatchOutcome:
    """Per-address result of ``GeocodingService.batch_geocode_detailed``."""

    address: str
    result: Optional[GeocodeResult] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class GeocodingService:
    """Rate-limited, retrying Nominatim client.

    Each service owns its request queue, so two services never share
    admission state. Calls go queued -> attempting -> (retrying)* -> resolved
    or failed; only the queue's counters outlive a call.
    """

    def __init__(
        self,
        options: Optional[GeocodeOptions] = None,
        rate_limit: Optional[RateLimitOptions] = None,
        *,
        transport: Optional[NominatimTransport] = None,
        metrics: Optional[MetricsRegistry] = None,
        base_url: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._options = options or GeocodeOptions()
        self._rate_limit = rate_limit or RateLimitOptions()
        self.metrics = metrics or MetricsRegistry()
        self._owns_client = transport is None
        if transport is None:
            client = build_client(
                user_agent=self._options.user_agent,
                timeout=self._options.timeout,
                max_connections=self._rate_limit.concurrency,
            )
            transport = NominatimTransport(client, base_url=base_url or DEFAULT_BASE_URL, metrics=self.metrics)
        self._transport = transport
        self._queue = RequestQueue.from_options(self._rate_limit)
        self._sleep = sleep

    @property
    def options(self) -> GeocodeOptions:
        return self._options

    async def __aenter__(self) -> "GeocodingService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client when this service created it."""
        if self._owns_client:
            await self._transport.client.aclose()

    async def geocode(self, address: str, **overrides: Any) -> GeocodeResult:
        """Resolve ``address`` to its best match.

        Raises the final attempt's ``BmltGeoError`` once retries are spent.
        """
        if not isinstance(address, str) or not address.strip():
            raise ValidationError("Address must be a non-empty string", context={"address": address})
        options = self._options.merged(**overrides)
        url = self._transport.search_url(address, options)

        async def attempt() -> GeocodeResult:
            payload = await self._transport.get_json(url, timeout=options.timeout, user_agent=options.user_agent)
            return normalize_search(payload, query=address)

        return await self._submit("geocode", attempt, options, address=address)

    async def reverse_geocode(self, coordinates: Coordinates, **overrides: Any) -> GeocodeResult:
        """Resolve ``coordinates`` to the place the provider reports there."""
        if not isinstance(coordinates, Coordinates):
            raise ValidationError(
                "Coordinates must be a Coordinates instance",
                context={"coordinates": repr(coordinates)},
            )
        options = self._options.merged(**overrides)
        url = self._transport.reverse_url(coordinates)

        async def attempt() -> GeocodeResult:
            payload = await self._transport.get_json(url, timeout=options.timeout, user_agent=options.user_agent)
            return normalize_reverse(payload, coordinates=coordinates)

        return await self._submit(
            "reverse_geocode",
            attempt,
            options,
            latitude=coordinates.latitude,
            longitude=coordinates.longitude,
        )

    async def batch_geocode(self, addresses: Iterable[str], **overrides: Any) -> List[GeocodeResult]:
        """Geocode every address, dropping the ones that fail.

        Failures are logged and omitted, so the result cannot tell a missing
        address from a service error; use ``batch_geocode_detailed`` for that.
        """
        outcomes = await self.batch_geocode_detailed(addresses, **overrides)
        for outcome in outcomes:
            if not outcome.ok:
                self.metrics.incr("batch_dropped")
                LOGGER.warning(
                    "batch_geocode_item_failed",
                    address=outcome.address,
                    error=str(outcome.error),
                )
        return [outcome.result for outcome in outcomes if outcome.result is not None]

    async def batch_geocode_detailed(self, addresses: Iterable[str], **overrides: Any) -> List[BatchOutcome]:
        addresses = list(addresses)

        async def one(address: str) -> BatchOutcome:
            try:
                return BatchOutcome(address=address, result=await self.geocode(address, **overrides))
            except Exception as exc:
                return BatchOutcome(address=address, error=exc)

        return list(await asyncio.gather(*(one(address) for address in addresses)))

    def stats(self) -> Dict[str, int]:
        return {"queue_size": self.queue_size(), "pending_count": self.pending_count()}

    def queue_size(self) -> int:
        return self._queue.size()

    def pending_count(self) -> int:
        return self._queue.pending_count()

    def clear_queue(self) -> None:
        """Drop queued calls that have not started.

        Callers awaiting a dropped call are never woken; in-flight calls
        finish normally.
        """
        self._queue.clear()

    def set_concurrency(self, concurrency: int) -> None:
        self._queue.set_concurrency(concurrency)

    async def _submit(
        self,
        operation: str,
        attempt: Callable[[], Awaitable[GeocodeResult]],
        options: GeocodeOptions,
        **fields: Any,
    ) -> GeocodeResult:
        policy = RetryPolicy(retries=options.retry_count)

        def on_failed_attempt(error: Exception, attempt_number: int, retries_left: int) -> None:
            self.metrics.incr("retries")
            log_retry(attempt_number, operation=operation, retries_left=retries_left, reason=str(error))

        async def run() -> GeocodeResult:
            with span(name=operation, **fields):
                return await policy.run(attempt, on_failed_attempt=on_failed_attempt, sleep=self._sleep)

        try:
            result = await self._queue.enqueue(run)
        except BmltGeoError as exc:
            if exc.context.get("reason") == "no_results":
                self.metrics.incr("no_results")
            raise
        self.metrics.incr("results_ok")
        return result


@contextlib.asynccontextmanager
async def open_geocoding_service(
    settings: Dict[str, Any],
    *,
    metrics: Optional[MetricsRegistry] = None,
) -> AsyncIterator[GeocodingService]:
    """Yield a service configured from loaded settings, closing it on exit."""
    options, rate_limit, provider = options_from_settings(settings)
    service = GeocodingService(options, rate_limit, metrics=metrics, base_url=provider.base_url)
    try:
        yield service
    finally:
        await service.aclose()
