"""Tracing helpers for geocoding requests."""
from __future__ import annotations

import contextlib
import time
from typing import Any, Iterator

import structlog


def _logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger("bmltgeo.trace")


@contextlib.contextmanager
def span(*, name: str, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        _logger().debug("trace_span", span=name, elapsed_ms=elapsed_ms, **fields)


def log_retry(attempt: int, *, operation: str, retries_left: int, reason: str) -> None:
    _logger().warning(
        "geocode_retry",
        attempt=attempt,
        operation=operation,
        retries_left=retries_left,
        reason=reason,
    )


def log_request_result(*, url: str, status: int, bytes_read: int, elapsed_ms: int) -> None:
    _logger().info(
        "geocode_request",
        url=url,
        status=status,
        bytes=bytes_read,
        elapsed_ms=elapsed_ms,
    )
