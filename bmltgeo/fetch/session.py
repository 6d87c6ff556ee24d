"""Factories for HTTP clients used to reach the geocoding provider."""
from __future__ import annotations

from typing import Optional

import httpx


def build_client(
    *,
    user_agent: str,
    timeout: float,
    max_connections: int = 1,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` sized for the request queue."""
    limits = httpx.Limits(max_connections=max_connections, max_keepalive_connections=max_connections)
    return httpx.AsyncClient(
        headers={"User-Agent": user_agent, "Accept": "application/json"},
        limits=limits,
        timeout=timeout,
        transport=transport,
    )

