import inspect
from pathlib import Path
from typing import Callable, Dict, List

import httpx
import orjson
import pytest

from bmltgeo.fetch.session import build_client
from bmltgeo.fetch.transport import NominatimTransport
from bmltgeo.observability.log import configure_logging
from bmltgeo.observability.metrics import MetricsRegistry

FIXTURES = Path(__file__).parent / "fixtures" / "nominatim"


@pytest.fixture(autouse=True, scope="session")
def _logging():
    configure_logging(Path(__file__).resolve().parents[1] / "config" / "logging.yaml")


def load_fixture(name: str):
    return orjson.loads((FIXTURES / name).read_bytes())


class RecordingHandler:
    """Answers requests from a queue of canned responses and records them."""

    def __init__(self, responses: List[Callable[[httpx.Request], httpx.Response]]):
        self._responses = list(responses)
        self.requests: List[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        respond = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        result = respond(request)
        if inspect.isawaitable(result):
            result = await result
        return result


def json_response(payload, status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, content=orjson.dumps(payload), request=request)


def status_response(status: int) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, request=request)


def make_transport(handler, metrics: MetricsRegistry = None, base_url: str = "https://nominatim.test") -> NominatimTransport:
    client = build_client(
        user_agent="test-agent",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )
    return NominatimTransport(client, base_url=base_url, metrics=metrics)


@pytest.fixture()
def recorded_delays() -> List[float]:
    return []


@pytest.fixture()
def fake_sleep(recorded_delays):
    async def _sleep(seconds: float) -> None:
        recorded_delays.append(seconds)

    return _sleep


@pytest.fixture()
def settings(tmp_path) -> Dict[str, object]:
    return {
        "geocoding": {
            "base_url": "https://nominatim.test",
            "user_agent": "test-agent",
            "timeout": 5.0,
            "retry_count": 0,
            "country_code": "us",
        },
        "rate_limit": {
            "interval_cap": 10,
            "interval": 0.0,
            "concurrency": 2,
        },
    }
