from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from medguide_core.config import DiscoveryConfig  # noqa: E402
from medguide_core.models import GeoPosition, LocationSource  # noqa: E402
from medguide_triage.catalog import build_default_registry  # noqa: E402

PITTSBURGH = (40.4406, -79.9959)


@pytest.fixture
def backend_module(monkeypatch):
    monkeypatch.delenv("MEDGUIDE_STATIC_LATITUDE", raising=False)
    monkeypatch.delenv("MEDGUIDE_STATIC_LONGITUDE", raising=False)
    # Keep CI deterministic; dedicated engine tests use a mock transport instead.
    monkeypatch.setenv("MEDGUIDE_DISABLE_EXTERNAL_QUERIES", "true")
    monkeypatch.setenv("MEDGUIDE_LOG_LEVEL", "WARNING")

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def origin() -> GeoPosition:
    return GeoPosition(
        latitude=PITTSBURGH[0],
        longitude=PITTSBURGH[1],
        accuracy_meters=10.0,
        source=LocationSource.GPS,
    )


@pytest.fixture
def fast_config() -> Callable[..., DiscoveryConfig]:
    def _make(**overrides: Any) -> DiscoveryConfig:
        values: dict[str, Any] = {
            "endpoint_list": (
                "https://overpass-a.test/api/interpreter",
                "https://overpass-b.test/api/interpreter",
                "https://overpass-c.test/api/interpreter",
            ),
            "per_endpoint_retry_count": 1,
            "per_attempt_timeout_ms": 1_000,
            "per_endpoint_budget_ms": 5_000,
            "backoff_base_ms": 1,
            "backoff_max_ms": 2,
            "global_search_timeout_ms": 5_000,
            "sensor_attempt_timeout_ms": 500,
            "location_max_wait_ms": 2_000,
            "debounce_ms": 20,
        }
        values.update(overrides)
        return DiscoveryConfig(**values)

    return _make


def overpass_element(
    element_id: int,
    *,
    name: str | None,
    lat: float | None,
    lon: float | None,
    element_type: str = "node",
    **tags: str,
) -> dict[str, Any]:
    element: dict[str, Any] = {"type": element_type, "id": element_id, "tags": dict(tags)}
    if name is not None:
        element["tags"]["name"] = name
    if element_type == "node":
        element["lat"] = lat
        element["lon"] = lon
    elif lat is not None and lon is not None:
        element["center"] = {"lat": lat, "lon": lon}
    return element


@pytest.fixture
def overpass_transport() -> Callable[..., httpx.MockTransport]:
    """Routes requests by host; each route is a list of responses consumed in order."""

    def _make(routes: dict[str, list[Any]], calls: list[str] | None = None) -> httpx.MockTransport:
        queues = {host: list(responses) for host, responses in routes.items()}

        def handler(request: httpx.Request) -> httpx.Response:
            host = request.url.host
            if calls is not None:
                calls.append(host)
            queue = queues.get(host)
            if not queue:
                raise AssertionError(f"Unexpected request to {host}")
            response = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(response, Exception):
                raise response
            if isinstance(response, int):
                return httpx.Response(response, json={"remark": "error"})
            return httpx.Response(200, json=response)

        return httpx.MockTransport(handler)

    return _make


@pytest.fixture
def make_element() -> Callable[..., dict[str, Any]]:
    return overpass_element
