from __future__ import annotations

import importlib
import time

import pytest
from fastapi.testclient import TestClient

PITTSBURGH = {"latitude": 40.4406, "longitude": -79.9959}


def _report(client, accuracy: float = 10.0):
    return client.post("/location", json={**PITTSBURGH, "accuracy_meters": accuracy, "source": "gps"})


def test_health_reports_cache_state(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["result_cache"]["size"] == 0
    assert body["location"]["has_location"] is False


def test_reported_location_feeds_nearby_search(client):
    reported = _report(client)
    assert reported.status_code == 200
    assert reported.json()["accepted"] is True
    assert reported.json()["position"]["accuracy_label"] == "GPS (Good Accuracy)"

    response = client.post("/facilities/nearby", json={"max_distance_meters": 5000, "limit": 3})
    assert response.status_code == 200
    body = response.json()
    # External queries are disabled under test, so the degraded dataset is served.
    assert body["degraded"] is True
    assert body["fallback_reason"] == "external_queries_disabled"
    assert 0 < len(body["facilities"]) <= 3
    distances = [facility["distance_meters"] for facility in body["facilities"]]
    assert distances == sorted(distances)
    assert body["origin"]["source"] == "cached"


def test_emergency_endpoint_only_returns_emergency_capable_facilities(client):
    _report(client)

    response = client.post("/facilities/emergency")
    assert response.status_code == 200
    facilities = response.json()["facilities"]
    assert facilities
    assert all(facility["emergency_services"] for facility in facilities)


def test_denied_permission_surfaces_as_forbidden(client):
    _report(client)
    assert client.post("/location/denied").json() == {"ok": True}

    response = client.post("/facilities/nearby?locale=ta", json={})
    assert response.status_code == 403
    body = response.json()
    assert body["error"] == "LOCATION_PERMISSION_DENIED"
    assert "அனுமதி" in body["message"]

    # A fresh report clears the denial.
    assert _report(client).json()["accepted"] is True
    assert client.post("/facilities/nearby", json={}).status_code == 200


def test_location_refresh_returns_the_latest_fix(client):
    _report(client, accuracy=12.0)

    response = client.post("/location/refresh")
    assert response.status_code == 200
    assert response.json()["latitude"] == PITTSBURGH["latitude"]
    assert response.json()["accuracy_meters"] == 12.0


def test_symptom_classification(client):
    response = client.post("/symptoms/classify", json={"text": "Chest pain and palpitations since morning"})
    assert response.status_code == 200
    body = response.json()
    assert body["urgency_level"] == "high"
    assert body["specializations"][0] == "cardiology"
    assert body["recommendations"]


def test_symptom_classification_in_tamil(client):
    response = client.post("/symptoms/classify", json={"text": "குழந்தைக்கு காய்ச்சல்", "locale": "ta"})
    assert response.status_code == 200
    body = response.json()
    assert body["urgency_level"] == "medium"
    assert "pediatrics" in body["specializations"]


def test_symptom_search_attaches_triage_to_results(client):
    _report(client)

    response = client.post("/symptoms/search", json={"text": "severe chest pain, can't breathe"})
    assert response.status_code == 200
    body = response.json()
    assert body["urgency_level"] == "emergency"
    assert body["specializations"][0]["id"] == "pulmonology"
    assert "108" in body["recommendations"][0]
    assert body["facilities"]
    assert all(facility["emergency_services"] for facility in body["facilities"])


def test_specializations_are_localized(client):
    response = client.get("/specializations", params={"locale": "ta"})
    assert response.status_code == 200
    by_id = {spec["id"]: spec for spec in response.json()["specializations"]}
    assert by_id["cardiology"]["name"] == "இதய மருத்துவம்"
    assert by_id["cardiology"]["canonical_name"] == "Cardiology"
    assert len(by_id) == 11


def test_unknown_specialization_is_rejected(client):
    response = client.post("/facilities/nearby", json={"specialization_id": "astrology"})
    assert response.status_code == 400
    assert "astrology" in response.json()["detail"]


def test_invalid_payloads_fail_validation(client):
    assert client.post("/location", json={**PITTSBURGH, "accuracy_meters": 0}).status_code == 422
    assert client.post("/location", json={"latitude": 91, "longitude": 0, "accuracy_meters": 5}).status_code == 422
    assert client.post("/facilities/nearby", json={"min_rating": 6}).status_code == 422
    assert client.post("/symptoms/classify", json={"text": ""}).status_code == 422


def test_clear_cache_drops_stored_results(client, backend_module):
    _report(client)
    client.post("/facilities/nearby", json={})
    # Degraded results are never stored, so seed an entry directly.
    backend_module.container.orchestrator.result_cache.put("seeded", object())

    response = client.delete("/cache")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "removed": 1}
    assert client.get("/health").json()["result_cache"]["size"] == 0


def test_static_provider_ignores_client_reports(monkeypatch, backend_module):
    monkeypatch.setenv("MEDGUIDE_STATIC_LATITUDE", "12.9716")
    monkeypatch.setenv("MEDGUIDE_STATIC_LONGITUDE", "77.5946")
    module = importlib.reload(backend_module)

    with TestClient(module.app) as test_client:
        assert _report(test_client).json() == {"accepted": False, "reason": "static_provider_configured"}
        body = test_client.post("/facilities/nearby", json={}).json()
        assert body["origin"]["latitude"] == 12.9716


def test_millisecond_timestamps_are_stored_as_seconds(client):
    stamp = time.time()

    in_ms = client.post("/location", json={**PITTSBURGH, "accuracy_meters": 10.0, "timestamp": stamp * 1000})
    in_seconds = client.post("/location", json={**PITTSBURGH, "accuracy_meters": 10.0, "timestamp": stamp + 1})

    assert in_ms.json()["position"]["timestamp"] == pytest.approx(stamp)
    assert in_seconds.json()["position"]["timestamp"] == pytest.approx(stamp + 1)


def test_open_now_and_language_narrow_before_the_limit(client):
    _report(client)

    body = client.post(
        "/facilities/nearby",
        json={"limit": 1, "open_now": True, "language": "english"},
    ).json()

    assert len(body["facilities"]) == 1
    assert "English" in body["facilities"][0]["languages"]
    assert client.post("/facilities/nearby", json={"language": "klingon"}).json()["facilities"] == []
