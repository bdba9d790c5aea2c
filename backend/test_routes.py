from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

import routes
from conftest import ExaStub
from location_service import LocationSafetyService
from safety_service import AISafetyService
from search_service import UnifiedSearchService


@pytest.fixture
def stub():
    return ExaStub()


@pytest.fixture
def client(stub, clock):
    """API client wired to services with no search key configured."""
    search = UnifiedSearchService(api_key="", client=stub.client(), clock=clock)
    locations = LocationSafetyService(search, clock)
    safety = AISafetyService(search, locations, clock)

    routes.app.dependency_overrides[routes.get_search_service] = lambda: search
    routes.app.dependency_overrides[routes.get_location_service] = lambda: locations
    routes.app.dependency_overrides[routes.get_safety_service] = lambda: safety
    routes._rate_store.clear()
    yield TestClient(routes.app)
    routes.app.dependency_overrides.clear()
    routes._rate_store.clear()


def test_health_reports_degraded_provider(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["searchProvider"] == {"configured": False, "circuit": "closed", "cachedEntries": 0}
    assert data["classifier"] == "keyword"


def test_alerts_without_location_return_fallback_pair(client):
    response = client.post("/api/alerts", json={})
    assert response.status_code == 200
    data = response.json()
    assert [a["title"] for a in data["alerts"]] == ["General Travel Safety", "Health & Hygiene Reminder"]
    assert data["stats"]["total"] == 2


def test_alerts_for_destination(client, stub):
    response = client.post("/api/alerts", json={
        "destination": "Paris, France", "country": "France", "city": "Paris",
        "coordinates": {"lat": 48.8566, "lng": 2.3522},
    })
    assert response.status_code == 200
    alerts = response.json()["alerts"]
    assert 0 < len(alerts) <= 8
    assert stub.calls == 0


def test_insights(client):
    response = client.get("/api/insights", params={"destination": "Rome, Italy", "user_id": "u1"})
    assert response.status_code == 200
    assert response.json()["alerts"]


@pytest.mark.parametrize("path", ["/api/news", "/api/events", "/api/travel-safety"])
def test_empty_location_rejected(client, path):
    response = client.get(path, params={"location": "  "})
    assert response.status_code == 400


@pytest.mark.parametrize("path,fallback_id", [
    ("/api/news", "fallback_news_1"),
    ("/api/events", "fallback_event_1"),
    ("/api/travel-safety", "fallback_safety_1"),
    ("/api/scams", "fallback_scam_1"),
])
def test_search_endpoints_serve_fallbacks(client, path, fallback_id):
    response = client.get(path, params={"location": "Berlin"})
    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [fallback_id]


def test_safety_data_and_score(client):
    data = client.post("/api/safety-data", json={"country": "Germany", "city": "Berlin"})
    assert data.status_code == 200
    assert data.json()["safetyScore"] == 75

    score = client.post("/api/safety-score", json={"lat": 52.52, "lng": 13.405, "country": "Germany"})
    assert score.status_code == 200
    assert score.json()["riskLevel"] == "medium"


def test_safety_score_validates_body(client):
    response = client.post("/api/safety-score", json={"lat": "north"})
    assert response.status_code == 422


def test_user_location_lifecycle(client):
    body = {"lat": 52.52, "lng": 13.405, "country": "Germany", "city": "Berlin"}

    put = client.put("/api/users/u1/location", json=body)
    assert put.status_code == 200
    assert put.json()["changed"] is True
    assert client.put("/api/users/u1/location", json=body).json()["changed"] is False

    assert client.get("/api/users/u1/location").json()["city"] == "Berlin"
    assert client.get("/api/users/u1/safety-score").status_code == 200
    assert client.get("/api/users/u1/safety-data").status_code == 200
    assert client.get("/api/users/u1/emergency-info").json()["emergencyNumbers"] == ["112", "911"]
    assert client.get("/api/users/u1/tips").json()[0].startswith("Current safety score")
    assert isinstance(client.get("/api/users/u1/alerts").json(), list)
    assert isinstance(client.get("/api/users/u1/nearby-alerts", params={"radius_km": 3}).json(), list)

    assert client.delete("/api/users/u1/location").status_code == 200
    assert client.get("/api/users/u1/location").status_code == 404
    assert client.get("/api/users/u1/safety-score").status_code == 404


def test_clear_caches(client):
    response = client.delete("/api/cache")
    assert response.status_code == 200
    assert response.json() == {"status": "cleared", "expiredAlertEntries": 0}


def test_rate_limit(client):
    with patch.object(routes, "RATE_LIMIT", 2):
        assert client.get("/api/health").status_code == 200
        assert client.get("/api/health").status_code == 200
        response = client.get("/api/health")
    assert response.status_code == 429
    assert "Rate limit" in response.json()["detail"]
