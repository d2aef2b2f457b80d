"""
Integration tests for API endpoints.

The FastAPI lifespan loads the sample city network through a patched
load_network(), so no dataset file is read.  The module-level planner is
reset around every test, so tests are fully isolated.
"""

import pytest
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from config import RoutingSettings
from errors import DatasetError
from graph.builder import StopGraph
from routing.results import SearchResult


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def app(monkeypatch):
    import api.main

    monkeypatch.setattr(api.main, "_planner", None)
    monkeypatch.setattr(api.main, "_last_built_at", None)
    return api.main.app


@pytest.fixture
def client(app, city):
    """TestClient whose startup load returns the sample city network."""
    with patch("api.main.load_network", return_value=city):
        with TestClient(app, raise_server_exceptions=True) as c:
            yield c


@pytest.fixture
def unloaded_client(app):
    """TestClient whose startup load fails, leaving no planner."""
    with patch("api.main.load_network", side_effect=DatasetError("Dataset file not found: x")):
        with TestClient(app, raise_server_exceptions=True) as c:
            yield c


ROUTE = {"origin": "bus_otogar", "destination": "bus_umuttepe"}


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------

class TestHealth:
    def test_returns_200(self, client):
        assert client.get("/health").status_code == 200

    def test_reports_graph_stats(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["graph"]["graph_built"] is True
        assert body["graph"]["stops"] == 5
        assert body["graph"]["connections"] == 6
        assert body["graph"]["last_built_at"] is not None

    def test_healthy_without_graph(self, unloaded_client):
        body = unloaded_client.get("/health").json()
        assert body["status"] == "ok"
        assert body["graph"]["graph_built"] is False
        assert body["graph"]["last_built_at"] is None


# ---------------------------------------------------------------------------
# GET /stops
# ---------------------------------------------------------------------------

class TestStops:
    def test_search_by_name(self, client):
        body = client.get("/stops", params={"query": "sekapark"}).json()
        assert {s["stop_id"] for s in body} == {"bus_sekapark", "tram_sekapark"}

    def test_result_shape(self, client):
        stop = client.get("/stops", params={"query": "Otogar"}).json()[0]
        assert stop == {
            "stop_id": "bus_otogar",
            "stop_name": "Otogar (Bus)",
            "mode": "bus",
            "lat": pytest.approx(40.78259),
            "lon": pytest.approx(29.94628),
            "terminal": True,
        }

    def test_no_match_is_empty(self, client):
        assert client.get("/stops", params={"query": "zzz"}).json() == []

    def test_query_too_short(self, client):
        assert client.get("/stops", params={"query": "s"}).status_code == 422

    def test_unavailable_without_graph(self, unloaded_client):
        resp = unloaded_client.get("/stops", params={"query": "sekapark"})
        assert resp.status_code == 503


class TestNearestStop:
    def test_closest_stop_with_distance(self, client):
        body = client.get("/stops/nearest", params={"lat": 40.7825, "lon": 29.9462}).json()
        assert body["stop_id"] == "bus_otogar"
        assert body["stop_name"] == "Otogar (Bus)"
        assert body["distance_km"] == pytest.approx(0.01, abs=0.01)

    def test_between_stops(self, client):
        # Just south of Sekapark: the tram platform is slightly closer.
        body = client.get("/stops/nearest", params={"lat": 40.7630, "lon": 29.9384}).json()
        assert body["stop_id"] == "tram_sekapark"

    def test_coordinate_required(self, client):
        assert client.get("/stops/nearest", params={"lat": 40.0}).status_code == 422

    def test_out_of_range(self, client):
        assert client.get("/stops/nearest", params={"lat": 40.0, "lon": 200}).status_code == 422

    def test_empty_network_is_404(self, app):
        with patch("api.main.load_network", return_value=(StopGraph([]), RoutingSettings())):
            with TestClient(app) as c:
                resp = c.get("/stops/nearest", params={"lat": 0.0, "lon": 0.0})
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# GET /routes
# ---------------------------------------------------------------------------

class TestRoutesFromStop:
    def test_all_routes_sorted_by_fare(self, client):
        resp = client.get("/routes", params=ROUTE)
        assert resp.status_code == 200
        body = resp.json()
        assert body["criterion"] == "all"
        assert [r["total_fare"] for r in body["routes"]] == [5.0, 6.0]
        assert body["truncated"] is False
        assert body["notice"] is None

    def test_leg_details(self, client):
        route = client.get("/routes", params=ROUTE).json()["routes"][0]
        assert [leg["kind"] for leg in route["legs"]] == ["bus", "transfer", "tram", "transfer"]
        first = route["legs"][0]
        assert first["from_stop_name"] == "Otogar (Bus)"
        assert first["to_stop_id"] == "bus_sekapark"
        assert first["distance_km"] == pytest.approx(3.5)
        assert first["fare"] == pytest.approx(3.0)
        assert "distance_km" not in route["legs"][1]
        assert route["transfers"] == 2
        assert route["total_duration_minutes"] == 23

    def test_cheapest_for_student_by_credit_card(self, client):
        params = {**ROUTE, "criterion": "cheapest", "passenger": "student", "payment": "credit_card"}
        body = client.get("/routes", params=params).json()
        assert len(body["routes"]) == 1
        route = body["routes"][0]
        assert route["total_fare"] == pytest.approx(3.125, abs=0.01)
        # Per-leg fares include the surcharge: 3.0 × 0.5 × 1.25
        assert route["legs"][0]["fare"] == pytest.approx(1.88, abs=0.01)

    def test_first_two_routes_compared(self, client):
        comparison = client.get("/routes", params=ROUTE).json()["comparison"]
        # Tram route (5.0, 23 min, 2 transfers) against bus route (6.0, 18 min, 0)
        assert comparison == {
            "duration_delta": 5,
            "fare_delta": -1.0,
            "transfer_delta": 2,
            "summary": "Route 1: cheaper. Route 2: faster, fewer transfers.",
        }

    def test_single_route_has_no_comparison(self, client):
        body = client.get("/routes", params={**ROUTE, "criterion": "cheapest"}).json()
        assert body["comparison"] is None

    def test_fastest(self, client):
        body = client.get("/routes", params={**ROUTE, "criterion": "fastest"}).json()
        assert body["routes"][0]["stop_ids"] == ["bus_otogar", "bus_sekapark", "bus_umuttepe"]

    def test_sort_by_duration(self, client):
        body = client.get("/routes", params={**ROUTE, "sort": "duration"}).json()
        assert [r["total_duration_minutes"] for r in body["routes"]] == [18, 23]

    def test_unsorted_keeps_discovery_order(self, client):
        body = client.get("/routes", params={**ROUTE, "sort": "none"}).json()
        assert [len(r["stop_ids"]) for r in body["routes"]] == [3, 5]

    def test_max_transfers_filter(self, client):
        body = client.get("/routes", params={**ROUTE, "max_transfers": 0}).json()
        assert len(body["routes"]) == 1
        assert body["routes"][0]["transfers"] == 0

    def test_filter_excluding_everything_is_404(self, client):
        resp = client.get("/routes", params={**ROUTE, "walk_only": True})
        assert resp.status_code == 404

    def test_unknown_destination_is_404(self, client):
        resp = client.get("/routes", params={"origin": "bus_otogar", "destination": "nowhere"})
        assert resp.status_code == 404
        assert "nowhere" in resp.json()["detail"]

    def test_same_origin_and_destination_is_422(self, client):
        resp = client.get("/routes", params={"origin": "bus_otogar", "destination": "bus_otogar"})
        assert resp.status_code == 422

    def test_truncated_notice(self, client):
        truncated = SearchResult.found([], truncated=True)
        with patch("api.main.RoutePlanner.get_all_routes", new=AsyncMock(return_value=truncated)):
            body = client.get("/routes", params=ROUTE).json()
        assert body["truncated"] is True
        assert "limit" in body["notice"]

    def test_timeout_is_504(self, client):
        cancelled = SearchResult.cancelled("Search exceeded 10.0s and was cancelled.")
        with patch("api.main.RoutePlanner.get_all_routes", new=AsyncMock(return_value=cancelled)):
            resp = client.get("/routes", params=ROUTE)
        assert resp.status_code == 504


class TestRoutesFromCoordinate:
    OTOGAR = {"lat": 40.78259, "lon": 29.94628, "destination": "bus_umuttepe"}

    def test_walk_to_nearby_stop(self, client):
        params = {**self.OTOGAR, "radius_km": 0.5, "criterion": "cheapest"}
        route = client.get("/routes", params=params).json()["routes"][0]
        assert route["stop_ids"][0].startswith("virtual:")
        first = route["legs"][0]
        assert first["kind"] == "walk"
        assert first["from_stop_name"] == "Current location"
        assert first["to_stop_id"] == "bus_otogar"
        assert route["total_fare"] == pytest.approx(5.0)

    def test_exclude_taxi(self, client):
        body = client.get("/routes", params={**self.OTOGAR, "exclude_taxi": True}).json()
        kinds = {leg["kind"] for r in body["routes"] for leg in r["legs"]}
        assert "taxi" not in kinds

    def test_no_stop_nearby_is_404(self, client):
        resp = client.get("/routes", params={"lat": 0.0, "lon": 0.0, "destination": "bus_umuttepe"})
        assert resp.status_code == 404


class TestRoutesValidation:
    def test_origin_and_coordinate_together(self, client):
        resp = client.get("/routes", params={**ROUTE, "lat": 40.0, "lon": 29.0})
        assert resp.status_code == 422

    def test_missing_origin(self, client):
        assert client.get("/routes", params={"destination": "bus_umuttepe"}).status_code == 422

    def test_half_a_coordinate(self, client):
        resp = client.get("/routes", params={"lat": 40.0, "destination": "bus_umuttepe"})
        assert resp.status_code == 422

    @pytest.mark.parametrize("params", [
        {"passenger": "pensioner"},
        {"payment": "cheque"},
        {"criterion": "scenic"},
        {"sort": "colour"},
        {"max_fare": -1},
    ])
    def test_bad_query_values(self, client, params):
        assert client.get("/routes", params={**ROUTE, **params}).status_code == 422

    def test_out_of_range_latitude(self, client):
        resp = client.get("/routes", params={"lat": 91, "lon": 0, "destination": "bus_umuttepe"})
        assert resp.status_code == 422

    def test_unavailable_without_graph(self, unloaded_client):
        assert unloaded_client.get("/routes", params=ROUTE).status_code == 503


# ---------------------------------------------------------------------------
# POST /ingest/reload
# ---------------------------------------------------------------------------

class TestReload:
    def test_reload_rebuilds_planner(self, client, city):
        with patch("api.main.load_network", return_value=city) as mock_load:
            resp = client.post("/ingest/reload")
        assert resp.status_code == 200
        assert resp.json() == {
            "status": "ok",
            "message": "Network reloaded: 5 stops, 6 connections.",
        }
        mock_load.assert_called_once()

    def test_reload_failure_is_409(self, client):
        with patch("api.main.load_network", side_effect=DatasetError("Malformed network dataset")):
            resp = client.post("/ingest/reload")
        assert resp.status_code == 409
        assert "Malformed" in resp.json()["detail"]

    def test_reload_recovers_unloaded_service(self, unloaded_client, city):
        with patch("api.main.load_network", return_value=city):
            assert unloaded_client.post("/ingest/reload").status_code == 200
        assert unloaded_client.get("/stops", params={"query": "sekapark"}).status_code == 200

    def test_key_required_when_configured(self, client):
        with patch("api.main.INGEST_API_KEY", "secret"):
            assert client.post("/ingest/reload").status_code == 401
            assert client.post("/ingest/reload", headers={"X-API-Key": "wrong"}).status_code == 401
