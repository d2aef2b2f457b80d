"""
FastAPI application entry point.

On startup the network dataset (DATASET_PATH) is loaded into an immutable
StopGraph and wrapped in a RoutePlanner.  Every request shares that one
snapshot; /ingest/reload swaps in a freshly loaded one.

Endpoints (v1):
  GET  /routes?origin=<stop_id>|lat=<lat>&lon=<lon>&destination=<stop_id>
               &passenger=<general|student|senior>&payment=<cash|transit_card|credit_card>
               &criterion=<all|cheapest|fastest>
               (two or more routes also carry a comparison of the first two)
  GET  /stops?query=<name>
  GET  /stops/nearest?lat=<lat>&lon=<lon>
  GET  /health
  POST /ingest/reload
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Any, Literal, assert_never

from fastapi import Depends, FastAPI, HTTPException, Query, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader

from api.schemas import (
    HealthResponse,
    IngestResponse,
    NearestStopResult,
    RoutesResponse,
    StopResult,
)
from config import (
    API_HOST,
    API_PORT,
    CORS_ORIGINS,
    DATASET_PATH,
    INGEST_API_KEY,
    LOG_LEVEL,
    ROUTE_SEARCH_TIMEOUT_SECONDS,
)
from errors import DatasetError
from graph.builder import StopGraph
from graph.legs import BusLeg, TaxiLeg, TramLeg, TransferLeg, VehicleLeg, WalkLeg, leg_duration_minutes, leg_fare
from graph.loader import load_network
from graph.models import Coordinate, Stop
from routing.fares import Passenger, PassengerCategory, PaymentMethod
from routing.results import Route, SearchStatus
from routing.selector import RouteFilter, SortKey, compare_routes
from routing.service import Criterion, RoutePlanner, RouteRequest

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

_ingest_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Module-level planner (one immutable graph snapshot) and its load timestamp
_planner: RoutePlanner | None = None
_last_built_at: datetime | None = None

_STATUS_CODES = {
    SearchStatus.NOT_FOUND: 404,
    SearchStatus.INVALID_REQUEST: 422,
    SearchStatus.CANCELLED: 504,
}


def _require_ingest_key(key: str | None = Security(_ingest_key_header)) -> None:
    """
    Optional API-key guard for the ingest endpoint.

    If INGEST_API_KEY is not set the endpoint is open (local dev / testing).
    If it is set, the request must include the matching X-API-Key header.
    """
    if not INGEST_API_KEY:
        return  # no key configured → open
    if key != INGEST_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid or missing X-API-Key header.")


def build_planner() -> RoutePlanner:
    """Load the dataset, build the graph and cache a planner for it."""
    global _planner, _last_built_at
    graph, settings = load_network(DATASET_PATH)
    _planner = RoutePlanner(graph, settings)
    _last_built_at = datetime.utcnow()
    return _planner


def get_planner() -> RoutePlanner:
    """Return the cached planner. Raises if the dataset has not been loaded."""
    if _planner is None:
        raise RuntimeError("Network has not been loaded yet. Call build_planner() first.")
    return _planner


def _planner_dependency() -> RoutePlanner:
    try:
        return get_planner()
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        build_planner()
    except DatasetError as exc:
        logger.warning("Could not load network on startup: %s", exc)
    yield


app = FastAPI(
    title="Multi-modal Transit Route Planner",
    description="Bus, tram, taxi and walking itineraries with passenger-aware fares.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness + data-freshness check."""
    graph_built = False
    stops = 0
    connections = 0
    try:
        graph = get_planner().graph
        graph_built = True
        stops = len(graph)
        connections = graph.connection_count
    except RuntimeError:
        pass

    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "graph": {
            "stops": stops,
            "connections": connections,
            "graph_built": graph_built,
            "last_built_at": _last_built_at.isoformat() if _last_built_at else None,
            "dataset_path": str(DATASET_PATH),
        },
    }


@app.get("/stops", response_model=list[StopResult])
async def search_stops(
    query: str = Query(..., min_length=2, description="Stop name substring to search"),
    planner: RoutePlanner = Depends(_planner_dependency),
) -> list[StopResult]:
    """Search stops by name substring."""
    return [_stop_payload(s) for s in planner.graph.search(query, limit=20)]


@app.get("/stops/nearest", response_model=NearestStopResult)
async def nearest_stop(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    planner: RoutePlanner = Depends(_planner_dependency),
) -> NearestStopResult:
    """Closest stop to a coordinate, with its great-circle distance."""
    found = planner.graph.nearest_stop(Coordinate(lat=lat, lon=lon))
    if found is None:
        raise HTTPException(status_code=404, detail="The network has no stops.")
    stop, distance_km = found
    return {**_stop_payload(stop), "distance_km": round(distance_km, 3)}


@app.get("/routes", response_model=RoutesResponse)
async def get_routes(
    destination: str = Query(..., min_length=1, description="Destination stop_id"),
    origin: str | None = Query(None, min_length=1, description="Origin stop_id"),
    lat: float | None = Query(None, ge=-90, le=90, description="Origin latitude (instead of origin)"),
    lon: float | None = Query(None, ge=-180, le=180, description="Origin longitude (instead of origin)"),
    radius_km: float | None = Query(None, gt=0, description="Stop search radius around lat/lon"),
    passenger: PassengerCategory = Query(PassengerCategory.GENERAL),
    payment: PaymentMethod = Query(PaymentMethod.CASH),
    criterion: Criterion = Query(Criterion.ALL),
    sort: Literal["fare", "duration", "transfers", "stops", "none"] = Query("fare"),
    max_fare: float | None = Query(None, ge=0),
    max_minutes: int | None = Query(None, ge=0),
    max_transfers: int | None = Query(None, ge=0),
    exclude_taxi: bool = Query(False),
    walk_only: bool = Query(False),
    planner: RoutePlanner = Depends(_planner_dependency),
) -> RoutesResponse:
    """
    Return candidate itineraries from an origin stop (or a raw coordinate)
    to a destination stop, with fares for the given passenger and payment.
    """
    if origin is not None and (lat is not None or lon is not None):
        raise HTTPException(status_code=422, detail="Give either origin or lat/lon, not both.")
    if origin is None and (lat is None or lon is None):
        raise HTTPException(status_code=422, detail="origin or both lat and lon are required.")

    rider = Passenger.of(passenger, planner.settings)
    request = RouteRequest(
        target_stop_id=destination,
        passenger=rider,
        payment_method=payment,
        start_stop_id=origin,
        start_coordinate=Coordinate(lat=lat, lon=lon) if origin is None else None,
        search_radius_km=radius_km,
    )
    route_filter = RouteFilter(
        max_fare=max_fare,
        max_duration_minutes=max_minutes,
        max_transfers=max_transfers,
        exclude_taxi=exclude_taxi,
        walk_only=walk_only,
    )

    timeout = ROUTE_SEARCH_TIMEOUT_SECONDS or None
    if criterion is Criterion.CHEAPEST:
        result = await planner.get_cheapest_route(request, timeout=timeout, route_filter=route_filter)
    elif criterion is Criterion.FASTEST:
        result = await planner.get_shortest_route(request, timeout=timeout, route_filter=route_filter)
    else:
        sort_key = None if sort == "none" else SortKey(sort)
        result = await planner.get_all_routes(
            request, timeout=timeout, route_filter=route_filter, sort_key=sort_key
        )

    if not result.ok:
        raise HTTPException(status_code=_STATUS_CODES[result.status], detail=result.detail)

    surcharge = planner.settings.surcharge_for(payment.value)
    return {
        "criterion": criterion.value,
        "passenger": passenger.value,
        "payment": payment.value,
        "routes": [_route_payload(planner.graph, r, rider, surcharge) for r in result.routes],
        "truncated": result.truncated,
        "notice": (
            "Search limit reached; more itineraries may exist." if result.truncated else None
        ),
        "comparison": (
            asdict(compare_routes(*result.routes[:2])) if len(result.routes) >= 2 else None
        ),
    }


@app.post("/ingest/reload", response_model=IngestResponse)
async def reload_dataset(_: None = Depends(_require_ingest_key)) -> IngestResponse:
    """Re-read the network dataset and swap in a new graph snapshot."""
    try:
        planner = build_planner()
    except DatasetError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {
        "status": "ok",
        "message": (
            f"Network reloaded: {len(planner.graph)} stops, "
            f"{planner.graph.connection_count} connections."
        ),
    }


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _stop_payload(stop: Stop) -> dict[str, Any]:
    return {
        "stop_id": stop.id,
        "stop_name": stop.name,
        "mode": stop.mode.value,
        "lat": stop.coordinate.lat,
        "lon": stop.coordinate.lon,
        "terminal": stop.is_terminal,
    }


def _stop_name(graph: StopGraph, stop_id: str) -> str:
    stop = graph.lookup(stop_id)
    if stop is None:
        # Virtual start nodes live only in the request-local overlay.
        return "Current location"
    return stop.name


def _leg_payload(leg: VehicleLeg) -> dict[str, Any]:
    match leg:
        case BusLeg() | TramLeg() | TaxiLeg() | WalkLeg():
            return {"kind": leg.kind.value, "distance_km": round(leg.distance_km, 3)}
        case TransferLeg():
            return {"kind": leg.kind.value}
        case _:
            assert_never(leg)


def _route_payload(
    graph: StopGraph, route: Route, passenger: Passenger, surcharge: float
) -> dict[str, Any]:
    legs = []
    for (a, b), leg in zip(zip(route.stop_ids, route.stop_ids[1:]), route.legs):
        legs.append({
            **_leg_payload(leg),
            "from_stop_id": a,
            "to_stop_id": b,
            "from_stop_name": _stop_name(graph, a),
            "to_stop_name": _stop_name(graph, b),
            "fare": round(leg_fare(leg, passenger) * surcharge, 2),
            "duration_minutes": leg_duration_minutes(leg),
        })
    return {
        "stop_ids": list(route.stop_ids),
        "legs": legs,
        "total_fare": round(route.total_fare, 2),
        "total_duration_minutes": route.total_duration_minutes,
        "transfers": route.transfer_count,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=API_HOST, port=API_PORT)
