from __future__ import annotations
from typing import Annotated, Literal
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# GET /stops
# ---------------------------------------------------------------------------

class StopResult(BaseModel):
    stop_id: str
    stop_name: str
    mode: Literal["bus", "tram", "other"]
    lat: float
    lon: float
    terminal: bool


class NearestStopResult(StopResult):
    distance_km: float


# ---------------------------------------------------------------------------
# GET /routes: building blocks
# ---------------------------------------------------------------------------

class _LegBase(BaseModel):
    from_stop_id: str
    to_stop_id: str
    from_stop_name: str
    to_stop_name: str
    fare: float
    duration_minutes: int


class BusLegOut(_LegBase):
    kind: Literal["bus"]
    distance_km: float


class TramLegOut(_LegBase):
    kind: Literal["tram"]
    distance_km: float


class TaxiLegOut(_LegBase):
    kind: Literal["taxi"]
    distance_km: float


class WalkLegOut(_LegBase):
    kind: Literal["walk"]
    distance_km: float


class TransferLegOut(_LegBase):
    kind: Literal["transfer"]


Leg = Annotated[
    BusLegOut | TramLegOut | TaxiLegOut | WalkLegOut | TransferLegOut,
    Field(discriminator="kind"),
]


class RouteOut(BaseModel):
    stop_ids: list[str]
    legs: list[Leg]
    total_fare: float
    total_duration_minutes: int
    transfers: int


class RouteComparisonOut(BaseModel):
    """First listed route minus the second; negative deltas favour the first."""

    duration_delta: int
    fare_delta: float
    transfer_delta: int
    summary: str


class RoutesResponse(BaseModel):
    criterion: Literal["all", "cheapest", "fastest"]
    passenger: Literal["general", "student", "senior"]
    payment: Literal["cash", "transit_card", "credit_card"]
    routes: list[RouteOut]
    truncated: bool
    notice: str | None = None
    comparison: RouteComparisonOut | None = None


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------

class GraphStats(BaseModel):
    stops: int
    connections: int
    graph_built: bool
    last_built_at: str | None
    dataset_path: str


class HealthResponse(BaseModel):
    status: Literal["ok"]
    timestamp: str
    graph: GraphStats


# ---------------------------------------------------------------------------
# POST /ingest/reload
# ---------------------------------------------------------------------------

class IngestResponse(BaseModel):
    status: Literal["ok"]
    message: str
