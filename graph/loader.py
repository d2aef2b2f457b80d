"""
Loads the stop network from its JSON dataset.

Dataset shape (keys as published with the city network file):

  {
    "taxi": {"openingFee": 10.0, "costPerKm": 4.0},          # optional
    "duraklar": [
      {
        "id": "bus_otogar", "name": "Otogar (Bus)", "type": "bus",
        "lat": 40.78259, "lon": 29.94628, "sonDurak": true,
        "nextStops": [
          {"stopId": "bus_sekapark", "mesafe": 3.5, "sure": 10, "ucret": 3.0}
        ],
        "transfer": {"transferStopId": "tram_otogar",
                     "transferSure": 2, "transferUcret": 0.0}   # or null
      }
    ]
  }

nextStops become Bus or Tram legs according to the stop's type
(mesafe = km, sure = minutes, ucret = base fare).  A transfer becomes a
Transfer leg appended after the nextStops, preserving load order.
"""

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config import RoutingSettings
from errors import DatasetError, GraphBuildError
from graph.builder import StopGraph
from graph.legs import BusLeg, TramLeg, TransferLeg
from graph.models import Connection, Coordinate, Stop, StopMode

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Raw dataset records
# ---------------------------------------------------------------------------

class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NextStopRecord(_Record):
    stop_id: str = Field(alias="stopId")
    distance_km: float = Field(alias="mesafe", ge=0)
    minutes: int = Field(alias="sure", ge=0)
    fare: float = Field(alias="ucret", ge=0)


class TransferRecord(_Record):
    stop_id: str = Field(alias="transferStopId")
    minutes: int = Field(alias="transferSure", ge=0)
    fare: float = Field(alias="transferUcret", ge=0)


class StopRecord(_Record):
    id: str = Field(min_length=1)
    name: str
    type: Literal["bus", "tram"]
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    terminal: bool = Field(default=False, alias="sonDurak")
    next_stops: list[NextStopRecord] = Field(default_factory=list, alias="nextStops")
    transfer: Optional[TransferRecord] = None


class TaxiRecord(_Record):
    opening_fee: float = Field(alias="openingFee", ge=0)
    per_km_rate: float = Field(alias="costPerKm", ge=0)


class NetworkRecord(_Record):
    stops: list[StopRecord] = Field(alias="duraklar")
    taxi: Optional[TaxiRecord] = None


@dataclass(frozen=True)
class NetworkSnapshot:
    stops: list[Stop]
    settings: RoutingSettings


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_network(payload: Any, settings: Optional[RoutingSettings] = None) -> NetworkSnapshot:
    """
    Convert a decoded dataset into Stops with concrete legs.

    Taxi pricing from the dataset's optional "taxi" block overrides the
    corresponding fields of `settings` in the returned snapshot.

    Raises:
        DatasetError: If the payload does not match the dataset shape.
    """
    settings = settings or RoutingSettings()
    try:
        network = NetworkRecord.model_validate(payload)
    except ValidationError as exc:
        raise DatasetError(f"Malformed network dataset: {exc}") from exc

    if network.taxi is not None:
        settings = replace(
            settings,
            taxi_opening_fee=network.taxi.opening_fee,
            taxi_per_km_rate=network.taxi.per_km_rate,
        )

    stops = [_to_stop(record) for record in network.stops]
    return NetworkSnapshot(stops=stops, settings=settings)


def _to_stop(record: StopRecord) -> Stop:
    leg_type = BusLeg if record.type == "bus" else TramLeg
    connections = [
        Connection(
            target_id=nxt.stop_id,
            leg=leg_type(base_fare=nxt.fare, minutes=nxt.minutes, distance_km=nxt.distance_km),
        )
        for nxt in record.next_stops
    ]
    if record.transfer is not None:
        connections.append(Connection(
            target_id=record.transfer.stop_id,
            leg=TransferLeg(minutes=record.transfer.minutes, fee=record.transfer.fare),
        ))
    return Stop(
        id=record.id,
        name=record.name,
        mode=StopMode(record.type),
        coordinate=Coordinate(lat=record.lat, lon=record.lon),
        is_terminal=record.terminal,
        connections=tuple(connections),
    )


def load_network(
    path: Path, settings: Optional[RoutingSettings] = None
) -> tuple[StopGraph, RoutingSettings]:
    """
    Read the dataset at `path` and build its StopGraph.

    Raises:
        DatasetError: Missing/unreadable file, invalid JSON, wrong shape, or
                      stops/connections that do not form a consistent graph.
    """
    logger.info("Loading network dataset from %s", path)
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise DatasetError(f"Dataset file not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise DatasetError(f"Could not read dataset {path}: {exc}") from exc

    snapshot = parse_network(payload, settings)
    try:
        graph = StopGraph(snapshot.stops)
    except GraphBuildError as exc:
        raise DatasetError(f"Inconsistent dataset {path}: {exc}") from exc

    logger.info(
        "Loaded %d stops and %d connections from %s.",
        len(graph), graph.connection_count, path,
    )
    return graph, snapshot.settings
