"""
Stop / connection value types for the in-memory network snapshot.

All types are frozen; a Stop's connections are a tuple kept in load order
so enumeration over them is reproducible.
"""

from dataclasses import dataclass, field
from enum import Enum

from graph.legs import VehicleLeg

VIRTUAL_STOP_PREFIX = "virtual:"


class StopMode(str, Enum):
    BUS = "bus"
    TRAM = "tram"
    OTHER = "other"  # virtual or mixed-mode nodes


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    def is_valid(self) -> bool:
        return -90.0 <= self.lat <= 90.0 and -180.0 <= self.lon <= 180.0


@dataclass(frozen=True)
class Connection:
    target_id: str
    leg: VehicleLeg


@dataclass(frozen=True)
class Stop:
    id: str
    name: str
    mode: StopMode
    coordinate: Coordinate
    is_terminal: bool = False
    connections: tuple[Connection, ...] = field(default_factory=tuple)

    @property
    def is_virtual(self) -> bool:
        return is_virtual_stop_id(self.id)


def is_virtual_stop_id(stop_id: str) -> bool:
    """True for ids minted by StopGraph.synthesize_virtual_node()."""
    return stop_id.startswith(VIRTUAL_STOP_PREFIX)
