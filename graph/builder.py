"""
Builds the immutable stop graph that every route search runs against.

Graph structure:
  Nodes  — stop_id strings, attributed with {name, mode, lat, lon, terminal}
  Edges  — one per Connection, attributed with {leg, kind, order}
           (a MultiDiGraph, so parallel Bus/Tram edges between the same
           pair of stops are kept apart)

The networkx graph is frozen after construction and is only used for
structural queries (reachability, counts).  Enumeration order comes from
each Stop's connection tuple, which preserves dataset load order — the
adjacency dicts of a MultiDiGraph group parallel edges by neighbour and
would not.

Virtual nodes synthesized from raw coordinates never enter the shared
snapshot: with_virtual_node() returns a request-local overlay.
"""

import bisect
import logging
import math
import uuid
from collections import ChainMap
from typing import Iterable, Mapping, Optional

import networkx as nx

from config import EARTH_RADIUS_KM, RoutingSettings
from errors import GraphBuildError
from graph.legs import TaxiLeg, WalkLeg
from graph.models import (
    VIRTUAL_STOP_PREFIX,
    Connection,
    Coordinate,
    Stop,
    StopMode,
)

logger = logging.getLogger(__name__)


class StopGraph:
    """Read-only snapshot of stops and their ordered outgoing connections."""

    def __init__(self, stops: Iterable[Stop]) -> None:
        by_id: dict[str, Stop] = {}
        for stop in stops:
            if stop.id in by_id:
                raise GraphBuildError(f"Duplicate stop id '{stop.id}'.")
            if not stop.coordinate.is_valid():
                raise GraphBuildError(
                    f"Stop '{stop.id}' has out-of-range coordinate "
                    f"({stop.coordinate.lat}, {stop.coordinate.lon})."
                )
            by_id[stop.id] = stop

        for stop in by_id.values():
            for conn in stop.connections:
                if conn.target_id not in by_id:
                    raise GraphBuildError(
                        f"Stop '{stop.id}' connects to unknown stop '{conn.target_id}'."
                    )

        self._stops: Mapping[str, Stop] = by_id
        self._order: dict[str, int] = {stop_id: i for i, stop_id in enumerate(by_id)}
        self._G = nx.freeze(_to_multidigraph(by_id.values()))

        # Latitude-sorted index for radius queries
        self._by_lat: list[Stop] = sorted(by_id.values(), key=lambda s: s.coordinate.lat)
        self._lat_values: list[float] = [s.coordinate.lat for s in self._by_lat]

        logger.info(
            "Graph built: %d stops, %d connections.",
            self._G.number_of_nodes(),
            self._G.number_of_edges(),
        )

    @classmethod
    def _overlay(cls, base: "StopGraph", extra: Stop) -> "StopGraph":
        """Request-local view: `extra` resolves first, everything else from `base`."""
        view = cls.__new__(cls)
        view._stops = ChainMap({extra.id: extra}, base._stops)
        view._order = base._order
        view._G = base._G
        view._by_lat = base._by_lat
        view._lat_values = base._lat_values
        return view

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def __contains__(self, stop_id: object) -> bool:
        return stop_id in self._stops

    def __len__(self) -> int:
        return len(self._stops)

    def lookup(self, stop_id: str) -> Optional[Stop]:
        """Return the stop, or None if it is not in this snapshot."""
        return self._stops.get(stop_id)

    def connections_of(self, stop_id: str) -> tuple[Connection, ...]:
        """Outgoing connections in load order. Raises KeyError for unknown stops."""
        return self._stops[stop_id].connections

    def stops(self) -> list[Stop]:
        """Real stops in load order (virtual overlay nodes excluded)."""
        return [s for s in self._stops.values() if not s.is_virtual]

    @property
    def connection_count(self) -> int:
        return self._G.number_of_edges()

    def search(self, name_fragment: str, limit: int = 20) -> list[Stop]:
        """Case-insensitive substring match on stop names, in load order."""
        needle = name_fragment.casefold()
        return [s for s in self.stops() if needle in s.name.casefold()][:limit]

    def can_reach(self, start_id: str, target_id: str) -> bool:
        """
        Structural reachability (ignores enumeration bounds).

        A virtual start node is not part of the networkx graph, so it is
        reachable-to-target when any of its neighbours is.
        """
        if start_id == target_id:
            return True
        if start_id in self._G:
            return nx.has_path(self._G, start_id, target_id)
        return any(
            conn.target_id == target_id or nx.has_path(self._G, conn.target_id, target_id)
            for conn in self.connections_of(start_id)
        )

    # ------------------------------------------------------------------
    # Spatial queries
    # ------------------------------------------------------------------

    def stops_within(self, coordinate: Coordinate, radius_km: float) -> list[tuple[Stop, float]]:
        """
        Real stops within radius_km of coordinate, nearest first (ties in
        load order), each paired with its great-circle distance in km.

        Uses the latitude-sorted bisect index with a spherical bounding box:
          Δlat = r / R
          Δlon = asin(sin(r / R) / cos(lat))   (whole circle near the poles)
        The cheap longitude pre-filter gates the haversine call.
        """
        if not self._by_lat:
            return []

        angular = radius_km / EARTH_RADIUS_KM
        delta_lat = math.degrees(angular)
        cos_lat = math.cos(math.radians(coordinate.lat))
        if angular < math.pi / 2 and math.sin(angular) < cos_lat:
            delta_lon = math.degrees(math.asin(math.sin(angular) / cos_lat))
        else:
            delta_lon = 360.0

        lo = bisect.bisect_left(self._lat_values, coordinate.lat - delta_lat)
        hi = bisect.bisect_right(self._lat_values, coordinate.lat + delta_lat)

        found: list[tuple[Stop, float]] = []
        for stop in self._by_lat[lo:hi]:
            if delta_lon < 180.0 and _lon_gap(stop.coordinate.lon, coordinate.lon) > delta_lon:
                continue
            dist = haversine_km(
                coordinate.lat, coordinate.lon, stop.coordinate.lat, stop.coordinate.lon
            )
            if dist <= radius_km:
                found.append((stop, dist))

        found.sort(key=lambda pair: (pair[1], self._order[pair[0].id]))
        return found

    def nearest_stop(self, coordinate: Coordinate) -> Optional[tuple[Stop, float]]:
        """Closest real stop and its distance in km, or None for an empty graph."""
        best: Optional[tuple[Stop, float]] = None
        for stop in self.stops():
            dist = haversine_km(
                coordinate.lat, coordinate.lon, stop.coordinate.lat, stop.coordinate.lon
            )
            if best is None or dist < best[1]:
                best = (stop, dist)
        return best

    # ------------------------------------------------------------------
    # Virtual nodes
    # ------------------------------------------------------------------

    def synthesize_virtual_node(
        self,
        coordinate: Coordinate,
        settings: RoutingSettings,
        radius_km: Optional[float] = None,
    ) -> Stop:
        """
        Build a transient start node at a raw coordinate.

        Every real stop within the radius (default settings.virtual_node_radius_km)
        gets one outgoing connection: a Walk leg up to settings.max_walk_km,
        a Taxi leg beyond it.  Nothing is added to this graph — combine the
        returned stop with with_virtual_node() for the duration of one search.
        """
        radius = settings.virtual_node_radius_km if radius_km is None else radius_km
        connections = []
        for stop, dist in self.stops_within(coordinate, radius):
            if dist <= settings.max_walk_km:
                leg = WalkLeg(distance_km=dist, minutes_per_km=settings.walk_minutes_per_km)
            else:
                leg = TaxiLeg(
                    distance_km=dist,
                    opening_fee=settings.taxi_opening_fee,
                    per_km_rate=settings.taxi_per_km_rate,
                    average_speed_kmh=settings.taxi_average_speed_kmh,
                )
            connections.append(Connection(target_id=stop.id, leg=leg))

        node = Stop(
            id=f"{VIRTUAL_STOP_PREFIX}{uuid.uuid4().hex}",
            name="Current location",
            mode=StopMode.OTHER,
            coordinate=coordinate,
            connections=tuple(connections),
        )
        logger.debug(
            "Virtual node %s at (%.5f, %.5f) linked to %d stops within %.1f km.",
            node.id, coordinate.lat, coordinate.lon, len(connections), radius,
        )
        return node

    def with_virtual_node(self, node: Stop) -> "StopGraph":
        """Return a view of this graph that also resolves `node`."""
        if not node.is_virtual:
            raise GraphBuildError(f"Stop '{node.id}' is not a virtual node.")
        return StopGraph._overlay(self, node)


def _to_multidigraph(stops: Iterable[Stop]) -> nx.MultiDiGraph:
    G = nx.MultiDiGraph()
    stops = list(stops)
    for stop in stops:
        G.add_node(
            stop.id,
            name=stop.name,
            mode=stop.mode.value,
            lat=stop.coordinate.lat,
            lon=stop.coordinate.lon,
            terminal=stop.is_terminal,
        )
    for stop in stops:
        for order, conn in enumerate(stop.connections):
            G.add_edge(stop.id, conn.target_id, leg=conn.leg, kind=conn.leg.kind.value, order=order)
    return G


def _lon_gap(lon_a: float, lon_b: float) -> float:
    """Smallest absolute longitude difference, across the antimeridian."""
    return abs((lon_a - lon_b + 180.0) % 360.0 - 180.0)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two (lat, lon) points in kilometres."""
    R = EARTH_RADIUS_KM
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * R * math.atan2(math.sqrt(a), math.sqrt(1 - a))
