"""
Enumerates candidate routes between a start stop and a target stop.

Algorithm:
  1. Reject a missing start/target (NOT_FOUND) before any traversal, and
     short-circuit to NOT_FOUND when networkx reports the target is not
     reachable at all.
  2. Depth-first search from the start, iterating each stop's connections
     in graph (load) order.  A stop is skipped if it is already on the
     current path, so every emitted route is a simple path and cyclic
     graphs terminate.  On backtrack the stop leaves the visited set and
     is available again to sibling branches.
  3. Reaching the target materializes a Route: totals are computed from
     the accumulated legs with compute_fare() and the leg durations.
  4. Two caps bound the work:
       max_depth  — no path grows beyond this many stops.
       max_routes — at most this many routes are kept.  Reaching the target
                    once more after that stops the whole search and flags
                    the result truncated; a search that exhausts every
                    simple path at exactly max_routes is not truncated.
                    This is a bounded exhaustive search, not a
                    shortest-path search.
  5. An optional cancellation token is checked before descending into
     each neighbour; once set, the search unwinds and reports CANCELLED,
     discarding any routes already found.

Milestones (start, truncation, completion) go to an optional observer;
this module does no I/O.
"""

from typing import Optional, Protocol

from config import RoutingSettings
from graph.builder import StopGraph
from graph.legs import VehicleLeg, leg_duration_minutes
from routing.fares import Passenger, PaymentMethod, compute_fare
from routing.observers import SearchObserver
from routing.results import Route, SearchResult, count_transfers


class CancellationToken(Protocol):
    """Anything with is_set(), e.g. threading.Event."""

    def is_set(self) -> bool: ...


class _SearchCancelled(Exception):
    """Internal unwind signal; never escapes enumerate_routes()."""


class _DepthFirstSearch:
    """
    Mutable state for one enumeration: the current path, its legs, the
    visited set and the routes found so far.  Created per call and never
    shared, so concurrent searches over one StopGraph cannot interfere.
    """

    __slots__ = (
        "graph", "target_id", "passenger", "payment_method", "settings",
        "cancel", "path", "legs", "visited", "routes", "truncated",
    )

    def __init__(
        self,
        graph: StopGraph,
        start_id: str,
        target_id: str,
        passenger: Passenger,
        payment_method: PaymentMethod,
        settings: RoutingSettings,
        cancel: Optional[CancellationToken],
    ) -> None:
        self.graph = graph
        self.target_id = target_id
        self.passenger = passenger
        self.payment_method = payment_method
        self.settings = settings
        self.cancel = cancel
        self.path: list[str] = [start_id]
        self.legs: list[VehicleLeg] = []
        self.visited: set[str] = {start_id}
        self.routes: list[Route] = []
        self.truncated = False

    def run(self) -> None:
        self._check_cancelled()
        self._expand(self.path[0])

    def _expand(self, stop_id: str) -> None:
        if stop_id == self.target_id:
            self._emit()
            return

        for conn in self.graph.connections_of(stop_id):
            if self.truncated:
                return
            next_id = conn.target_id
            if next_id in self.visited:
                continue
            if len(self.path) >= self.settings.max_depth:
                # Appending would exceed max_depth stops.
                return
            self._check_cancelled()

            self.path.append(next_id)
            self.legs.append(conn.leg)
            self.visited.add(next_id)
            try:
                self._expand(next_id)
            finally:
                self.visited.discard(next_id)
                self.legs.pop()
                self.path.pop()

    def _emit(self) -> None:
        if len(self.routes) >= self.settings.max_routes:
            # A route beyond the cap exists, so the candidate set is incomplete.
            self.truncated = True
            return
        legs = tuple(self.legs)
        self.routes.append(Route(
            stop_ids=tuple(self.path),
            legs=legs,
            total_fare=compute_fare(legs, self.passenger, self.payment_method, self.settings),
            total_duration_minutes=sum(leg_duration_minutes(leg) for leg in legs),
            transfer_count=count_transfers(legs),
        ))

    def _check_cancelled(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise _SearchCancelled


def enumerate_routes(
    graph: StopGraph,
    start_id: str,
    target_id: str,
    passenger: Passenger,
    payment_method: PaymentMethod,
    settings: Optional[RoutingSettings] = None,
    cancel: Optional[CancellationToken] = None,
    observer: Optional[SearchObserver] = None,
) -> SearchResult:
    """
    Return every simple route from start_id to target_id, up to the caps.

    Args:
        graph:          Snapshot (or request-local overlay) to search.
        start_id:       Origin stop id; may be a virtual node in the overlay.
        target_id:      Destination stop id.
        passenger:      Used for Bus/Tram discounts in route totals.
        payment_method: Used for the aggregate surcharge in route totals.
        settings:       max_depth / max_routes and fare tables.
        cancel:         Optional token checked before each descent.
        observer:       Optional milestone observer.

    Returns:
        SearchResult — OK with routes in discovery order (truncated=True if
        max_routes was hit), NOT_FOUND, INVALID_REQUEST (start == target),
        or CANCELLED.
    """
    settings = settings or RoutingSettings()

    if start_id not in graph:
        return SearchResult.not_found(f"Start stop '{start_id}' not found in graph.")
    if target_id not in graph:
        return SearchResult.not_found(f"Target stop '{target_id}' not found in graph.")
    if start_id == target_id:
        return SearchResult.invalid("Start and target stop must differ.")

    if observer is not None:
        observer.search_started(start_id, target_id)

    if not graph.can_reach(start_id, target_id):
        result = SearchResult.not_found(f"No path from '{start_id}' to '{target_id}'.")
        _report_completed(observer, result)
        return result

    search = _DepthFirstSearch(
        graph, start_id, target_id, passenger, payment_method, settings, cancel
    )
    try:
        search.run()
    except _SearchCancelled:
        result = SearchResult.cancelled()
        _report_completed(observer, result)
        return result

    if not search.routes:
        result = SearchResult.not_found(
            f"No path from '{start_id}' to '{target_id}' within {settings.max_depth} stops."
        )
    else:
        if search.truncated and observer is not None:
            observer.search_truncated(len(search.routes))
        result = SearchResult.found(search.routes, truncated=search.truncated)

    _report_completed(observer, result)
    return result


def _report_completed(observer: Optional[SearchObserver], result: SearchResult) -> None:
    if observer is not None:
        observer.search_completed(result.status.value, len(result.routes))
