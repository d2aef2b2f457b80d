"""
Route planning facade.

RoutePlanner ties the pieces together for one request:
  1. Defensive request check (upstream validation is the API's job).
  2. A coordinate start becomes a virtual node in a request-local overlay;
     the shared StopGraph is never modified.
  3. enumerate_routes() over the graph (or overlay).
  4. Optional RouteFilter, then the requested selection criterion.

plan() is synchronous.  get_all_routes / get_shortest_route /
get_cheapest_route are thin async forwarders that run plan() in a worker
thread; a timeout sets the cancellation event and yields CANCELLED.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from config import RoutingSettings
from graph.builder import StopGraph
from graph.models import Coordinate
from routing.engine import CancellationToken, enumerate_routes
from routing.fares import Passenger, PaymentMethod
from routing.observers import LoggingSearchObserver, SearchObserver
from routing.results import SearchResult
from routing.selector import RouteFilter, RouteSelector, SortKey, filter_routes

logger = logging.getLogger(__name__)


class Criterion(str, Enum):
    ALL = "all"
    CHEAPEST = "cheapest"
    FASTEST = "fastest"


@dataclass(frozen=True)
class RouteRequest:
    """
    Exactly one of start_stop_id / start_coordinate must be set.
    search_radius_km overrides the virtual-node radius for coordinate starts.
    """

    target_stop_id: str
    passenger: Passenger
    payment_method: PaymentMethod
    start_stop_id: Optional[str] = None
    start_coordinate: Optional[Coordinate] = None
    search_radius_km: Optional[float] = None


def check_request(request: RouteRequest) -> Optional[str]:
    """Return a reason the request is malformed, or None if it is usable."""
    if (request.start_stop_id is None) == (request.start_coordinate is None):
        return "Exactly one of start_stop_id or start_coordinate is required."
    if not request.target_stop_id:
        return "target_stop_id is required."
    if request.start_stop_id is not None:
        if not request.start_stop_id:
            return "start_stop_id must not be empty."
        if request.start_stop_id == request.target_stop_id:
            return "Start and target stop must differ."
    if request.start_coordinate is not None and not request.start_coordinate.is_valid():
        return (
            f"Coordinate ({request.start_coordinate.lat}, {request.start_coordinate.lon}) "
            "is out of range."
        )
    if request.search_radius_km is not None and request.search_radius_km <= 0:
        return "search_radius_km must be positive."
    if not 0.0 <= request.passenger.discount_rate <= 1.0:
        return f"Discount rate {request.passenger.discount_rate} is outside [0, 1]."
    if not isinstance(request.payment_method, PaymentMethod):
        return f"Unknown payment method {request.payment_method!r}."
    return None


class RoutePlanner:
    """Runs route requests against one immutable StopGraph snapshot."""

    def __init__(
        self,
        graph: StopGraph,
        settings: Optional[RoutingSettings] = None,
        observer: Optional[SearchObserver] = None,
    ) -> None:
        self.graph = graph
        self.settings = settings or RoutingSettings()
        self.observer = observer if observer is not None else LoggingSearchObserver()

    def plan(
        self,
        request: RouteRequest,
        criterion: Criterion = Criterion.ALL,
        cancel: Optional[CancellationToken] = None,
        route_filter: Optional[RouteFilter] = None,
        sort_key: Optional[SortKey] = SortKey.FARE,
    ) -> SearchResult:
        """
        Run one request synchronously.

        Returns:
            SearchResult — for CHEAPEST/FASTEST a single route, for ALL every
            candidate sorted by sort_key (None keeps discovery order).
            INVALID_REQUEST if check_request() objects; NOT_FOUND if nothing
            survives enumeration and filtering; CANCELLED if `cancel` fired.
        """
        problem = check_request(request)
        if problem is not None:
            logger.warning("Rejected route request: %s", problem)
            return SearchResult.invalid(problem)

        graph = self.graph
        if request.start_coordinate is not None:
            virtual = graph.synthesize_virtual_node(
                request.start_coordinate, self.settings, radius_km=request.search_radius_km
            )
            if not virtual.connections:
                return SearchResult.not_found(
                    "No stops within the search radius of the start coordinate."
                )
            graph = graph.with_virtual_node(virtual)
            start_id = virtual.id
        else:
            start_id = request.start_stop_id

        result = enumerate_routes(
            graph,
            start_id,
            request.target_stop_id,
            request.passenger,
            request.payment_method,
            settings=self.settings,
            cancel=cancel,
            observer=self.observer,
        )
        if not result.ok:
            return result

        routes = result.routes
        if route_filter is not None:
            routes = tuple(filter_routes(routes, route_filter))
            if not routes:
                return SearchResult.not_found("No route satisfies the requested filters.")

        selector = RouteSelector(routes, truncated=result.truncated)
        if criterion is Criterion.CHEAPEST:
            return selector.cheapest()
        if criterion is Criterion.FASTEST:
            return selector.fastest()
        return selector.all(sort_key=sort_key)

    # ------------------------------------------------------------------
    # Async facade
    # ------------------------------------------------------------------

    async def get_all_routes(
        self,
        request: RouteRequest,
        timeout: Optional[float] = None,
        route_filter: Optional[RouteFilter] = None,
        sort_key: Optional[SortKey] = SortKey.FARE,
    ) -> SearchResult:
        return await self._run(request, Criterion.ALL, timeout, route_filter, sort_key)

    async def get_shortest_route(
        self,
        request: RouteRequest,
        timeout: Optional[float] = None,
        route_filter: Optional[RouteFilter] = None,
    ) -> SearchResult:
        return await self._run(request, Criterion.FASTEST, timeout, route_filter, None)

    async def get_cheapest_route(
        self,
        request: RouteRequest,
        timeout: Optional[float] = None,
        route_filter: Optional[RouteFilter] = None,
    ) -> SearchResult:
        return await self._run(request, Criterion.CHEAPEST, timeout, route_filter, None)

    async def _run(
        self,
        request: RouteRequest,
        criterion: Criterion,
        timeout: Optional[float],
        route_filter: Optional[RouteFilter],
        sort_key: Optional[SortKey],
    ) -> SearchResult:
        cancel = threading.Event()
        work = asyncio.to_thread(self.plan, request, criterion, cancel, route_filter, sort_key)
        try:
            return await asyncio.wait_for(work, timeout=timeout)
        except asyncio.TimeoutError:
            # The worker thread sees the event at its next descent and unwinds.
            cancel.set()
            logger.warning("Route search timed out after %.1fs; cancelled.", timeout)
            return SearchResult.cancelled(f"Search exceeded {timeout:.1f}s and was cancelled.")
