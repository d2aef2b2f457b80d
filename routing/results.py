"""
Route values and search outcomes.

A Route is a simple path: stop_ids never repeat and there is exactly one
leg between each consecutive pair of stops.  SearchResult carries every
outcome explicitly — nothing in the search path raises for a missing
stop, an empty result or a cancellation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from errors import InvalidRouteRequestError, RouteNotFoundError, SearchCancelledError
from graph.legs import LegKind, TransferLeg, VehicleLeg


@dataclass(frozen=True)
class Route:
    stop_ids: tuple[str, ...]
    legs: tuple[VehicleLeg, ...]
    total_fare: float
    total_duration_minutes: int
    transfer_count: int

    @property
    def origin_id(self) -> str:
        return self.stop_ids[0]

    @property
    def destination_id(self) -> str:
        return self.stop_ids[-1]

    @property
    def leg_kinds(self) -> tuple[LegKind, ...]:
        return tuple(leg.kind for leg in self.legs)


def count_transfers(legs: tuple[VehicleLeg, ...] | list[VehicleLeg]) -> int:
    """Number of Transfer legs in a leg sequence."""
    return sum(1 for leg in legs if isinstance(leg, TransferLeg))


class SearchStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    INVALID_REQUEST = "invalid_request"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SearchResult:
    """
    Outcome of a search or a selection over its candidates.

    truncated is advisory: the search found a route beyond the enumeration
    cap, so more routes than the returned ones exist.  It travels with OK
    results and is never set on CANCELLED ones (partial routes are
    discarded on cancel).
    """

    status: SearchStatus
    routes: tuple[Route, ...] = ()
    truncated: bool = False
    detail: str | None = None

    @classmethod
    def found(cls, routes: list[Route] | tuple[Route, ...], truncated: bool = False) -> SearchResult:
        return cls(SearchStatus.OK, tuple(routes), truncated)

    @classmethod
    def not_found(cls, detail: str) -> SearchResult:
        return cls(SearchStatus.NOT_FOUND, detail=detail)

    @classmethod
    def invalid(cls, detail: str) -> SearchResult:
        return cls(SearchStatus.INVALID_REQUEST, detail=detail)

    @classmethod
    def cancelled(cls, detail: str = "Search cancelled by caller.") -> SearchResult:
        return cls(SearchStatus.CANCELLED, detail=detail)

    @property
    def ok(self) -> bool:
        return self.status is SearchStatus.OK

    @property
    def route(self) -> Route | None:
        """First route, for single-route selections."""
        return self.routes[0] if self.routes else None

    def raise_for_status(self) -> SearchResult:
        """Return self when OK, otherwise raise the matching TransitRouterError."""
        if self.status is SearchStatus.OK:
            return self
        if self.status is SearchStatus.NOT_FOUND:
            raise RouteNotFoundError(self.detail or "No route found.")
        if self.status is SearchStatus.INVALID_REQUEST:
            raise InvalidRouteRequestError(self.detail or "Invalid route request.")
        raise SearchCancelledError(self.detail or "Search cancelled.")
