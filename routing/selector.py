"""
Picks routes out of an enumerated candidate set.

Selection keys (all ascending, first-encountered order as the final tie-break):
  cheapest : total_fare, total_duration_minutes, transfer_count
  fastest  : total_duration_minutes, total_fare, transfer_count
  all      : sorted by total_fare unless raw discovery order is requested

Also hosts the sort / filter / compare helpers used by the planner and API.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from graph.legs import LegKind
from routing.fares import MONEY_DECIMALS
from routing.results import Route, SearchResult


class SortKey(str, Enum):
    FARE = "fare"
    DURATION = "duration"
    TRANSFERS = "transfers"
    STOPS = "stops"


_SORT_KEYS: dict[SortKey, Callable[[Route], float]] = {
    SortKey.FARE: lambda r: r.total_fare,
    SortKey.DURATION: lambda r: r.total_duration_minutes,
    SortKey.TRANSFERS: lambda r: r.transfer_count,
    SortKey.STOPS: lambda r: len(r.stop_ids),
}


class RouteSelector:
    """Selections over a bounded candidate list; reports NOT_FOUND when it is empty."""

    def __init__(self, routes: Sequence[Route], truncated: bool = False) -> None:
        self._routes = tuple(routes)
        self._truncated = truncated

    @classmethod
    def from_result(cls, result: SearchResult) -> RouteSelector:
        return cls(result.routes, truncated=result.truncated)

    def cheapest(self) -> SearchResult:
        return self._pick(
            lambda r: (r.total_fare, r.total_duration_minutes, r.transfer_count)
        )

    def fastest(self) -> SearchResult:
        return self._pick(
            lambda r: (r.total_duration_minutes, r.total_fare, r.transfer_count)
        )

    def all(self, sort_key: SortKey | None = SortKey.FARE, descending: bool = False) -> SearchResult:
        """Every candidate, sorted by sort_key (None keeps discovery order)."""
        if not self._routes:
            return SearchResult.not_found("No candidate routes.")
        routes = list(self._routes) if sort_key is None else sort_routes(self._routes, sort_key, descending)
        return SearchResult.found(routes, truncated=self._truncated)

    def _pick(self, key: Callable[[Route], tuple]) -> SearchResult:
        if not self._routes:
            return SearchResult.not_found("No candidate routes.")
        # min() keeps the first of equal keys, i.e. discovery order.
        best = min(self._routes, key=key)
        return SearchResult.found([best], truncated=self._truncated)


def sort_routes(routes: Sequence[Route], key: SortKey, descending: bool = False) -> list[Route]:
    """Stable sort, so equal keys stay in discovery order in either direction."""
    return sorted(routes, key=_SORT_KEYS[key], reverse=descending)


@dataclass(frozen=True)
class RouteFilter:
    """Optional limits; None / False disables a criterion."""

    max_fare: float | None = None
    max_duration_minutes: int | None = None
    max_transfers: int | None = None
    exclude_taxi: bool = False
    walk_only: bool = False  # no Bus, Tram or Taxi legs


_MOTORIZED = frozenset({LegKind.BUS, LegKind.TRAM, LegKind.TAXI})


def filter_routes(routes: Sequence[Route], route_filter: RouteFilter) -> list[Route]:
    """Routes satisfying every active criterion of route_filter, order preserved."""
    def keep(route: Route) -> bool:
        if route_filter.max_fare is not None and route.total_fare > route_filter.max_fare:
            return False
        if (
            route_filter.max_duration_minutes is not None
            and route.total_duration_minutes > route_filter.max_duration_minutes
        ):
            return False
        if route_filter.max_transfers is not None and route.transfer_count > route_filter.max_transfers:
            return False
        kinds = set(route.leg_kinds)
        if route_filter.exclude_taxi and LegKind.TAXI in kinds:
            return False
        if route_filter.walk_only and kinds & _MOTORIZED:
            return False
        return True

    return [r for r in routes if keep(r)]


@dataclass(frozen=True)
class RouteComparison:
    duration_delta: int      # first − second, minutes; positive → first is slower
    fare_delta: float        # first − second; positive → first is dearer
    transfer_delta: int      # first − second
    summary: str


def compare_routes(first: Route, second: Route) -> RouteComparison:
    duration_delta = first.total_duration_minutes - second.total_duration_minutes
    fare_delta = round(first.total_fare - second.total_fare, MONEY_DECIMALS)
    transfer_delta = first.transfer_count - second.transfer_count

    first_wins: list[str] = []
    second_wins: list[str] = []
    for delta, label in (
        (duration_delta, "faster"),
        (fare_delta, "cheaper"),
        (transfer_delta, "fewer transfers"),
    ):
        if delta < 0:
            first_wins.append(label)
        elif delta > 0:
            second_wins.append(label)

    if first_wins and second_wins:
        summary = f"Route 1: {', '.join(first_wins)}. Route 2: {', '.join(second_wins)}."
    elif first_wins:
        summary = f"Route 1 preferred: {', '.join(first_wins)}."
    elif second_wins:
        summary = f"Route 2 preferred: {', '.join(second_wins)}."
    else:
        summary = "Both routes are equivalent."

    return RouteComparison(
        duration_delta=duration_delta,
        fare_delta=fare_delta,
        transfer_delta=transfer_delta,
        summary=summary,
    )
