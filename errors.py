"""
Exception hierarchy for the transit router.

Search outcomes are normally returned as SearchResult values; these
exceptions cover dataset/graph faults and callers that opt into raising
via SearchResult.raise_for_status().
"""


class TransitRouterError(Exception):
    """Base exception for the transit router."""


class DatasetError(TransitRouterError):
    """Raised when the network dataset cannot be read or parsed."""


class GraphBuildError(TransitRouterError):
    """Raised when stops and connections do not form a consistent snapshot."""


class RouteNotFoundError(TransitRouterError):
    """Raised when a start/target stop is missing or no path exists within bounds."""


class InvalidRouteRequestError(TransitRouterError):
    """Raised when a malformed request reaches the planner."""


class SearchCancelledError(TransitRouterError):
    """Raised when the caller aborted a search before it finished."""
