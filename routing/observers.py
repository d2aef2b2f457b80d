"""Search milestone observers. The enumerator reports to one; it never logs itself."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class SearchObserver(Protocol):
    def search_started(self, start_id: str, target_id: str) -> None: ...

    def search_truncated(self, route_count: int) -> None: ...

    def search_completed(self, status: str, route_count: int) -> None: ...


class LoggingSearchObserver:
    """Writes search milestones to the standard logger."""

    def search_started(self, start_id: str, target_id: str) -> None:
        logger.info("Route search started: %s → %s.", start_id, target_id)

    def search_truncated(self, route_count: int) -> None:
        logger.warning(
            "Route search truncated at %d routes; more itineraries may exist.", route_count
        )

    def search_completed(self, status: str, route_count: int) -> None:
        logger.info("Route search finished: status=%s, %d routes.", status, route_count)
