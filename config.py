from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping
from dotenv import load_dotenv
import os

load_dotenv()

BASE_DIR = Path(__file__).parent

# Data directory (gitignored)
DATA_DIR = BASE_DIR / "data"

# Network dataset (stops, line connections, transfer edges)
DATASET_PATH: Path = Path(os.getenv("DATASET_PATH", str(DATA_DIR / "network.json")))

# API
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))
CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
INGEST_API_KEY: str = os.getenv("INGEST_API_KEY", "")  # empty → /ingest/reload is open
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
ROUTE_SEARCH_TIMEOUT_SECONDS: float = float(os.getenv("ROUTE_SEARCH_TIMEOUT_SECONDS", "10"))

# Enumeration bounds
MAX_DFS_DEPTH: int = int(os.getenv("MAX_DFS_DEPTH", "50"))
# The search recurses once per stop, so depth stays well under the interpreter limit.
MAX_DFS_DEPTH_CEILING = 500
MAX_ROUTES: int = int(os.getenv("MAX_ROUTES", "100"))

# Taxi
TAXI_OPENING_FEE: float = float(os.getenv("TAXI_OPENING_FEE", "10.0"))
TAXI_PER_KM_RATE: float = float(os.getenv("TAXI_PER_KM_RATE", "4.0"))
TAXI_AVERAGE_SPEED_KMH: float = float(os.getenv("TAXI_AVERAGE_SPEED_KMH", "50.0"))

# Walking: above MAX_WALK_KM a virtual node links by taxi instead
MAX_WALK_KM: float = float(os.getenv("MAX_WALK_KM", "3.0"))
WALK_MINUTES_PER_KM: float = float(os.getenv("WALK_MINUTES_PER_KM", "15.0"))
VIRTUAL_NODE_RADIUS_KM: float = float(os.getenv("VIRTUAL_NODE_RADIUS_KM", "25.0"))

# Passenger discounts (fraction off Bus/Tram base fares) and payment surcharge
GENERAL_DISCOUNT: float = 0.0
STUDENT_DISCOUNT: float = float(os.getenv("STUDENT_DISCOUNT", "0.5"))
SENIOR_DISCOUNT: float = float(os.getenv("SENIOR_DISCOUNT", "0.3"))
CREDIT_CARD_SURCHARGE: float = float(os.getenv("CREDIT_CARD_SURCHARGE", "1.25"))

EARTH_RADIUS_KM = 6371.0


def _default_discounts() -> Mapping[str, float]:
    return MappingProxyType({
        "general": GENERAL_DISCOUNT,
        "student": STUDENT_DISCOUNT,
        "senior": SENIOR_DISCOUNT,
    })


def _default_surcharges() -> Mapping[str, float]:
    return MappingProxyType({
        "cash": 1.0,
        "transit_card": 1.0,
        "credit_card": CREDIT_CARD_SURCHARGE,
    })


@dataclass(frozen=True)
class RoutingSettings:
    """
    Immutable tuning values for one loaded network.

    Built once (defaults come from the environment constants above) and
    passed explicitly into the graph, fare and search code.  Discount and
    surcharge tables are keyed by the string value of PassengerCategory /
    PaymentMethod, so members of those str-enums look up directly.
    """

    max_depth: int = MAX_DFS_DEPTH
    max_routes: int = MAX_ROUTES
    taxi_opening_fee: float = TAXI_OPENING_FEE
    taxi_per_km_rate: float = TAXI_PER_KM_RATE
    taxi_average_speed_kmh: float = TAXI_AVERAGE_SPEED_KMH
    max_walk_km: float = MAX_WALK_KM
    walk_minutes_per_km: float = WALK_MINUTES_PER_KM
    virtual_node_radius_km: float = VIRTUAL_NODE_RADIUS_KM
    discount_rates: Mapping[str, float] = field(default_factory=_default_discounts)
    payment_surcharges: Mapping[str, float] = field(default_factory=_default_surcharges)

    def __post_init__(self) -> None:
        if self.max_depth < 2:
            raise ValueError(f"max_depth must be at least 2, got {self.max_depth}")
        if self.max_depth > MAX_DFS_DEPTH_CEILING:
            raise ValueError(
                f"max_depth must be at most {MAX_DFS_DEPTH_CEILING}, got {self.max_depth}"
            )
        if self.max_routes < 1:
            raise ValueError(f"max_routes must be at least 1, got {self.max_routes}")
        if self.taxi_average_speed_kmh <= 0:
            raise ValueError("taxi_average_speed_kmh must be positive")
        if self.walk_minutes_per_km <= 0:
            raise ValueError("walk_minutes_per_km must be positive")
        if self.max_walk_km < 0 or self.virtual_node_radius_km <= 0:
            raise ValueError("walking threshold must be >= 0 and virtual node radius > 0")
        for category, rate in self.discount_rates.items():
            if not 0.0 <= rate <= 1.0:
                raise ValueError(f"Discount rate for {category!r} must be within [0, 1], got {rate}")
        for method, multiplier in self.payment_surcharges.items():
            if multiplier < 0:
                raise ValueError(f"Surcharge for {method!r} must be non-negative, got {multiplier}")

    def discount_for(self, category: str) -> float:
        """Fractional discount for a passenger category. Raises KeyError if unknown."""
        return self.discount_rates[category]

    def surcharge_for(self, payment_method: str) -> float:
        """Multiplier applied once to a route's aggregate fare. Raises KeyError if unknown."""
        return self.payment_surcharges[payment_method]
