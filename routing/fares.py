"""
Fare calculation.

compute_fare() sums each leg's passenger-aware fare and applies the
payment-method surcharge once, on the aggregate.  It is pure: the same
legs, passenger and payment method always give the same amount, which is
what lets a materialized Route's total be checked by recomputing it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from config import RoutingSettings
from graph.legs import VehicleLeg, leg_fare

MONEY_DECIMALS = 2


class PassengerCategory(str, Enum):
    GENERAL = "general"
    STUDENT = "student"
    SENIOR = "senior"


class PaymentMethod(str, Enum):
    CASH = "cash"
    TRANSIT_CARD = "transit_card"
    CREDIT_CARD = "credit_card"


@dataclass(frozen=True)
class Passenger:
    category: PassengerCategory
    discount_rate: float

    @classmethod
    def of(cls, category: PassengerCategory, settings: RoutingSettings | None = None) -> "Passenger":
        """Passenger with the discount rate configured for its category."""
        settings = settings or RoutingSettings()
        return cls(category=category, discount_rate=settings.discount_for(category.value))


def compute_fare(
    legs: Iterable[VehicleLeg],
    passenger: Passenger,
    payment_method: PaymentMethod,
    settings: RoutingSettings | None = None,
) -> float:
    """
    Total fare for a leg sequence.

    Args:
        legs:           Traversed legs in route order.
        passenger:      Supplies the Bus/Tram discount rate.
        payment_method: Selects the surcharge multiplier (credit card 1.25×,
                        cash and transit card 1.0× by default).
        settings:       Surcharge table; defaults to RoutingSettings().

    Returns:
        sum(leg fares) × surcharge, rounded to MONEY_DECIMALS so equal
        prices compare equal.  An empty leg sequence costs 0.0.
    """
    settings = settings or RoutingSettings()
    subtotal = sum(leg_fare(leg, passenger) for leg in legs)
    return round(subtotal * settings.surcharge_for(payment_method.value), MONEY_DECIMALS)
