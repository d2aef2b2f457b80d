"""
Vehicle legs — the typed payload carried by every graph connection.

Legs form a closed set of frozen dataclasses:

  BusLeg / TramLeg : fixed base fare + fixed minutes, set at data-load time.
                     Fare is discounted by the passenger category.
  TaxiLeg          : distance-derived.  fare = opening fee + per-km rate × km,
                     minutes = km / average speed × 60.
  WalkLeg          : distance-derived.  fare = 0, minutes = km × minutes-per-km.
  TransferLeg      : fixed fee + fixed minutes between co-located platforms.

leg_fare / leg_duration_minutes / leg_kind dispatch with an exhaustive
match ending in assert_never, so a new leg type that is not handled there
is a type-checker error rather than a silent default.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Union, assert_never

from config import (
    TAXI_AVERAGE_SPEED_KMH,
    TAXI_OPENING_FEE,
    TAXI_PER_KM_RATE,
    WALK_MINUTES_PER_KM,
)


class LegKind(str, Enum):
    BUS = "bus"
    TRAM = "tram"
    TAXI = "taxi"
    WALK = "walk"
    TRANSFER = "transfer"


class Discounted(Protocol):
    """Anything carrying a fractional discount rate (see routing.fares.Passenger)."""

    @property
    def discount_rate(self) -> float: ...


class _LegMethods:
    """fare()/duration_minutes() shortcuts shared by every leg type."""

    def fare(self, passenger: Discounted) -> float:
        return leg_fare(self, passenger)  # type: ignore[arg-type]

    def duration_minutes(self) -> int:
        return leg_duration_minutes(self)  # type: ignore[arg-type]

    @property
    def kind(self) -> LegKind:
        return leg_kind(self)  # type: ignore[arg-type]


@dataclass(frozen=True)
class BusLeg(_LegMethods):
    base_fare: float
    minutes: int
    distance_km: float = 0.0


@dataclass(frozen=True)
class TramLeg(_LegMethods):
    base_fare: float
    minutes: int
    distance_km: float = 0.0


@dataclass(frozen=True)
class TaxiLeg(_LegMethods):
    distance_km: float
    opening_fee: float = TAXI_OPENING_FEE
    per_km_rate: float = TAXI_PER_KM_RATE
    average_speed_kmh: float = TAXI_AVERAGE_SPEED_KMH


@dataclass(frozen=True)
class WalkLeg(_LegMethods):
    distance_km: float
    minutes_per_km: float = WALK_MINUTES_PER_KM


@dataclass(frozen=True)
class TransferLeg(_LegMethods):
    minutes: int
    fee: float = 0.0


VehicleLeg = Union[BusLeg, TramLeg, TaxiLeg, WalkLeg, TransferLeg]


def leg_fare(leg: VehicleLeg, passenger: Discounted) -> float:
    """
    Fare for one leg before any payment surcharge.

    Only Bus and Tram fares are discounted; Taxi, Walk and Transfer fares
    ignore the passenger entirely.
    """
    match leg:
        case BusLeg() | TramLeg():
            return leg.base_fare * (1.0 - passenger.discount_rate)
        case TaxiLeg():
            return leg.opening_fee + leg.per_km_rate * leg.distance_km
        case WalkLeg():
            return 0.0
        case TransferLeg():
            return leg.fee
        case _:
            assert_never(leg)


def leg_duration_minutes(leg: VehicleLeg) -> int:
    """Whole minutes for one leg. Distance-derived values are truncated."""
    match leg:
        case BusLeg() | TramLeg() | TransferLeg():
            return leg.minutes
        case TaxiLeg():
            return int(leg.distance_km / leg.average_speed_kmh * 60)
        case WalkLeg():
            return int(leg.distance_km * leg.minutes_per_km)
        case _:
            assert_never(leg)


def leg_kind(leg: VehicleLeg) -> LegKind:
    match leg:
        case BusLeg():
            return LegKind.BUS
        case TramLeg():
            return LegKind.TRAM
        case TaxiLeg():
            return LegKind.TAXI
        case WalkLeg():
            return LegKind.WALK
        case TransferLeg():
            return LegKind.TRANSFER
        case _:
            assert_never(leg)
