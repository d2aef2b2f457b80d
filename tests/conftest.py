"""
Shared fixtures: a five-stop city network in the dataset's JSON shape.

  bus_otogar ──bus──▶ bus_sekapark ──bus──▶ bus_umuttepe
                           │ transfer                ▲
                           ▼                         │ transfer
                      tram_sekapark ──tram──▶ tram_yahyakaptan

Two routes Otogar → Umuttepe:
  bus only        : fare 6.0, 18 min, 0 transfers   (fastest)
  via the tram    : fare 5.0, 23 min, 2 transfers   (cheapest)
"""

import copy

import pytest

from graph.builder import StopGraph
from graph.loader import parse_network

NETWORK = {
    "duraklar": [
        {
            "id": "bus_otogar", "name": "Otogar (Bus)", "type": "bus",
            "lat": 40.78259, "lon": 29.94628, "sonDurak": True,
            "nextStops": [{"stopId": "bus_sekapark", "mesafe": 3.5, "sure": 10, "ucret": 3.0}],
            "transfer": None,
        },
        {
            "id": "bus_sekapark", "name": "Sekapark (Bus)", "type": "bus",
            "lat": 40.76520, "lon": 29.93937, "sonDurak": False,
            "nextStops": [{"stopId": "bus_umuttepe", "mesafe": 6.0, "sure": 8, "ucret": 3.0}],
            "transfer": {"transferStopId": "tram_sekapark", "transferSure": 2, "transferUcret": 0.0},
        },
        {
            "id": "bus_umuttepe", "name": "Umuttepe (Bus)", "type": "bus",
            "lat": 40.82103, "lon": 29.91843, "sonDurak": True,
            "nextStops": [],
            "transfer": None,
        },
        {
            "id": "tram_sekapark", "name": "Sekapark (Tram)", "type": "tram",
            "lat": 40.76400, "lon": 29.93850, "sonDurak": False,
            "nextStops": [{"stopId": "tram_yahyakaptan", "mesafe": 2.0, "sure": 6, "ucret": 2.0}],
            "transfer": None,
        },
        {
            "id": "tram_yahyakaptan", "name": "Yahya Kaptan (Tram)", "type": "tram",
            "lat": 40.77500, "lon": 29.97000, "sonDurak": True,
            "nextStops": [],
            "transfer": {"transferStopId": "bus_umuttepe", "transferSure": 5, "transferUcret": 0.0},
        },
    ]
}


@pytest.fixture
def network_payload() -> dict:
    return copy.deepcopy(NETWORK)


@pytest.fixture
def city():
    """(StopGraph, RoutingSettings) for the sample network."""
    snapshot = parse_network(copy.deepcopy(NETWORK))
    return StopGraph(snapshot.stops), snapshot.settings


@pytest.fixture
def anyio_backend() -> str:
    """The async facade is built on asyncio (asyncio.to_thread / wait_for)."""
    return "asyncio"
