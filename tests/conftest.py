"""Shared fixtures for the flight tracker test suite."""

import threading
from typing import Dict, Optional, Set, Tuple

import pytest

from flighttracker.exceptions import ProviderFailure
from flighttracker.ingestion.provider import ObservedStatus
from flighttracker.models import FlightStatus
from flighttracker.store import TrackerStore

HEADER = ['name', 'airline', 'flight_number', 'departure_airport', 'arrival_airport', 'departure_date']


class FakeProvider:
    """
    Provider double: fails for configured flight numbers, otherwise returns
    an in-air observation. Records every call.
    """

    def __init__(self, failing: Optional[Set[str]] = None, responses: Optional[Dict[str, object]] = None):
        self.failing = failing or set()
        self.responses = responses or {}
        self.calls = []
        self._lock = threading.Lock()

    def fetch_status(self, airline: str, flight_number: str):
        with self._lock:
            self.calls.append((airline, flight_number))
        if flight_number in self.failing:
            raise ProviderFailure(f'no data for {flight_number}')
        if flight_number in self.responses:
            return self.responses[flight_number]
        return ObservedStatus(
            status=FlightStatus.IN_AIR,
            latitude=40.1,
            longitude=-75.2,
            altitude=10000.0,
            velocity=850.0,
            heading=90.0,
        )


@pytest.fixture
def store(tmp_path):
    tracker_store = TrackerStore(f'sqlite:///{tmp_path / "tracker.db"}')
    yield tracker_store
    tracker_store.dispose()


@pytest.fixture
def provider():
    return FakeProvider()


def passenger_row(name: str, airline: str = 'DL', flight_number: str = '100') -> Tuple[str, ...]:
    return (name, airline, flight_number, 'JFK', 'LAX', '2025-06-01')


@pytest.fixture
def seeded_store(store):
    """Store holding two passengers (ids returned in order)."""
    from flighttracker.ingestion.manifest import ManifestIngestor

    ManifestIngestor(store).ingest([
        HEADER,
        passenger_row('Ada Lovelace', 'DL', '100'),
        passenger_row('Alan Turing', 'UA', '200'),
    ])
    return store
