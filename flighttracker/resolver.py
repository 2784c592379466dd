"""
Latest-state resolution for the read API.

Combines the passenger roster with the latest observation per passenger
into one display row each. Holds no state of its own: every call reads
the store afresh.

A passenger with no observation yet renders as status "unknown" and
carries no telemetry keys at all, so clients never mistake missing data
for a real (0, 0) position.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from flighttracker.models import FlightStatus, Passenger, StatusObservation
from flighttracker.store import TrackerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlightView:
    """One passenger with their latest known flight status."""
    id: int
    passenger_name: str
    airline: str
    flight_number: str
    departure_airport: str
    arrival_airport: str
    departure_date: str
    status: str

    # Telemetry, only meaningful when has_observation is True
    has_observation: bool = False
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    velocity: Optional[float] = None
    heading: Optional[float] = None
    last_update: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        result = {
            'id': self.id,
            'passengerName': self.passenger_name,
            'airline': self.airline,
            'flightNumber': self.flight_number,
            'departureAirport': self.departure_airport,
            'arrivalAirport': self.arrival_airport,
            'departureDate': self.departure_date,
            'status': self.status,
        }
        if self.has_observation:
            result.update({
                'latitude': self.latitude,
                'longitude': self.longitude,
                'altitude': self.altitude,
                'velocity': self.velocity,
                'heading': self.heading,
                'lastUpdate': self.last_update.isoformat() if self.last_update else None,
            })
        return result


def build_view(passenger: Passenger, observation: Optional[StatusObservation]) -> FlightView:
    """Render one passenger and their latest observation (if any)."""
    base = dict(
        id=passenger.id,
        passenger_name=passenger.name,
        airline=passenger.airline,
        flight_number=passenger.flight_number,
        departure_airport=passenger.departure_airport,
        arrival_airport=passenger.arrival_airport,
        departure_date=passenger.departure_date,
    )
    if observation is None:
        return FlightView(status=FlightStatus.UNKNOWN.value, **base)

    return FlightView(
        status=observation.status,
        has_observation=True,
        latitude=observation.latitude,
        longitude=observation.longitude,
        altitude=observation.altitude,
        velocity=observation.velocity,
        heading=observation.heading,
        # Provider sample time when reported, otherwise when it was stored
        last_update=observation.sampled_at or observation.observed_at,
        **base,
    )


def resolve_view(
    passengers: Iterable[Passenger],
    latest: Dict[int, Optional[StatusObservation]],
) -> List[FlightView]:
    """
    Pure composition of passengers and latest observations.

    Output is ordered by passenger id.
    """
    ordered = sorted(passengers, key=lambda p: p.id)
    return [build_view(p, latest.get(p.id)) for p in ordered]


class LatestStateResolver:
    """Read-side view over a TrackerStore."""

    def __init__(self, store: TrackerStore):
        self.store = store

    def current_view(self) -> List[FlightView]:
        """Current view: one row per passenger, ordered by id."""
        passengers = self.store.list_passengers()
        latest = self.store.latest_for_all()
        # Passengers ingested between the two reads simply render as unknown
        return resolve_view(passengers, latest)

    def view_for(self, passenger_id: int) -> Optional[FlightView]:
        """View for one passenger, or None if the passenger does not exist."""
        passenger = self.store.get_passenger(passenger_id)
        if passenger is None:
            return None
        return build_view(passenger, self.store.latest_for(passenger_id))
