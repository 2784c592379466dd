"""
Database models for the flight tracker.

Two related record sets:
1. Passengers (manifest rows)
2. Status observations (append-only history, FK to passengers)
"""

from flighttracker.models.base import Base, build_engine, build_session_factory, utcnow, to_naive_utc
from flighttracker.models.passenger import Passenger
from flighttracker.models.status_observation import StatusObservation, FlightStatus

__all__ = [
    'Base',
    'build_engine',
    'build_session_factory',
    'utcnow',
    'to_naive_utc',
    'Passenger',
    'StatusObservation',
    'FlightStatus',
]
