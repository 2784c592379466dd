"""
StatusObservation model - append-only flight status history.

Every refresh cycle appends one row per passenger whose provider call
succeeded. Rows are never updated; "latest" is resolved by the
``(observed_at, id)`` ordering key.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from sqlalchemy import String, Float, Integer, DateTime, Index, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from flighttracker.models.base import Base, utcnow


class FlightStatus(str, Enum):
    """
    Normalized flight status.

    - SCHEDULED: Not departed yet
    - DELAYED: Departure pushed back
    - IN_AIR: Airborne; telemetry usually available
    - LANDED: Arrived
    - CANCELLED / DIVERTED: Terminal irregular states
    - UNKNOWN: No observation or unrecognized provider value
    """
    SCHEDULED = 'scheduled'
    DELAYED = 'delayed'
    IN_AIR = 'in-air'
    LANDED = 'landed'
    CANCELLED = 'cancelled'
    DIVERTED = 'diverted'
    UNKNOWN = 'unknown'


class StatusObservation(Base):
    """
    One timestamped snapshot of a passenger's flight status and telemetry.

    Telemetry columns are nullable; they are only reported while the
    flight is live.
    """

    __tablename__ = 'flight_status'

    # Monotonic by insertion order; breaks ties between equal timestamps
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment='Surrogate key'
    )

    passenger_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey('passengers.id'),
        nullable=False,
        comment='Owning passenger'
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=FlightStatus.UNKNOWN.value,
        comment='Normalized flight status'
    )

    # Position (WGS84)
    latitude: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Latitude in decimal degrees'
    )

    longitude: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Longitude in decimal degrees'
    )

    altitude: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Altitude in meters'
    )

    velocity: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Ground speed in km/h'
    )

    heading: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Track in degrees (0-360)'
    )

    observed_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        comment='Insertion time (naive UTC); orders observations'
    )

    sampled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        comment='Provider sample time (naive UTC), informational only'
    )

    __table_args__ = (
        # Startup index rebuild and single-passenger lookups
        Index('ix_flight_status_passenger_time', 'passenger_id', 'observed_at'),
        # Ids are never reused, even after a clear
        {'sqlite_autoincrement': True},
    )

    def __repr__(self) -> str:
        return f'<StatusObservation {self.id} passenger={self.passenger_id} {self.status} @ {self.observed_at}>'

    @property
    def ordering_key(self) -> Tuple[datetime, int]:
        """Key used to pick the latest observation for a passenger."""
        return (self.observed_at, self.id)
