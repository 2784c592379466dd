"""
Passenger model - manifest-derived traveler records.

Rows are created by the manifest ingestor and never updated in place.
They are removed only by the clear operation, after their observations.
"""

from datetime import datetime

from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from flighttracker.models.base import Base, utcnow


class Passenger(Base):
    """
    A tracked traveler and their flight assignment.

    Fields mirror the manifest columns one-to-one. ``id`` is assigned by
    the database on insert.
    """

    __tablename__ = 'passengers'

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment='Surrogate key'
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment='Passenger full name'
    )

    airline: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment='Airline name or code as given in the manifest'
    )

    flight_number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        comment='Flight number (e.g., 839 or AA839)'
    )

    departure_airport: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment='Departure airport code or name'
    )

    arrival_airport: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment='Arrival airport code or name'
    )

    departure_date: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment='Departure date as given in the manifest'
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        comment='Record creation timestamp (UTC)'
    )

    # Ids are never reused, even after a clear
    __table_args__ = {'sqlite_autoincrement': True}

    def __repr__(self) -> str:
        return f'<Passenger {self.id} {self.name!r} {self.airline} {self.flight_number}>'
