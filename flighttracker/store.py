"""
Passenger and observation storage.

One ``TrackerStore`` owns one engine and session factory and exposes every
read and write the rest of the application needs:

- Passengers are inserted in batches by the manifest ingestor
- Observations are appended by the status refresher
- The read path resolves the latest observation per passenger

Latest resolution runs through an in-memory index
(passenger id -> (observed_at, observation id)) that is updated on every
append and rebuilt with a single pass over the history at startup, so
read cost does not grow with the length of the history.

Locking:
- All writers serialize on ``_write_lock``
- ``_index_lock`` guards the index dict and is only held for dict operations
- Readers never take the write lock, except on an in-memory database,
  where every session shares one connection and so runs under it
"""

import logging
import threading
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Generator, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from flighttracker.config import config
from flighttracker.exceptions import ClearPartialFailure, StoreUnavailable, UnknownPassenger
from flighttracker.models import (
    Base,
    FlightStatus,
    Passenger,
    StatusObservation,
    build_engine,
    build_session_factory,
    to_naive_utc,
    utcnow,
)
from flighttracker.models.base import is_memory_url

logger = logging.getLogger(__name__)

# (observed_at, observation id)
LatestKey = Tuple[datetime, int]

# SQLite caps bound parameters per statement
_ID_CHUNK = 500

PASSENGER_FIELDS = (
    'name',
    'airline',
    'flight_number',
    'departure_airport',
    'arrival_airport',
    'departure_date',
)

TELEMETRY_FIELDS = ('latitude', 'longitude', 'altitude', 'velocity', 'heading')


@dataclass(frozen=True)
class ClearResult:
    """Row counts removed by a clear operation."""
    observations_deleted: int
    passengers_deleted: int

    def to_dict(self) -> dict:
        return {
            'observations_deleted': self.observations_deleted,
            'passengers_deleted': self.passengers_deleted,
        }


def reduce_latest(rows: Iterable[Tuple[int, datetime, int]]) -> Dict[int, LatestKey]:
    """
    Reduce ``(passenger_id, observed_at, observation_id)`` rows to the
    greatest ``(observed_at, id)`` key per passenger.

    Single pass, input order irrelevant.
    """
    latest: Dict[int, LatestKey] = {}
    for passenger_id, observed_at, observation_id in rows:
        key = (to_naive_utc(observed_at), observation_id)
        current = latest.get(passenger_id)
        if current is None or key > current:
            latest[passenger_id] = key
    return latest


class TrackerStore:
    """
    Shared store for passengers and their status observations.

    Safe to use from the refresh thread and request handlers at once.
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        self.database_url = database_url or config.database.url
        self.engine = build_engine(self.database_url, echo=echo)
        self._session_factory = build_session_factory(self.engine)

        self._write_lock = threading.RLock()
        self._index_lock = threading.Lock()
        self._latest: Dict[int, LatestKey] = {}
        self._shared_connection = is_memory_url(self.database_url)

        self.init_schema()
        self.rebuild_index()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def init_schema(self) -> None:
        """Create tables if they don't exist."""
        try:
            Base.metadata.create_all(bind=self.engine)
        except OperationalError as e:
            raise StoreUnavailable(f'Could not initialize schema: {e}') from e

    def rebuild_index(self) -> int:
        """
        Rebuild the latest-observation index from stored history.

        Returns the number of passengers with at least one observation.
        """
        with self._write_lock:
            with self._session() as session:
                rows = session.execute(
                    select(
                        StatusObservation.passenger_id,
                        StatusObservation.observed_at,
                        StatusObservation.id,
                    )
                )
                latest = reduce_latest(rows)

            with self._index_lock:
                self._latest = latest

        logger.debug(f'Latest-observation index rebuilt for {len(latest)} passengers')
        return len(latest)

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

    def ping(self) -> bool:
        """Check database connectivity."""
        try:
            with self._session() as session:
                session.execute(text('SELECT 1'))
            return True
        except StoreUnavailable as e:
            logger.error(f'Database health check failed: {e}')
            return False

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        """
        Session scope translating connectivity errors into StoreUnavailable.

        Callers commit explicitly; anything uncommitted is rolled back.
        On an in-memory database the scope holds the write lock, since a
        reader closing its session would otherwise roll back a writer's
        open transaction on the shared connection.
        """
        guard = self._write_lock if self._shared_connection else nullcontext()
        with guard:
            session = self._session_factory()
            try:
                yield session
            except OperationalError as e:
                session.rollback()
                logger.error(f'Database unavailable: {e}')
                raise StoreUnavailable(str(e)) from e
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    # -------------------------------------------------------------------------
    # Passengers
    # -------------------------------------------------------------------------

    def add_passengers(self, records: Sequence[dict]) -> List[int]:
        """
        Insert passengers in a single transaction.

        Each record must carry every field in ``PASSENGER_FIELDS``.
        Returns the new ids in input order.
        """
        if not records:
            return []

        with self._write_lock:
            with self._session() as session:
                passengers = [
                    Passenger(**{field: record[field] for field in PASSENGER_FIELDS})
                    for record in records
                ]
                session.add_all(passengers)
                session.commit()
                ids = [p.id for p in passengers]

        logger.info(f'Stored {len(ids)} passengers')
        return ids

    def list_passengers(self) -> List[Passenger]:
        """All passengers ordered by id."""
        with self._session() as session:
            return list(session.scalars(select(Passenger).order_by(Passenger.id)))

    def get_passenger(self, passenger_id: int) -> Optional[Passenger]:
        with self._session() as session:
            return session.get(Passenger, passenger_id)

    def counts(self) -> dict:
        """Row counts for status reporting."""
        with self._session() as session:
            passengers = session.scalar(select(func.count()).select_from(Passenger))
            observations = session.scalar(select(func.count()).select_from(StatusObservation))
        return {'passengers': passengers or 0, 'observations': observations or 0}

    # -------------------------------------------------------------------------
    # Observations
    # -------------------------------------------------------------------------

    def append(
        self,
        passenger_id: int,
        observation,
        observed_at: Optional[datetime] = None,
    ) -> StatusObservation:
        """
        Append one status observation for a passenger.

        ``observation`` carries ``status``, the optional telemetry fields and
        an optional provider ``sampled_at``. The ordering timestamp
        ``observed_at`` is insertion time unless given explicitly; the
        provider's sample time never takes part in ordering.

        Raises UnknownPassenger if the passenger does not exist; nothing is
        written in that case.
        """
        status = observation.status
        if isinstance(status, FlightStatus):
            status = status.value

        values = {field: getattr(observation, field, None) for field in TELEMETRY_FIELDS}
        sampled_at = to_naive_utc(getattr(observation, 'sampled_at', None))

        with self._write_lock:
            # Stamped under the lock so insertion time follows id order
            observed_at = to_naive_utc(observed_at) or utcnow()
            with self._session() as session:
                if session.get(Passenger, passenger_id) is None:
                    raise UnknownPassenger(passenger_id)

                row = StatusObservation(
                    passenger_id=passenger_id,
                    status=status,
                    observed_at=observed_at,
                    sampled_at=sampled_at,
                    **values,
                )
                session.add(row)
                try:
                    session.commit()
                except IntegrityError as e:
                    session.rollback()
                    raise UnknownPassenger(passenger_id) from e

            self._index_observation(row)

        return row

    def _index_observation(self, row: StatusObservation) -> None:
        key = row.ordering_key
        with self._index_lock:
            current = self._latest.get(row.passenger_id)
            if current is None or key > current:
                self._latest[row.passenger_id] = key

    def latest_for(self, passenger_id: int) -> Optional[StatusObservation]:
        """Most recent observation for one passenger, or None."""
        with self._index_lock:
            key = self._latest.get(passenger_id)
        if key is None:
            return None

        with self._session() as session:
            row = session.get(StatusObservation, key[1])
        return row if row is not None and row.passenger_id == passenger_id else None

    def latest_for_all(self) -> Dict[int, Optional[StatusObservation]]:
        """
        Latest observation for every current passenger.

        Passengers without observations map to None. Returns an empty
        mapping when there are no passengers.
        """
        with self._index_lock:
            snapshot = dict(self._latest)

        observation_ids = [key[1] for key in snapshot.values()]

        with self._session() as session:
            passenger_ids = list(session.scalars(select(Passenger.id).order_by(Passenger.id)))

            by_id: Dict[int, StatusObservation] = {}
            for start in range(0, len(observation_ids), _ID_CHUNK):
                chunk = observation_ids[start:start + _ID_CHUNK]
                for row in session.scalars(
                    select(StatusObservation).where(StatusObservation.id.in_(chunk))
                ):
                    by_id[row.id] = row

        result: Dict[int, Optional[StatusObservation]] = {}
        for passenger_id in passenger_ids:
            key = snapshot.get(passenger_id)
            row = by_id.get(key[1]) if key else None
            # A snapshot taken before a clear may point at rows that are gone
            if row is not None and row.passenger_id != passenger_id:
                row = None
            result[passenger_id] = row
        return result

    # -------------------------------------------------------------------------
    # Clear
    # -------------------------------------------------------------------------

    def clear_all(self) -> ClearResult:
        """
        Delete every observation and then every passenger.

        Both deletes run in one transaction while holding the write lock,
        so no append or ingest can interleave. On failure the transaction
        is rolled back and ClearPartialFailure is raised with the prior
        data intact.
        """
        with self._write_lock:
            session = self._session_factory()
            try:
                observations = session.execute(delete(StatusObservation)).rowcount
                passengers = session.execute(delete(Passenger)).rowcount
                session.commit()
            except Exception as e:
                session.rollback()
                logger.error(f'Clear aborted and rolled back: {e}')
                raise ClearPartialFailure(f'Clear aborted, no data removed: {e}') from e
            finally:
                session.close()

            with self._index_lock:
                self._latest = {}

        result = ClearResult(
            observations_deleted=observations or 0,
            passengers_deleted=passengers or 0,
        )
        logger.warning(
            f'Cleared all tracker data: {result.passengers_deleted} passengers, '
            f'{result.observations_deleted} observations'
        )
        return result
