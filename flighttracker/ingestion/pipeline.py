"""
Status refresh pipeline - orchestrates provider lookups into the store.

One refresh cycle:
1. Snapshot: Take the passenger set as it is at the start of the run
2. Fetch: Ask the provider for each passenger's flight, bounded by a timeout
3. Append: Store one observation per successful lookup
4. Report: Collect succeeded ids and per-passenger failures

A failing passenger never aborts the run. Only storage-level errors
(StoreUnavailable) propagate.

The scheduler runs a cycle at startup and then on a fixed interval in a
background thread, with at most one cycle in flight at a time.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from flighttracker.config import config
from flighttracker.exceptions import ProviderFailure, UnknownPassenger
from flighttracker.ingestion.provider import ObservedStatus, StatusProvider
from flighttracker.models import utcnow
from flighttracker.store import TrackerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshFailure:
    """A passenger skipped during a refresh cycle."""
    passenger_id: int
    cause: str

    def to_dict(self) -> dict:
        return {'passenger_id': self.passenger_id, 'cause': self.cause}


@dataclass
class RefreshReport:
    """Outcome of one refresh cycle."""
    succeeded: List[int] = field(default_factory=list)
    failed: List[RefreshFailure] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict:
        return {
            'succeeded': list(self.succeeded),
            'failed': [f.to_dict() for f in self.failed],
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
        }


class StatusRefresher:
    """
    Queries the status provider for every passenger and records results.

    Each provider call runs on its own daemon thread so it can be abandoned
    after ``provider_timeout`` seconds. An abandoned call keeps its thread
    but never delays the passengers after it.
    """

    def __init__(
        self,
        store: TrackerStore,
        provider_timeout: Optional[float] = None,
    ):
        self.store = store
        self.provider_timeout = (
            provider_timeout if provider_timeout is not None
            else config.provider.timeout_seconds
        )

    def refresh_all(self, provider: StatusProvider) -> RefreshReport:
        """
        Execute one refresh cycle over a snapshot of all passengers.

        Raises StoreUnavailable if the store cannot be reached; every other
        problem is recorded per passenger in the report.
        """
        report = RefreshReport()
        passengers = self.store.list_passengers()

        if not passengers:
            logger.debug('No passengers to refresh')
            report.finished_at = utcnow()
            return report

        for passenger in passengers:
            try:
                observation = self._fetch(provider, passenger.airline, passenger.flight_number)
                self.store.append(passenger.id, observation)
            except (ProviderFailure, UnknownPassenger) as e:
                self._record_failure(report, passenger.id, str(e))
                continue
            report.succeeded.append(passenger.id)

        report.finished_at = utcnow()
        logger.info(
            f'Refresh complete: {len(report.succeeded)} updated, '
            f'{len(report.failed)} failed in {report.duration_seconds:.1f}s'
        )
        return report

    def _fetch(self, provider: StatusProvider, airline: str, flight_number: str) -> ObservedStatus:
        """Run one provider call under the per-passenger timeout."""
        outcome = {}

        def call():
            try:
                outcome['result'] = provider.fetch_status(airline, flight_number)
            except Exception as e:
                outcome['error'] = e

        worker = threading.Thread(
            target=call,
            name=f'status-provider-{airline}-{flight_number}',
            daemon=True,
        )
        worker.start()
        worker.join(self.provider_timeout)
        if worker.is_alive():
            raise ProviderFailure(f'Provider timed out after {self.provider_timeout}s')

        error = outcome.get('error')
        if isinstance(error, ProviderFailure):
            raise error
        if error is not None:
            raise ProviderFailure(f'Provider error: {error}') from error

        result = outcome.get('result')
        if not isinstance(result, ObservedStatus):
            raise ProviderFailure(f'Malformed provider response: {type(result).__name__}')
        return result

    @staticmethod
    def _record_failure(report: RefreshReport, passenger_id: int, cause: str) -> None:
        logger.warning(f'Status refresh failed for passenger {passenger_id}: {cause}')
        report.failed.append(RefreshFailure(passenger_id=passenger_id, cause=cause))


class RefreshScheduler:
    """
    Runs refresh cycles on a fixed interval in a background thread.

    At most one cycle runs at a time; a cycle requested while another is in
    flight is skipped. stop() prevents further cycles and waits for an
    in-flight cycle to finish.
    """

    def __init__(
        self,
        refresher: StatusRefresher,
        provider: StatusProvider,
        interval_seconds: Optional[float] = None,
    ):
        self.refresher = refresher
        self.provider = provider
        self.interval_seconds = interval_seconds or config.refresh.interval_seconds

        # State tracking
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._run_count: int = 0
        self._skipped_count: int = 0
        self._error_count: int = 0
        self._last_report: Optional[RefreshReport] = None
        self._last_run_time: float = 0

        # Callbacks for external integration
        self._on_complete_callbacks: List[Callable[[RefreshReport], None]] = []

    def add_complete_callback(self, callback: Callable[[RefreshReport], None]) -> None:
        """
        Register callback to be invoked after each completed cycle.

        Callback receives the cycle's RefreshReport.
        """
        self._on_complete_callbacks.append(callback)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    @property
    def in_progress(self) -> bool:
        return self._run_lock.locked()

    def run_once(self) -> Optional[RefreshReport]:
        """
        Execute one cycle unless another is in flight.

        Returns the report, or None if the cycle was skipped or failed.
        """
        if not self._run_lock.acquire(blocking=False):
            self._skipped_count += 1
            logger.warning('Refresh already in progress, skipping this cycle')
            return None

        try:
            report = self.refresher.refresh_all(self.provider)
        except Exception as e:
            self._error_count += 1
            logger.error(f'Refresh cycle failed: {e}')
            return None
        finally:
            self._run_lock.release()

        self._run_count += 1
        self._last_report = report
        self._last_run_time = time.time()

        # Notify callbacks
        for callback in self._on_complete_callbacks:
            try:
                callback(report)
            except Exception as e:
                logger.error(f'Refresh callback error: {e}')

        return report

    def run_continuous(self) -> None:
        """
        Run once now, then on every interval tick until stopped.

        This method blocks - use start() for non-blocking. Ticks that fall
        inside an overrunning cycle are skipped rather than queued.
        """
        logger.info(f'Starting status refresh (interval={self.interval_seconds}s)')

        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            self.run_once()

            next_tick += self.interval_seconds
            now = time.monotonic()
            if now > next_tick:
                missed = int((now - next_tick) // self.interval_seconds) + 1
                self._skipped_count += missed
                logger.warning(f'Refresh overran the interval, skipping {missed} tick(s)')
                next_tick += missed * self.interval_seconds

            if self._stop_event.wait(max(0.0, next_tick - now)):
                break

        logger.info('Status refresh stopped')

    def start(self) -> None:
        """Start refreshing in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning('Status refresh already running')
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_continuous,
            name='status-refresh',
            daemon=True,
        )
        self._thread.start()
        logger.info('Background status refresh started')

    def trigger(self) -> bool:
        """
        Start an out-of-band cycle in the background.

        Returns False without starting anything if a cycle is in flight.
        """
        if self.in_progress:
            self._skipped_count += 1
            return False

        threading.Thread(target=self.run_once, name='status-refresh-manual', daemon=True).start()
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop scheduling cycles; an in-flight cycle is allowed to finish."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        logger.info('Status refresh stopped')

    @property
    def stats(self) -> dict:
        """Get refresh statistics."""
        return {
            'running': self.is_running,
            'in_progress': self.in_progress,
            'interval_seconds': self.interval_seconds,
            'run_count': self._run_count,
            'skipped_count': self._skipped_count,
            'error_count': self._error_count,
            'last_run_time': self._last_run_time,
            'last_report': self._last_report.to_dict() if self._last_report else None,
        }
