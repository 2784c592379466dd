"""
Flight status providers.

A provider answers one question: what is the current status of
(airline, flight number)? It returns an ObservedStatus or raises
ProviderFailure.

Implementations:
- AviationStackProvider: live data from the AviationStack /flights endpoint
- DemoStatusProvider: deterministic mock data for running without an API key

AviationStack response shape (fields used):
    data[0].flight_status     scheduled | active | landed | cancelled | incident | diverted
    data[0].live.latitude     decimal degrees
    data[0].live.longitude    decimal degrees
    data[0].live.altitude     meters
    data[0].live.speed_horizontal  km/h
    data[0].live.direction    degrees
    data[0].live.updated      ISO timestamp of the live sample
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

import requests

from flighttracker.config import config
from flighttracker.exceptions import ProviderFailure
from flighttracker.models import FlightStatus, utcnow

logger = logging.getLogger(__name__)


# Provider status strings -> normalized FlightStatus
STATUS_MAP = {
    'scheduled': FlightStatus.SCHEDULED,
    'delayed': FlightStatus.DELAYED,
    'active': FlightStatus.IN_AIR,
    'en-route': FlightStatus.IN_AIR,
    'in-air': FlightStatus.IN_AIR,
    'landed': FlightStatus.LANDED,
    'cancelled': FlightStatus.CANCELLED,
    'diverted': FlightStatus.DIVERTED,
    'incident': FlightStatus.DIVERTED,
}

# Common ICAO airline prefixes -> IATA codes
ICAO_TO_IATA = {
    'AAL': 'AA',  # American Airlines
    'DAL': 'DL',  # Delta
    'UAL': 'UA',  # United
    'SWA': 'WN',  # Southwest
    'JBU': 'B6',  # JetBlue
    'ASA': 'AS',  # Alaska
    'FFT': 'F9',  # Frontier
    'NKS': 'NK',  # Spirit
    'ACA': 'AC',  # Air Canada
    'WJA': 'WS',  # WestJet
    'BAW': 'BA',  # British Airways
    'DLH': 'LH',  # Lufthansa
    'AFR': 'AF',  # Air France
    'KLM': 'KL',  # KLM
    'UAE': 'EK',  # Emirates
    'QFA': 'QF',  # Qantas
    'ANA': 'NH',  # All Nippon
    'JAL': 'JL',  # Japan Airlines
    'CPA': 'CX',  # Cathay Pacific
    'SIA': 'SQ',  # Singapore
}


def normalize_status(value: Optional[str]) -> FlightStatus:
    """Map a provider status string onto FlightStatus (UNKNOWN if unrecognized)."""
    if not value:
        return FlightStatus.UNKNOWN
    return STATUS_MAP.get(value.strip().lower(), FlightStatus.UNKNOWN)


@dataclass
class ObservedStatus:
    """
    One status reading returned by a provider.

    Telemetry is None unless the flight is live. ``sampled_at`` is the
    provider's own sample time when it reports one. It is kept for display
    only; observations are ordered by the time the store receives them.
    """
    status: FlightStatus
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    velocity: Optional[float] = None
    heading: Optional[float] = None
    sampled_at: Optional[datetime] = None

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class StatusProvider(Protocol):
    """Anything that can report the status of a flight."""

    def fetch_status(self, airline: str, flight_number: str) -> ObservedStatus:
        ...


def flight_iata_code(airline: str, flight_number: str) -> Optional[str]:
    """
    Build an IATA flight code for lookups.

    Examples:
    - ('DL', '123') -> 'DL123'
    - ('Delta', 'DL123') -> 'DL123'
    - ('UAL', '839') -> 'UA839'
    - ('AAL', 'AAL839') -> 'AA839'
    - ('Delta', '123') -> None (airline name, no code)
    """
    flight = flight_number.replace(' ', '').upper()
    airline = airline.strip().upper()

    if len(flight) >= 3 and flight[:3] in ICAO_TO_IATA:
        return ICAO_TO_IATA[flight[:3]] + flight[3:]
    if flight[:1].isalpha() or (len(flight) > 2 and flight[1:2].isalpha()):
        # Already carries a carrier prefix (e.g. 'DL123', '9W12')
        return flight
    if airline in ICAO_TO_IATA:
        return ICAO_TO_IATA[airline] + flight
    if len(airline) == 2 and airline.isalnum():
        return airline + flight
    return None


def _to_float(value) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ProviderFailure(f'Malformed numeric value: {value!r}')


def _parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    """Parse ISO datetime string from API."""
    if not dt_str:
        return None
    try:
        return datetime.fromisoformat(dt_str.replace('Z', '+00:00'))
    except ValueError:
        return None


class AviationStackProvider:
    """
    Status provider backed by the AviationStack API.

    Every request carries a timeout and a minimum interval is kept between
    requests to stay inside the free-tier rate limits.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        min_request_interval: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key or config.provider.api_key
        self.base_url = (base_url or config.provider.base_url).rstrip('/')
        self.timeout = timeout if timeout is not None else config.provider.timeout_seconds
        self._min_request_interval = (
            min_request_interval if min_request_interval is not None
            else config.provider.min_request_interval
        )
        self.session = session or requests.Session()

        self._lock = threading.Lock()
        self._last_request_time: float = 0
        self._request_count = 0

        if not self.api_key:
            logger.warning('AviationStack API key not configured - status lookups will fail')

    def _wait_for_rate_limit(self) -> None:
        with self._lock:
            elapsed = time.time() - self._last_request_time
            if elapsed < self._min_request_interval:
                sleep_time = self._min_request_interval - elapsed
                logger.debug(f'Rate limiting: sleeping {sleep_time:.1f}s')
                time.sleep(sleep_time)
            self._last_request_time = time.time()
            self._request_count += 1

    def fetch_status(self, airline: str, flight_number: str) -> ObservedStatus:
        """
        Fetch the current status of a flight.

        Raises ProviderFailure on network errors, API errors, empty results
        or malformed payloads.
        """
        if not self.api_key:
            raise ProviderFailure('AviationStack API key not configured')

        params = {'access_key': self.api_key}
        flight_iata = flight_iata_code(airline, flight_number)
        if flight_iata:
            params['flight_iata'] = flight_iata
        else:
            params['airline_name'] = airline.strip()
            params['flight_number'] = flight_number.strip()

        self._wait_for_rate_limit()
        logger.debug(f'Fetching status for {airline} {flight_number}')

        try:
            response = self.session.get(
                f'{self.base_url}/flights',
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ProviderFailure(f'AviationStack timeout after {self.timeout}s') from e
        except requests.exceptions.RequestException as e:
            raise ProviderFailure(f'AviationStack request failed: {e}') from e

        if response.status_code != 200:
            raise ProviderFailure(
                f'AviationStack API error: HTTP {response.status_code}',
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderFailure('AviationStack returned a non-JSON body') from e

        return self.parse_response(data, airline, flight_number)

    @staticmethod
    def parse_response(data, airline: str, flight_number: str) -> ObservedStatus:
        """Convert an AviationStack /flights payload into an ObservedStatus."""
        if not isinstance(data, dict):
            raise ProviderFailure('AviationStack payload is not an object')

        if 'error' in data:
            error = data['error']
            message = error.get('message') if isinstance(error, dict) else error
            raise ProviderFailure(f'AviationStack API error: {message}')

        flights = data.get('data')
        if not isinstance(flights, list):
            raise ProviderFailure('AviationStack payload has no data list')
        if not flights:
            raise ProviderFailure(f'No flight data found for {airline} {flight_number}')

        # Use first matching flight
        flight = flights[0]
        if not isinstance(flight, dict):
            raise ProviderFailure('AviationStack flight entry is not an object')

        live = flight.get('live') or {}
        if not isinstance(live, dict):
            raise ProviderFailure('AviationStack live block is not an object')

        return ObservedStatus(
            status=normalize_status(flight.get('flight_status')),
            latitude=_to_float(live.get('latitude')),
            longitude=_to_float(live.get('longitude')),
            altitude=_to_float(live.get('altitude')),
            velocity=_to_float(live.get('speed_horizontal')),
            heading=_to_float(live.get('direction')),
            sampled_at=_parse_datetime(live.get('updated')),
        )

    @property
    def stats(self) -> dict:
        """Get provider statistics."""
        with self._lock:
            return {
                'provider': 'aviationstack',
                'requests': self._request_count,
                'api_configured': bool(self.api_key),
            }


class DemoStatusProvider:
    """
    Deterministic mock provider for demos and local development.

    Each flight gets a stable departure offset derived from its code, so
    repeated refreshes move it through scheduled -> in-air -> landed.
    """

    # (lat, lon) of common hubs used as demo flight paths
    HUBS = [
        (40.6413, -73.7781),   # JFK
        (33.9416, -118.4085),  # LAX
        (41.9742, -87.9073),   # ORD
        (32.8998, -97.0403),   # DFW
        (33.6407, -84.4277),   # ATL
        (51.4700, -0.4543),    # LHR
        (49.0097, 2.5479),     # CDG
        (43.6777, -79.6248),   # YYZ
    ]

    FLIGHT_MINUTES = 180

    def __init__(self, clock=utcnow):
        self._clock = clock

    def fetch_status(self, airline: str, flight_number: str) -> ObservedStatus:
        rng = random.Random(f'{airline.strip().upper()}|{flight_number.strip().upper()}')

        origin = rng.choice(self.HUBS)
        destination = rng.choice([h for h in self.HUBS if h != origin])

        now = self._clock()
        # Departure at a fixed minute of the current UTC day
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        departure = day_start + timedelta(minutes=rng.randrange(0, 24 * 60))
        elapsed = (now - departure).total_seconds() / 60

        if elapsed < 0:
            return ObservedStatus(status=FlightStatus.SCHEDULED, sampled_at=now)
        if elapsed > self.FLIGHT_MINUTES:
            return ObservedStatus(status=FlightStatus.LANDED, sampled_at=now)

        progress = elapsed / self.FLIGHT_MINUTES
        return ObservedStatus(
            status=FlightStatus.IN_AIR,
            latitude=origin[0] + (destination[0] - origin[0]) * progress,
            longitude=origin[1] + (destination[1] - origin[1]) * progress,
            altitude=10500.0 + rng.uniform(-600, 600),
            velocity=820.0 + rng.uniform(-60, 60),
            heading=float(rng.randrange(0, 360)),
            sampled_at=now,
        )

    @property
    def stats(self) -> dict:
        return {'provider': 'demo'}


def build_provider() -> StatusProvider:
    """Create the provider selected by configuration."""
    if config.provider.demo_mode:
        logger.info('Status provider running in DEMO MODE with mock data')
        return DemoStatusProvider()
    return AviationStackProvider()
