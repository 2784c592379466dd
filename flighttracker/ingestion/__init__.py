"""
Data ingestion module for the flight tracker.

Handles manifest imports, status provider lookups, and the scheduled
refresh pipeline that loads observations into the store.
"""

from flighttracker.ingestion.manifest import ManifestIngestor, IngestReport
from flighttracker.ingestion.provider import (
    AviationStackProvider,
    DemoStatusProvider,
    ObservedStatus,
    StatusProvider,
    build_provider,
)
from flighttracker.ingestion.pipeline import (
    RefreshFailure,
    RefreshReport,
    RefreshScheduler,
    StatusRefresher,
)

__all__ = [
    'ManifestIngestor',
    'IngestReport',
    'AviationStackProvider',
    'DemoStatusProvider',
    'ObservedStatus',
    'StatusProvider',
    'build_provider',
    'RefreshFailure',
    'RefreshReport',
    'RefreshScheduler',
    'StatusRefresher',
]
