"""Exception hierarchy for the flight tracker core.

Per-row and per-passenger problems are absorbed into reports
(``IngestReport.skipped``, ``RefreshReport.failed``); only the errors below
propagate to callers.
"""

from typing import Iterable, Optional


class TrackerError(Exception):
    """Base error for all tracker failures."""


class IngestError(TrackerError):
    """Manifest ingestion failed as a whole."""


class SchemaMismatch(IngestError):
    """Manifest header row is absent or lacks required columns."""

    def __init__(self, missing: Iterable[str]):
        self.missing = sorted(missing)
        super().__init__(f'Manifest is missing required columns: {", ".join(self.missing)}')


class ManifestEncodingError(IngestError):
    """Manifest bytes are not valid UTF-8 text."""


class StoreError(TrackerError):
    """Passenger/observation storage failure."""


class UnknownPassenger(StoreError):
    """Observation write referenced a passenger that does not exist."""

    def __init__(self, passenger_id: int):
        self.passenger_id = passenger_id
        super().__init__(f'Passenger {passenger_id} does not exist')


class StoreUnavailable(StoreError):
    """Underlying database could not be reached; nothing was committed."""


class ClearPartialFailure(StoreError):
    """Clear operation aborted and was rolled back."""


class ProviderFailure(TrackerError):
    """Status provider could not produce an observation for a flight."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
