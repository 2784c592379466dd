"""
Passenger manifest ingestion.

Parses tabular manifest rows (usually an uploaded CSV) into passengers.

Expected header (any order, case-insensitive):
name,airline,flight_number,departure_airport,arrival_airport,departure_date

Policy:
- Header problems reject the whole batch (SchemaMismatch, nothing written)
- Row problems skip that row only and are counted
- Re-ingesting the same manifest creates duplicate passengers

Usage:
    from flighttracker.ingestion.manifest import ManifestIngestor

    ingestor = ManifestIngestor(store)
    report = ingestor.ingest_csv('passengers.csv')
    print(report.ingested, report.skipped)
"""

import csv
import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, TextIO, Union

from flighttracker.exceptions import ManifestEncodingError, SchemaMismatch
from flighttracker.store import PASSENGER_FIELDS, TrackerStore

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')


@dataclass(frozen=True)
class IngestReport:
    """Outcome of one manifest ingest."""
    ingested: int
    skipped: int
    passenger_ids: tuple = ()

    @property
    def total_rows(self) -> int:
        return self.ingested + self.skipped

    def to_dict(self) -> dict:
        return {
            'ingested': self.ingested,
            'skipped': self.skipped,
        }


def normalize_header(name: str) -> str:
    """
    Normalize a header cell to its snake_case field name.

    'Flight Number', 'flight-number', 'flightNumber' and ' FLIGHT_NUMBER '
    all become 'flight_number'.
    """
    name = (name or '').strip().lstrip('\ufeff')
    name = _CAMEL_BOUNDARY.sub('_', name)
    name = re.sub(r'[\s\-]+', '_', name)
    return name.lower()


def resolve_columns(header: Sequence[str]) -> Dict[str, int]:
    """
    Map each required field to its column index in ``header``.

    Raises SchemaMismatch listing every required field that is absent.
    """
    positions: Dict[str, int] = {}
    for index, cell in enumerate(header):
        field = normalize_header(cell)
        # First occurrence wins for duplicated headers
        if field in PASSENGER_FIELDS and field not in positions:
            positions[field] = index

    missing = [field for field in PASSENGER_FIELDS if field not in positions]
    if missing:
        raise SchemaMismatch(missing)
    return positions


def parse_row(row: Sequence[str], columns: Dict[str, int]) -> Optional[dict]:
    """
    Extract a passenger record from one data row.

    Returns None when the row is empty or any required value is missing
    or blank.
    """
    if not row or not any((cell or '').strip() for cell in row):
        return None

    record = {}
    for field, index in columns.items():
        if index >= len(row):
            return None
        value = (row[index] or '').strip()
        if not value:
            return None
        record[field] = value
    return record


class ManifestIngestor:
    """Turns manifest rows into stored passengers."""

    def __init__(self, store: TrackerStore):
        self.store = store

    def ingest(self, rows: Iterable[Sequence[str]]) -> IngestReport:
        """
        Ingest manifest rows; the first row is the header.

        Raises SchemaMismatch (with nothing written) if the header is absent
        or lacks a required field. Returns counts of stored and skipped rows.
        """
        iterator = iter(rows)
        header = next(iterator, None)
        if header is None:
            raise SchemaMismatch(PASSENGER_FIELDS)

        columns = resolve_columns(header)

        records: List[dict] = []
        skipped = 0
        for line_number, row in enumerate(iterator, start=2):
            record = parse_row(row, columns)
            if record is None:
                skipped += 1
                logger.warning(f'Skipping manifest row {line_number}: empty or missing required value')
                continue
            records.append(record)

        ids = self.store.add_passengers(records)

        report = IngestReport(ingested=len(ids), skipped=skipped, passenger_ids=tuple(ids))
        logger.info(f'Manifest ingested: {report.ingested} passengers, {report.skipped} rows skipped')
        return report

    def ingest_csv(self, source: Union[str, Path, TextIO]) -> IngestReport:
        """
        Ingest a CSV manifest from a path or an open text stream.
        """
        if isinstance(source, (str, Path)):
            with open(source, 'r', encoding='utf-8-sig', newline='') as f:
                return self.ingest(csv.reader(f))
        return self.ingest(csv.reader(source))

    def ingest_bytes(self, data: bytes) -> IngestReport:
        """
        Ingest CSV content received as raw bytes (e.g., an upload).

        Raises ManifestEncodingError, with nothing written, if the bytes are
        not valid UTF-8.
        """
        try:
            text = data.decode('utf-8-sig')
        except UnicodeDecodeError as e:
            raise ManifestEncodingError(f'Manifest is not valid UTF-8: {e.reason}') from e
        return self.ingest(csv.reader(io.StringIO(text, newline='')))
