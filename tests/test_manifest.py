import io

import pytest

from flighttracker.exceptions import ManifestEncodingError, SchemaMismatch
from flighttracker.ingestion.manifest import ManifestIngestor, normalize_header

from conftest import HEADER, passenger_row


def test_valid_rows_are_ingested(store):
    report = ManifestIngestor(store).ingest([
        HEADER,
        passenger_row('Ada Lovelace'),
        passenger_row('Alan Turing'),
    ])

    assert report.ingested == 2
    assert report.skipped == 0
    assert [p.name for p in store.list_passengers()] == ['Ada Lovelace', 'Alan Turing']


def test_malformed_rows_are_skipped_and_counted(store):
    rows = [
        HEADER,
        passenger_row('Ada Lovelace'),
        ('Grace Hopper', '', '300', 'BOS', 'SFO', '2025-06-02'),  # missing airline
        (),                                                      # empty
        ('Short Row', 'DL'),                                     # truncated
        ('  ', ' ', '', '', '', ''),                             # blank
        passenger_row('Alan Turing'),
    ]

    report = ManifestIngestor(store).ingest(rows)

    assert report.ingested == 2
    assert report.skipped == 4
    assert report.total_rows == 6
    assert len(store.list_passengers()) == 2


def test_missing_required_header_rejects_batch(store):
    header = [h for h in HEADER if h != 'departure_date']

    with pytest.raises(SchemaMismatch) as exc_info:
        ManifestIngestor(store).ingest([header, ('Ada', 'DL', '100', 'JFK', 'LAX')])

    assert exc_info.value.missing == ['departure_date']
    assert store.list_passengers() == []


def test_empty_input_is_schema_mismatch(store):
    with pytest.raises(SchemaMismatch):
        ManifestIngestor(store).ingest([])
    assert store.list_passengers() == []


def test_columns_matched_by_name_not_position(store):
    header = ['Departure Date', 'ARRIVAL_AIRPORT', 'flightNumber', 'Name', 'extra', 'airline', 'departure-airport']
    row = ['2025-07-04', 'SEA', '42', 'Katherine Johnson', 'ignored', 'AS', 'ANC']

    ManifestIngestor(store).ingest([header, row])

    passenger = store.list_passengers()[0]
    assert passenger.name == 'Katherine Johnson'
    assert passenger.airline == 'AS'
    assert passenger.flight_number == '42'
    assert passenger.departure_airport == 'ANC'
    assert passenger.arrival_airport == 'SEA'
    assert passenger.departure_date == '2025-07-04'


def test_values_are_trimmed(store):
    ManifestIngestor(store).ingest([HEADER, ('  Ada  ', ' DL ', ' 100', 'JFK ', ' LAX', '2025-06-01 ')])

    passenger = store.list_passengers()[0]
    assert passenger.name == 'Ada'
    assert passenger.flight_number == '100'


def test_reingest_creates_duplicates(store):
    ingestor = ManifestIngestor(store)
    rows = [HEADER, passenger_row('Ada Lovelace')]

    ingestor.ingest(rows)
    ingestor.ingest(rows)

    passengers = store.list_passengers()
    assert len(passengers) == 2
    assert passengers[0].id != passengers[1].id


def test_ingest_csv_stream_with_bom(store):
    text = '\ufeffname,airline,flight_number,departure_airport,arrival_airport,departure_date\n' \
           'Ada Lovelace,DL,100,JFK,LAX,2025-06-01\n' \
           'Alan Turing,,200,ORD,DFW,2025-06-01\n'

    report = ManifestIngestor(store).ingest_csv(io.StringIO(text))

    assert (report.ingested, report.skipped) == (1, 1)


def test_ingest_csv_path(store, tmp_path):
    path = tmp_path / 'manifest.csv'
    path.write_text(','.join(HEADER) + '\n' + ','.join(passenger_row('Ada Lovelace')) + '\n')

    report = ManifestIngestor(store).ingest_csv(path)

    assert report.ingested == 1
    assert report.passenger_ids == tuple(p.id for p in store.list_passengers())


@pytest.mark.parametrize('raw, expected', [
    ('flight_number', 'flight_number'),
    (' Flight Number ', 'flight_number'),
    ('flight-number', 'flight_number'),
    ('flightNumber', 'flight_number'),
    ('DEPARTURE_AIRPORT', 'departure_airport'),
])
def test_normalize_header(raw, expected):
    assert normalize_header(raw) == expected


def test_invalid_utf8_bytes_are_rejected(store):
    data = 'name,airline,flight_number,departure_airport,arrival_airport,departure_date\n'.encode() \
        + b'Jos\xe9 Garc\xeda,DL,100,JFK,LAX,2025-06-01\n'

    with pytest.raises(ManifestEncodingError):
        ManifestIngestor(store).ingest_bytes(data)

    assert store.list_passengers() == []


def test_utf8_bytes_keep_accented_names(store):
    data = ('name,airline,flight_number,departure_airport,arrival_airport,departure_date\n'
            'José García,DL,100,JFK,LAX,2025-06-01\n').encode('utf-8')

    ManifestIngestor(store).ingest_bytes(data)

    assert [p.name for p in store.list_passengers()] == ['José García']
