from datetime import datetime

from flighttracker.ingestion.manifest import ManifestIngestor
from flighttracker.ingestion.pipeline import StatusRefresher
from flighttracker.ingestion.provider import ObservedStatus
from flighttracker.models import FlightStatus, Passenger, StatusObservation
from flighttracker.resolver import LatestStateResolver, resolve_view

from conftest import HEADER, FakeProvider, passenger_row

TELEMETRY_KEYS = {'latitude', 'longitude', 'altitude', 'velocity', 'heading', 'lastUpdate'}


def test_passenger_without_observation_is_unknown(seeded_store):
    views = LatestStateResolver(seeded_store).current_view()

    assert len(views) == 2
    for view in views:
        data = view.to_dict()
        assert data['status'] == 'unknown'
        assert TELEMETRY_KEYS.isdisjoint(data)


def test_view_carries_latest_telemetry(seeded_store):
    pid = seeded_store.list_passengers()[0].id
    seeded_store.append(pid, ObservedStatus(FlightStatus.SCHEDULED), observed_at=datetime(2025, 6, 1, 8))
    seeded_store.append(pid, ObservedStatus(
        FlightStatus.IN_AIR,
        latitude=41.9,
        longitude=-87.9,
        altitude=11000.0,
        velocity=870.0,
        heading=270.0,
    ), observed_at=datetime(2025, 6, 1, 9))

    data = LatestStateResolver(seeded_store).current_view()[0].to_dict()

    assert data == {
        'id': pid,
        'passengerName': 'Ada Lovelace',
        'airline': 'DL',
        'flightNumber': '100',
        'departureAirport': 'JFK',
        'arrivalAirport': 'LAX',
        'departureDate': '2025-06-01',
        'status': 'in-air',
        'latitude': 41.9,
        'longitude': -87.9,
        'altitude': 11000.0,
        'velocity': 870.0,
        'heading': 270.0,
        'lastUpdate': '2025-06-01T09:00:00',
    }


def test_observation_without_telemetry_reports_nulls(seeded_store):
    pid = seeded_store.list_passengers()[0].id
    seeded_store.append(pid, ObservedStatus(FlightStatus.LANDED))

    data = LatestStateResolver(seeded_store).view_for(pid).to_dict()

    assert data['status'] == 'landed'
    assert data['latitude'] is None
    assert 'lastUpdate' in data


def test_last_update_prefers_provider_sample_time(seeded_store):
    pid = seeded_store.list_passengers()[0].id
    seeded_store.append(
        pid,
        ObservedStatus(FlightStatus.IN_AIR, latitude=1.0, longitude=2.0, sampled_at=datetime(2025, 6, 1, 8, 55)),
        observed_at=datetime(2025, 6, 1, 9),
    )

    data = LatestStateResolver(seeded_store).view_for(pid).to_dict()

    assert data['lastUpdate'] == '2025-06-01T08:55:00'


def test_view_for_missing_passenger(store):
    assert LatestStateResolver(store).view_for(7) is None


def test_view_is_empty_after_clear(seeded_store, provider):
    StatusRefresher(seeded_store, provider_timeout=5).refresh_all(provider)

    seeded_store.clear_all()

    assert LatestStateResolver(seeded_store).current_view() == []
    assert seeded_store.latest_for_all() == {}


def test_resolve_view_is_ordered_by_id():
    later = Passenger(id=5, name='B', airline='UA', flight_number='2', departure_airport='ORD',
                      arrival_airport='SFO', departure_date='2025-06-02')
    earlier = Passenger(id=3, name='A', airline='DL', flight_number='1', departure_airport='JFK',
                        arrival_airport='LAX', departure_date='2025-06-01')
    observation = StatusObservation(id=1, passenger_id=5, status='landed', observed_at=datetime(2025, 6, 2))

    views = resolve_view([later, earlier], {5: observation, 3: None})

    assert [v.id for v in views] == [3, 5]
    assert views[0].status == 'unknown'
    assert views[1].status == 'landed'


def test_ingest_refresh_view_scenario(store):
    report = ManifestIngestor(store).ingest([
        HEADER,
        passenger_row('Ada Lovelace', 'DL', '100'),
        ('Grace Hopper', '', '300', 'BOS', 'SFO', '2025-06-02'),
        passenger_row('Alan Turing', 'UA', '200'),
    ])
    assert report.ingested == 2
    first, second = report.passenger_ids

    refresh = StatusRefresher(store, provider_timeout=5).refresh_all(FakeProvider(failing={'200'}))
    assert refresh.succeeded == [first]
    assert [f.passenger_id for f in refresh.failed] == [second]

    views = {v['id']: v for v in (view.to_dict() for view in LatestStateResolver(store).current_view())}
    assert views[first]['status'] == 'in-air'
    assert views[first]['latitude'] == 40.1
    assert views[second]['status'] == 'unknown'
    assert 'latitude' not in views[second]
