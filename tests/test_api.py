import io

import pytest

from flighttracker.app import create_app
from flighttracker.exceptions import StoreUnavailable

from conftest import FakeProvider

MANIFEST = (
    'name,airline,flight_number,departure_airport,arrival_airport,departure_date\n'
    'Ada Lovelace,DL,100,JFK,LAX,2025-06-01\n'
    'Grace Hopper,,300,BOS,SFO,2025-06-02\n'
    'Alan Turing,UA,200,ORD,DFW,2025-06-01\n'
)


@pytest.fixture
def app(store):
    app = create_app(store=store, provider=FakeProvider(failing={'200'}), start_refresher=False)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _upload(client, text=MANIFEST):
    return client.post(
        '/api/upload',
        data={'file': (io.BytesIO(text.encode()), 'passengers.csv')},
        content_type='multipart/form-data',
    )


def test_upload_multipart_manifest(client):
    response = _upload(client)

    assert response.status_code == 200
    assert response.get_json() == {
        'success': True,
        'message': 'File processed successfully',
        'ingested': 2,
        'skipped': 1,
    }


def test_upload_raw_body(client):
    response = client.post('/api/upload', data=MANIFEST, content_type='text/csv')

    assert response.status_code == 200
    assert response.get_json()['ingested'] == 2


def test_upload_with_bad_header_is_rejected(client, store):
    response = _upload(client, 'name,airline\nAda,DL\n')

    assert response.status_code == 400
    body = response.get_json()
    assert body['success'] is False
    assert 'flight_number' in body['missing_columns']
    assert store.list_passengers() == []


def test_empty_upload_is_rejected(client):
    response = client.post('/api/upload', data=b'', content_type='text/csv')

    assert response.status_code == 400


def test_non_utf8_upload_is_rejected(client, store):
    data = MANIFEST.replace('Ada Lovelace', 'Ada Lovelac\xe9').encode('latin-1')

    response = client.post('/api/upload', data=data, content_type='text/csv')

    assert response.status_code == 400
    assert response.get_json()['success'] is False
    assert 'UTF-8' in response.get_json()['message']
    assert store.list_passengers() == []


def test_list_flights_before_and_after_refresh(app, client):
    _upload(client)

    before = client.get('/api/flights').get_json()
    assert [f['status'] for f in before] == ['unknown', 'unknown']
    assert 'latitude' not in before[0]

    app.config['REFRESH_SCHEDULER'].run_once()

    after = client.get('/api/flights').get_json()
    assert after[0]['passengerName'] == 'Ada Lovelace'
    assert after[0]['status'] == 'in-air'
    assert after[0]['latitude'] == 40.1
    assert after[1]['status'] == 'unknown'
    assert 'latitude' not in after[1]


def test_get_single_flight(client):
    _upload(client)
    first_id = client.get('/api/flights').get_json()[0]['id']

    response = client.get(f'/api/flights/{first_id}')

    assert response.status_code == 200
    assert response.get_json()['flightNumber'] == '100'
    assert client.get('/api/flights/9999').status_code == 404


def test_clear_passengers(app, client):
    _upload(client)
    app.config['REFRESH_SCHEDULER'].run_once()

    response = client.post('/api/passengers/clear')

    assert response.status_code == 200
    assert response.get_json() == {
        'success': True,
        'message': 'All passenger data cleared successfully',
        'observations_deleted': 1,
        'passengers_deleted': 2,
    }
    assert client.get('/api/flights').get_json() == []


def test_clear_requires_post(client):
    assert client.get('/api/passengers/clear').status_code == 405


def test_status_endpoint(app, client):
    _upload(client)
    app.config['REFRESH_SCHEDULER'].run_once()

    body = client.get('/api/status').get_json()

    assert body['database']['connected'] is True
    assert body['database']['counts'] == {'passengers': 2, 'observations': 1}
    assert body['refresh']['run_count'] == 1
    assert len(body['refresh']['last_report']['failed']) == 1
    # Scheduler was not started in tests
    assert body['status'] == 'degraded'


def test_manual_refresh_conflict(app, client):
    scheduler = app.config['REFRESH_SCHEDULER']

    scheduler._run_lock.acquire()
    try:
        response = client.post('/api/status/refresh')
    finally:
        scheduler._run_lock.release()

    assert response.status_code == 409


def test_store_unavailable_maps_to_503(client, store, monkeypatch):
    def unavailable():
        raise StoreUnavailable('unable to open database file')

    monkeypatch.setattr(store, 'list_passengers', unavailable)

    response = client.get('/api/flights')

    assert response.status_code == 503
    assert response.get_json() == {'error': 'Storage unavailable'}


def test_cors_headers_on_api(client):
    response = client.get('/api/flights', headers={'Origin': 'http://localhost:3000'})

    assert response.headers.get('Access-Control-Allow-Origin') == '*'


def test_health(client):
    assert client.get('/health').get_json() == {'status': 'ok'}
