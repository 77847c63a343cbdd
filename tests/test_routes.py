import pytest
from fastapi.testclient import TestClient

from conftest import FakeRenogyClient
from renogy_local.exceptions import RenogyApiError
from renogy_local.routes import create_app, register_routes


def make_test_client(cloud_api, **kwargs):
    app = create_app()
    register_routes(app, lambda: cloud_api, **kwargs)
    return TestClient(app)


class FailingClient(FakeRenogyClient):
    """Every device call fails with the given error."""

    def __init__(self, error, **kwargs):
        super().__init__(list_error=error, **kwargs)
        self.error = error

    async def get_latest_data(self, device_id):
        raise self.error

    async def get_history(self, device_id, year=None, month=None, utc_offset_hours=None):
        raise self.error


def test_devices_passthrough(fake_client):
    response = make_test_client(fake_client).get("/api/devices")

    assert response.status_code == 200
    assert response.json() == fake_client.devices


@pytest.mark.parametrize("path,call", [
    ("/api/devices/bat-1/datamap", 'datamap'),
    ("/api/devices/bat-1/latest", 'latest'),
    ("/api/devices/bat-1/alarms", 'alarms'),
    ("/api/devices/bat-1/logs", 'logs'),
])
def test_device_endpoints_passthrough(fake_client, path, call):
    response = make_test_client(fake_client).get(path)

    assert response.status_code == 200
    assert fake_client.calls == [(call, 'bat-1')]


def test_latest_returns_vendor_payload(fake_client):
    response = make_test_client(fake_client).get("/api/devices/bat-1/latest")

    assert response.json() == {'data': {'batteryLevel': 72, 'presentVolts': 13.1}}


def test_history_forwards_query(fake_client):
    response = make_test_client(fake_client).get("/api/devices/bat-1/history?year=2024&month=3&utcOffsetHours=2")

    assert response.status_code == 200
    assert response.json() == {'deviceId': 'bat-1', 'year': '2024', 'month': '3', 'utcOffsetHours': '2'}


def test_history_accepts_fractional_offset(fake_client):
    response = make_test_client(fake_client).get("/api/devices/bat-1/history?utcOffsetHours=5.5")

    assert response.status_code == 200
    assert response.json()['utcOffsetHours'] == '5.5'


def test_history_bad_query_is_left_to_upstream():
    error = RenogyApiError("Request failed with status code 400", status=400, details={'message': 'invalid year'})
    response = make_test_client(FailingClient(error)).get("/api/devices/x/history?year=abc")

    assert response.status_code == 400
    assert response.json() == {'error': 'Failed to fetch device history', 'details': {'message': 'invalid year'}}


def test_history_leaves_defaults_to_client(fake_client):
    response = make_test_client(fake_client).get("/api/devices/bat-1/history")

    assert response.json() == {'deviceId': 'bat-1', 'year': None, 'month': None, 'utcOffsetHours': None}


def test_upstream_status_is_mirrored():
    error = RenogyApiError("Request failed with status code 404", status=404, details={'message': 'no such device'})
    response = make_test_client(FailingClient(error)).get("/api/devices/x/latest")

    assert response.status_code == 404
    assert response.json() == {'error': 'Failed to fetch latest device data', 'details': {'message': 'no such device'}}


def test_transport_error_is_500():
    error = RenogyApiError("connection refused")
    response = make_test_client(FailingClient(error)).get("/api/devices/x/history")

    assert response.status_code == 500
    assert response.json() == {'error': 'Failed to fetch device history', 'details': 'connection refused'}


def test_devices_error_envelope():
    error = RenogyApiError("Request failed with status code 403", status=403, details='forbidden')
    response = make_test_client(FailingClient(error)).get("/api/devices")

    assert response.status_code == 403
    assert response.json() == {'error': 'Failed to fetch devices', 'details': 'forbidden'}


def test_credential_check_without_credentials():
    client = FakeRenogyClient(credentials=False)
    response = make_test_client(client).get("/api/test")

    assert response.status_code == 500
    assert response.json()['error'] == 'Missing credentials'
    assert 'RENOGY_SECRET_KEY' in response.json()['details']
    assert client.calls == []


def test_credential_check_success(fake_client):
    response = make_test_client(fake_client).get("/api/test")

    body = response.json()
    assert response.status_code == 200
    assert body['success'] is True
    assert body['message'] == 'API credentials are working!'
    assert body['deviceCount'] == 1
    assert body['devices'] == fake_client.devices


def test_credential_check_failure():
    error = RenogyApiError(
        "Request failed with status code 401",
        status=401,
        status_text='Unauthorized',
        details={'message': 'invalid signature'},
        headers={'content-type': 'application/json'}
    )
    response = make_test_client(FailingClient(error)).get("/api/test")

    assert response.status_code == 401
    assert response.json() == {
        'success': False,
        'error': 'API test failed',
        'statusCode': 401,
        'statusText': 'Unauthorized',
        'details': {'message': 'invalid signature'},
        'headers': {'content-type': 'application/json'},
    }


def test_dashboard(fake_client):
    response = make_test_client(fake_client).get("/api/dashboard")

    assert response.status_code == 200
    hub = response.json()[0]
    assert len(hub['sublist']) == 2
    assert hub['sublist'][1]['latestData']['batteryLevel'] == 72


def test_dashboard_fatal_path_makes_no_enrichment_calls():
    client = FakeRenogyClient(list_error=RenogyApiError("connection refused"))
    response = make_test_client(client).get("/api/dashboard")

    assert response.status_code == 500
    assert response.json() == {'error': 'Failed to fetch dashboard data', 'details': 'connection refused'}
    assert client.calls == [('list', None)]


def test_view_for_house(fake_client):
    response = make_test_client(fake_client).get("/api/view/house")

    body = response.json()
    assert response.status_code == 200
    assert body['name'] == 'House'
    assert body['solar']['power'] == '123.4 W'
    assert body['combined']['label'] == '72%'
    assert body['combined']['color'] == 'green'


def test_view_for_all_locations(fake_client):
    response = make_test_client(fake_client).get("/api/view")

    locations = response.json()['locations']
    assert set(locations) == {'house', 'shed'}
    assert locations['shed']['combined'] is None
    assert locations['shed']['solar']['power'] == '-- W'


def test_view_unknown_location(fake_client):
    response = make_test_client(fake_client).get("/api/view/garage")

    assert response.status_code == 404
    assert response.json()['error'] == 'No data for garage'


def test_view_without_devices():
    response = make_test_client(FakeRenogyClient(devices=[])).get("/api/view/house")

    assert response.status_code == 404
    assert response.json()['error'] == 'No device data available'


def test_view_upstream_failure():
    error = RenogyApiError("Request failed with status code 401", status=401, details='bad key')
    response = make_test_client(FakeRenogyClient(list_error=error)).get("/api/view/house")

    assert response.status_code == 401
    assert response.json() == {'error': 'Failed to fetch dashboard data', 'details': 'bad key'}


def test_api_info(fake_client):
    response = make_test_client(fake_client).get("/api")

    body = response.json()
    assert body['service'] == 'Renogy Local'
    assert body['credentials_configured'] is True
    assert body['endpoints']['dashboard'] == '/api/dashboard'


def test_root_serves_kiosk_page(fake_client):
    response = make_test_client(fake_client).get("/")

    assert response.status_code == 200
    assert response.headers['content-type'].startswith('text/html')


def test_cors_allows_any_origin(fake_client):
    response = make_test_client(fake_client).get("/api/devices", headers={'Origin': 'http://kiosk.local'})

    assert response.headers['access-control-allow-origin'] == '*'
