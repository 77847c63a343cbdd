import asyncio
import copy

import pytest

from renogy_local.cache import ResponseCache
from renogy_local.exceptions import RenogyApiError


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeRenogyClient:
    """Stands in for RenogyCloudAPI with canned payloads and injected failures."""

    def __init__(self, devices=None, latest=None, alarms=None, fail_latest=(), fail_alarms=(),
                 list_error=None, credentials=True, delay=0):
        self.devices = devices if devices is not None else []
        self.latest = latest or {}
        self.alarms = alarms or {}
        self.fail_latest = set(fail_latest)
        self.fail_alarms = set(fail_alarms)
        self.list_error = list_error
        self.credentials = credentials
        self.delay = delay
        self.cache = ResponseCache()
        self.upstream_calls = 0
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    def has_credentials(self):
        return self.credentials

    async def _call(self, name, device_id=None):
        self.calls.append((name, device_id))
        self.upstream_calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

    async def get_device_list(self):
        await self._call('list')
        if self.list_error is not None:
            raise self.list_error
        return copy.deepcopy(self.devices)

    async def get_latest_data(self, device_id):
        await self._call('latest', device_id)
        if device_id in self.fail_latest:
            raise RenogyApiError("Request failed with status code 500", status=500)
        return {'data': copy.deepcopy(self.latest.get(device_id, {}))}

    async def get_alarms(self, device_id):
        await self._call('alarms', device_id)
        if device_id in self.fail_alarms:
            raise RenogyApiError("Timed out after 10.0s")
        return copy.deepcopy(self.alarms.get(device_id, []))

    async def get_datamap(self, device_id):
        await self._call('datamap', device_id)
        return {'deviceId': device_id, 'fields': ['batteryLevel']}

    async def get_history(self, device_id, year=None, month=None, utc_offset_hours=None):
        await self._call('history', device_id)
        return {'deviceId': device_id, 'year': year, 'month': month, 'utcOffsetHours': utc_offset_hours}

    async def get_logs(self, device_id):
        await self._call('logs', device_id)
        return []


def hub_devices():
    """One hub with a house controller and one battery."""
    return [{
        'deviceId': 'hub-1',
        'name': 'Renogy ONE',
        'category': 'Hub',
        'sublist': [
            {'deviceId': 'ctl-house', 'name': 'Controller House', 'category': 'Controller'},
            {'deviceId': 'bat-1', 'name': 'Battery 1', 'category': 'Battery'},
        ],
    }]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_client():
    return FakeRenogyClient(
        devices=hub_devices(),
        latest={
            'ctl-house': {'solarWatts': 123.4, 'solarAmps': 6.2, 'solarVolts': 19.9},
            'bat-1': {'batteryLevel': 72, 'presentVolts': 13.1},
        },
        alarms={'bat-1': [{'code': 'LOW_TEMP'}]},
    )
