#
# Copyright 2025 The TadoLocal and AmpScm contributors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

"""Dashboard aggregation - merges the device tree with per-device readings.

Fan-out strategy:
=================

1. Fetch /device/list. This is the only hard failure: without a device
   list there is no dashboard.
2. For every device, fetch latest data and alarms concurrently. Each of
   those calls is wrapped in a FetchResult so one failure never aborts a
   sibling.
3. Sub-devices are enriched the same way, concurrently with their parent.
   A sub-device whose calls fail stays in the list with empty readings and
   an 'error' marker.

All upstream calls of one build share a semaphore so a large device tree
cannot open an unbounded number of connections.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .exceptions import RenogyApiError

logger = logging.getLogger('renogy-local')

DEFAULT_MAX_CONCURRENCY = 8


class FetchResult:
    """Outcome of one upstream call: either a payload or the failure cause."""

    __slots__ = ('ok', 'value', 'error')

    def __init__(self, ok: bool, value: Any = None, error: Optional[str] = None):
        self.ok = ok
        self.value = value
        self.error = error

    @classmethod
    def success(cls, value: Any) -> 'FetchResult':
        return cls(True, value=value)

    @classmethod
    def failure(cls, error: str) -> 'FetchResult':
        return cls(False, error=error)

    def __repr__(self) -> str:
        if self.ok:
            return "<FetchResult ok>"
        return f"<FetchResult failed: {self.error}>"


def _latest_readings(result: FetchResult) -> Dict[str, Any]:
    """Readings mapping from a latest-data payload, empty on failure."""
    if not result.ok or not isinstance(result.value, dict):
        return {}
    return result.value.get('data') or {}


def _alarm_list(result: FetchResult) -> List[Any]:
    """Alarm list from an alarm payload, empty on failure."""
    if not result.ok or not result.value:
        return []
    return result.value


class DashboardAggregator:
    """Builds the combined dashboard tree from the Renogy Open API."""

    def __init__(self, client, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        """
        Args:
            client: RenogyCloudAPI (or anything with the same get_* coroutines)
            max_concurrency: Maximum in-flight upstream calls per build
        """
        self.client = client
        self.max_concurrency = max_concurrency

    async def _fetch(self, semaphore: asyncio.Semaphore, coro_fn, device_id: str) -> FetchResult:
        async with semaphore:
            try:
                return FetchResult.success(await coro_fn(device_id))
            except RenogyApiError as e:
                return FetchResult.failure(str(e))

    async def _enrich(self, semaphore: asyncio.Semaphore, device: Dict[str, Any], top_level: bool) -> Dict[str, Any]:
        """Attach latestData/alarms to a device and, recursively, its sublist."""
        device_id = device.get('deviceId')
        children = device.get('sublist') or []

        latest, alarms, *enriched_children = await asyncio.gather(
            self._fetch(semaphore, self.client.get_latest_data, device_id),
            self._fetch(semaphore, self.client.get_alarms, device_id),
            *(self._enrich(semaphore, child, top_level=False) for child in children)
        )

        record = dict(device)
        record['latestData'] = _latest_readings(latest)
        record['alarms'] = _alarm_list(alarms)
        if top_level or 'sublist' in device:
            record['sublist'] = enriched_children

        errors = [r.error for r in (latest, alarms) if not r.ok]
        if errors:
            record['error'] = '; '.join(errors)
            logger.warning(f"Partial data for device {device_id} ({device.get('name')}): {record['error']}")

        return record

    async def build_dashboard(self) -> List[Dict[str, Any]]:
        """
        Build the enriched device list.

        Returns:
            List of top-level devices, each with latestData, alarms and an
            enriched sublist

        Raises:
            RenogyApiError: The device list itself could not be fetched
        """
        devices = await self.client.get_device_list()
        if not isinstance(devices, list):
            raise RenogyApiError("Unexpected device list payload", details=devices)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        dashboard = await asyncio.gather(
            *(self._enrich(semaphore, device, top_level=True) for device in devices)
        )

        logger.debug(f"Built dashboard with {len(dashboard)} top-level device(s)")
        return list(dashboard)
