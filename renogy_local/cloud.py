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

"""Renogy Open API client.

Call strategy:
==============

- Every call is an authenticated GET signed with HMAC-SHA256 (see signer.py)
- Responses are cached in memory for 60 seconds, keyed by endpoint + params
- Cache hits skip signing and network entirely; the vendor rejects stale
  timestamps, so a signature is only ever computed right before sending
- Each call is bounded by a timeout (10s by default)
- Concurrent misses for the same key are not coalesced: both go upstream
  and the last response wins the cache slot

This client is the only place that talks to the network or the cache.
"""

import asyncio
import json
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

import aiohttp

from .cache import ResponseCache
from .exceptions import MissingCredentialsError, RenogyApiError
from .signer import calc_sign, serialize_params, timestamp_ms

logger = logging.getLogger('renogy-local')

RENOGY_BASE_URL = "https://openapi.renogy.com"
DEFAULT_REQUEST_TIMEOUT = 10.0


class RenogyCloudAPI:
    """
    Renogy Open API client with request signing and response caching.

    Single credential, single process. The aiohttp session is created on
    first use and owned by this client unless one is passed in.
    """

    def __init__(
        self,
        access_key: Optional[str],
        secret_key: Optional[str],
        base_url: str = RENOGY_BASE_URL,
        cache: Optional[ResponseCache] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], float] = time.time
    ):
        """Initialize Renogy Open API client.

        Args:
            access_key: Account access key (sent as Access-Key header)
            secret_key: Account secret key (used for signing only)
            base_url: Vendor API base URL
            cache: Response cache, a fresh 60s cache if omitted
            timeout: Per-call timeout in seconds
            session: Optional shared aiohttp session, never closed by us
            clock: Returns current time in seconds (injectable for tests)
        """
        self.access_key = access_key
        self.secret_key = secret_key
        self.base_url = base_url.rstrip('/')
        self.cache = cache if cache is not None else ResponseCache()
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._session_owner = session is None
        self._clock = clock

        # Upstream call counter (for status reporting)
        self.upstream_calls = 0

    def has_credentials(self) -> bool:
        """Check if both access key and secret key are configured."""
        return bool(self.access_key) and bool(self.secret_key)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._session_owner = True
        return self._session

    async def close(self):
        """Close the aiohttp session if we created it."""
        if self._session_owner and self._session is not None and not self._session.closed:
            await self._session.close()
            logger.debug("Closed Renogy API session")
        self._session = None

    @staticmethod
    async def _read_body(resp) -> Any:
        """Decode an error body as JSON when possible, raw text otherwise."""
        text = await resp.text()
        try:
            return json.loads(text)
        except ValueError:
            return text

    async def request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Fetch an endpoint, serving from cache when fresh.

        Args:
            endpoint: API path (e.g. '/device/list')
            params: Optional query parameters

        Returns:
            Decoded JSON payload

        Raises:
            MissingCredentialsError: Access key or secret key not configured
            RenogyApiError: Transport failure, timeout or non-2xx response
        """
        cache_key = ResponseCache.make_key(endpoint, params)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit: {cache_key}")
            return cached

        if not self.has_credentials():
            raise MissingCredentialsError(
                "Missing credentials",
                details="RENOGY_ACCESS_KEY or RENOGY_SECRET_KEY not configured"
            )

        param_str = serialize_params(params)
        timestamp = timestamp_ms(self._clock)
        signature = calc_sign(endpoint, param_str, timestamp, self.secret_key)

        url = f"{self.base_url}{endpoint}"
        if param_str:
            url = f"{url}?{param_str}"

        headers = {
            'Access-Key': self.access_key,
            'Timestamp': str(timestamp),
            'Signature': signature,
        }

        session = self._get_session()
        self.upstream_calls += 1
        logger.info(f"API call: {endpoint}")

        try:
            async with session.get(url, headers=headers, timeout=self._timeout) as resp:
                if resp.status < 200 or resp.status >= 300:
                    details = await self._read_body(resp)
                    logger.error(f"Renogy API error for '{endpoint}': HTTP {resp.status} - {details}")
                    raise RenogyApiError(
                        f"Request failed with status code {resp.status}",
                        status=resp.status,
                        status_text=resp.reason,
                        details=details,
                        headers=dict(resp.headers)
                    )

                data = await resp.json(content_type=None)

        except asyncio.TimeoutError:
            logger.error(f"Renogy API timeout for '{endpoint}'")
            raise RenogyApiError(f"Timed out after {self._timeout.total}s")
        except aiohttp.ClientError as e:
            logger.error(f"Renogy API error for '{endpoint}': {e}")
            raise RenogyApiError(str(e) or type(e).__name__)
        except ValueError as e:
            logger.error(f"Invalid JSON from '{endpoint}': {e}")
            raise RenogyApiError(f"Invalid JSON response: {e}")

        self.cache.set(cache_key, data)
        return data

    # ========================================================================
    # Renogy Open API Methods
    # ========================================================================

    async def get_device_list(self) -> Any:
        """Get all devices (top-level devices with their sublist)."""
        return await self.request('/device/list')

    async def get_datamap(self, device_id: str) -> Any:
        """Get the field map describing a device's readings."""
        return await self.request(f'/device/datamap/{device_id}')

    async def get_latest_data(self, device_id: str) -> Any:
        """Get the latest reading snapshot, readings live under 'data'."""
        return await self.request(f'/device/data/latest/{device_id}')

    async def get_history(
        self,
        device_id: str,
        year: Optional[Union[int, str]] = None,
        month: Optional[Union[int, str]] = None,
        utc_offset_hours: Optional[Union[float, str]] = None
    ) -> Any:
        """
        Get historical yield for a month.

        Args:
            device_id: Device ID
            year: Year, defaults to the current year
            month: Month (1-12), defaults to the current month
            utc_offset_hours: Timezone offset in hours (e.g. 5.5), defaults to 0
        """
        now = datetime.now()
        return await self.request(f'/device/data/history/{device_id}', {
            'year': year or now.year,
            'month': month or now.month,
            'utcOffsetHours': utc_offset_hours or 0,
        })

    async def get_alarms(self, device_id: str) -> Any:
        """Get active alarms for a device."""
        return await self.request(f'/device/alarm/{device_id}')

    async def get_logs(self, device_id: str) -> Any:
        """Get device logs (Zigbee devices)."""
        return await self.request(f'/device/log/{device_id}')
