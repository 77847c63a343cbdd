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
"""In-memory response cache for Renogy Open API calls."""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger('renogy-local')

# Upstream data refreshes roughly once a minute
CACHE_TTL_SECONDS = 60.0


class CacheEntry:
    """Raw response payload with the time it was stored."""

    __slots__ = ('data', 'created_at')

    def __init__(self, data: Any, created_at: float):
        self.data = data
        self.created_at = created_at

    def __repr__(self) -> str:
        return f"<CacheEntry created_at={self.created_at}>"


class ResponseCache:
    """Time-bounded key/value store for raw upstream payloads.

    Entries expire lazily: an entry older than the TTL is dropped the next
    time it is read, there is no background sweep. The cache is unbounded,
    which is fine for a fixed set of endpoints and a handful of devices.
    """

    def __init__(self, ttl: float = CACHE_TTL_SECONDS, clock: Callable[[], float] = time.time):
        """Initialize the cache.

        Args:
            ttl: Maximum entry age in seconds
            clock: Returns the current time in seconds (injectable for tests)
        """
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    @staticmethod
    def make_key(endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Build a deterministic key from endpoint path and parameters."""
        serialized = json.dumps(params or {}, sort_keys=True, separators=(',', ':'), default=str)
        return f"{endpoint}:{serialized}"

    def get(self, key: str) -> Optional[Any]:
        """Return the cached payload, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.created_at > self.ttl:
            del self._entries[key]
            logger.debug(f"Cache expired: {key}")
            return None

        return entry.data

    def set(self, key: str, value: Any) -> None:
        """Store a payload, replacing any previous entry for the key."""
        self._entries[key] = CacheEntry(value, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        """Raw presence check, ignores expiry."""
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
