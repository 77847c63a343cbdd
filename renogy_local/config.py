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
"""Environment-driven settings for Renogy Local."""

import logging
import os
from typing import List, Mapping, Optional

from .cache import CACHE_TTL_SECONDS
from .cloud import DEFAULT_REQUEST_TIMEOUT, RENOGY_BASE_URL
from .dashboard import DEFAULT_MAX_CONCURRENCY

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000
DEFAULT_HOUSE_CONTROLLER = "Controller House"
DEFAULT_SHED_CONTROLLER = "Controller Shed"


def _env_number(env: Mapping[str, str], name: str, default, cast=float):
    """Read a numeric variable, falling back to the default on bad input."""
    raw = env.get(name, '').strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}={raw!r}, using {default}")
        return default
    return value


class Settings:
    """Process configuration, loaded once at startup.

    Missing credentials are not fatal here: the server still starts and
    reports the problem through /api/test and failed upstream calls.
    """

    def __init__(
        self,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        port: int = DEFAULT_PORT,
        base_url: str = RENOGY_BASE_URL,
        cache_ttl: float = CACHE_TTL_SECONDS,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        house_controller: str = DEFAULT_HOUSE_CONTROLLER,
        shed_controller: str = DEFAULT_SHED_CONTROLLER
    ):
        self.access_key = access_key
        self.secret_key = secret_key
        self.port = port
        self.base_url = base_url
        self.cache_ttl = cache_ttl
        self.request_timeout = request_timeout
        self.max_concurrency = max_concurrency
        self.house_controller = house_controller
        self.shed_controller = shed_controller

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'Settings':
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read from, defaults to os.environ

        Returns:
            Settings instance
        """
        if env is None:
            env = os.environ

        return cls(
            access_key=env.get('RENOGY_ACCESS_KEY', '').strip() or None,
            secret_key=env.get('RENOGY_SECRET_KEY', '').strip() or None,
            port=_env_number(env, 'PORT', DEFAULT_PORT, int),
            base_url=env.get('RENOGY_BASE_URL', '').strip() or RENOGY_BASE_URL,
            cache_ttl=_env_number(env, 'RENOGY_CACHE_TTL', CACHE_TTL_SECONDS),
            request_timeout=_env_number(env, 'RENOGY_REQUEST_TIMEOUT', DEFAULT_REQUEST_TIMEOUT),
            max_concurrency=_env_number(env, 'RENOGY_MAX_CONCURRENCY', DEFAULT_MAX_CONCURRENCY, int),
            house_controller=env.get('RENOGY_HOUSE_CONTROLLER', '').strip() or DEFAULT_HOUSE_CONTROLLER,
            shed_controller=env.get('RENOGY_SHED_CONTROLLER', '').strip() or DEFAULT_SHED_CONTROLLER,
        )

    def missing_credentials(self) -> List[str]:
        """Names of credential variables that are not set."""
        missing = []
        if not self.access_key:
            missing.append('RENOGY_ACCESS_KEY')
        if not self.secret_key:
            missing.append('RENOGY_SECRET_KEY')
        return missing

    def __repr__(self) -> str:
        # Never print the secret
        return (
            f"<Settings port={self.port} base_url={self.base_url} "
            f"credentials={'set' if not self.missing_credentials() else 'missing'}>"
        )
