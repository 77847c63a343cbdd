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

"""Request signing for the Renogy Open API.

Every upstream call carries three headers:

- ``Access-Key``: the account access key
- ``Timestamp``: milliseconds since the Unix epoch, as a string
- ``Signature``: base64 HMAC-SHA256 over ``"{timestamp}.{path}.{params}"``

The query string that is signed must be byte-for-byte the one that is sent,
so callers build it once with :func:`serialize_params` and reuse it for both.
"""

import base64
import hashlib
import hmac
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

from .exceptions import MissingCredentialsError


def serialize_params(params: Optional[Dict[str, Any]]) -> str:
    """Encode query parameters in insertion order.

    Returns an empty string when there are no parameters.
    """
    if not params:
        return ''
    return urlencode([(key, str(value)) for key, value in params.items()])


def timestamp_ms(clock: Callable[[], float] = time.time) -> int:
    """Return a fresh millisecond timestamp from ``clock`` (seconds)."""
    return int(clock() * 1000)


def calc_sign(path: str, param_str: str, timestamp: int, secret_key: str) -> str:
    """
    Compute the request signature.

    Args:
        path: Endpoint path without base URL or query (e.g. '/device/list')
        param_str: Serialized query string, exactly as sent
        timestamp: Millisecond Unix timestamp sent in the Timestamp header
        secret_key: Account secret key

    Returns:
        Base64-encoded HMAC-SHA256 digest
    """
    if not secret_key:
        raise MissingCredentialsError("RENOGY_SECRET_KEY is not configured")

    string_to_sign = f"{timestamp}.{path}.{param_str}"
    digest = hmac.new(
        secret_key.encode('utf-8'),
        string_to_sign.encode('utf-8'),
        hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode('ascii')
