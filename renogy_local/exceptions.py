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
"""Exceptions raised by the Renogy Open API client."""

from typing import Any, Dict, Optional


class RenogyApiError(Exception):
    """An upstream call failed.

    Carries the upstream HTTP status, reason phrase, decoded body and
    response headers when the vendor answered at all. Transport failures
    and timeouts leave ``status`` as None and put the message in ``details``.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        details: Any = None,
        headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.status_text = status_text
        self.details = details if details is not None else message
        self.headers = headers


class MissingCredentialsError(RenogyApiError):
    """Access key or secret key is not configured."""
