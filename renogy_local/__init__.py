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
"""Renogy Local - proxy and kiosk display for the Renogy Open API."""

from .__version__ import __version__

__author__ = "Renogy Local Contributors"
__description__ = "Proxy and kiosk display for the Renogy Open API"

from .cache import ResponseCache
from .cloud import RenogyCloudAPI
from .config import Settings
from .dashboard import DashboardAggregator, FetchResult
from .exceptions import MissingCredentialsError, RenogyApiError
from .signer import calc_sign
from . import viewmodel

__all__ = [
    "__version__",
    "ResponseCache",
    "RenogyCloudAPI",
    "Settings",
    "DashboardAggregator",
    "FetchResult",
    "MissingCredentialsError",
    "RenogyApiError",
    "calc_sign",
    "viewmodel",
]
