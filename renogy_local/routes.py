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

"""FastAPI route handlers for Renogy Local."""

import logging
from pathlib import Path
from typing import Optional, Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from .__version__ import __version__
from .dashboard import DEFAULT_MAX_CONCURRENCY, DashboardAggregator
from .exceptions import RenogyApiError
from .viewmodel import DEFAULT_ROLES, LocationRole, build_location_view, organize_devices

# Configure logging
logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


def error_response(error: str, exc: Exception) -> JSONResponse:
    """
    Build the JSON error envelope for a failed request.

    Upstream errors mirror the vendor's status code when there is one,
    everything else is a 500.
    """
    if isinstance(exc, RenogyApiError):
        status_code = exc.status or 500
        details = exc.details
    else:
        status_code = 500
        details = str(exc)
    return JSONResponse(status_code=status_code, content={'error': error, 'details': details})


def create_app():
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Renogy Local",
        description="Local proxy and kiosk display for the Renogy Open API",
        version=__version__
    )

    # The kiosk page may be served from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount static files
    if STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    return app


def register_routes(
    app: FastAPI,
    get_cloud_api,
    roles: Sequence[LocationRole] = DEFAULT_ROLES,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
):
    """Register all API routes.

    Args:
        app: FastAPI application instance
        get_cloud_api: Callable that returns the current RenogyCloudAPI instance
        roles: Location role table used by the view endpoints
        max_concurrency: Upstream call bound for dashboard builds
    """

    async def build_dashboard():
        return await DashboardAggregator(get_cloud_api(), max_concurrency).build_dashboard()

    async def passthrough(error: str, coro):
        try:
            return await coro
        except RenogyApiError as e:
            return error_response(error, e)

    @app.get("/", include_in_schema=False)
    async def root():
        """Serve the kiosk display."""
        index_file = STATIC_DIR / "index.html"

        if index_file.exists():
            return FileResponse(index_file, media_type="text/html")
        else:
            # Fallback to API info if web UI not found
            return {
                "service": "Renogy Local",
                "version": __version__,
                "documentation": "/docs",
                "api_info": "/api",
                "note": "Kiosk page not found. Install static/index.html or visit /api for API details"
            }

    @app.get("/api", tags=["Info"])
    async def api_info():
        """API root with diagnostics and navigation."""
        cloud_api = get_cloud_api()
        return {
            "service": "Renogy Local",
            "description": "Local proxy and kiosk display for the Renogy Open API",
            "version": __version__,
            "documentation": "/docs",
            "web_ui": "/",
            "credentials_configured": cloud_api.has_credentials(),
            "cached_responses": len(cloud_api.cache),
            "upstream_calls": cloud_api.upstream_calls,
            "endpoints": {
                "devices": "/api/devices",
                "datamap": "/api/devices/{device_id}/datamap",
                "latest": "/api/devices/{device_id}/latest",
                "history": "/api/devices/{device_id}/history",
                "alarms": "/api/devices/{device_id}/alarms",
                "logs": "/api/devices/{device_id}/logs",
                "test": "/api/test",
                "dashboard": "/api/dashboard",
                "view": "/api/view/{location}",
            }
        }

    @app.get("/api/devices", tags=["Devices"])
    async def get_devices():
        """Get all devices (vendor payload passthrough)."""
        return await passthrough("Failed to fetch devices", get_cloud_api().get_device_list())

    @app.get("/api/devices/{device_id}/datamap", tags=["Devices"])
    async def get_device_datamap(device_id: str):
        """Get the field map for a device."""
        return await passthrough("Failed to fetch device datamap", get_cloud_api().get_datamap(device_id))

    @app.get("/api/devices/{device_id}/latest", tags=["Devices"])
    async def get_device_latest(device_id: str):
        """Get the latest readings for a device."""
        return await passthrough("Failed to fetch latest device data", get_cloud_api().get_latest_data(device_id))

    @app.get("/api/devices/{device_id}/history", tags=["Devices"])
    async def get_device_history(
        device_id: str,
        year: Optional[str] = None,
        month: Optional[str] = None,
        utcOffsetHours: Optional[str] = None
    ):
        """
        Get historical solar yield for a device.

        Args:
            device_id: Device ID
            year: Year (default: current year)
            month: Month 1-12 (default: current month)
            utcOffsetHours: Timezone offset in hours, may be fractional (default: 0)

        Values are forwarded as given; the vendor validates them.
        """
        return await passthrough(
            "Failed to fetch device history",
            get_cloud_api().get_history(device_id, year, month, utcOffsetHours)
        )

    @app.get("/api/devices/{device_id}/alarms", tags=["Devices"])
    async def get_device_alarms(device_id: str):
        """Get active alarms for a device."""
        return await passthrough("Failed to fetch device alarms", get_cloud_api().get_alarms(device_id))

    @app.get("/api/devices/{device_id}/logs", tags=["Devices"])
    async def get_device_logs(device_id: str):
        """Get device logs (Zigbee devices)."""
        return await passthrough("Failed to fetch device logs", get_cloud_api().get_logs(device_id))

    @app.get("/api/test", tags=["Status"])
    async def test_credentials():
        """Verify that the configured credentials are accepted upstream."""
        cloud_api = get_cloud_api()
        if not cloud_api.has_credentials():
            return JSONResponse(status_code=500, content={
                'error': 'Missing credentials',
                'details': 'RENOGY_ACCESS_KEY or RENOGY_SECRET_KEY not configured in environment'
            })

        try:
            devices = await cloud_api.get_device_list()
        except RenogyApiError as e:
            return JSONResponse(status_code=e.status or 500, content={
                'success': False,
                'error': 'API test failed',
                'statusCode': e.status,
                'statusText': e.status_text,
                'details': e.details,
                'headers': e.headers,
            })

        return {
            'success': True,
            'message': 'API credentials are working!',
            'deviceCount': len(devices) if isinstance(devices, list) else 0,
            'devices': devices,
        }

    @app.get("/api/dashboard", tags=["Dashboard"])
    async def get_dashboard():
        """
        Get all devices with latest readings and alarms merged in.

        Only a failure to fetch the device list fails this call; failures
        for individual devices show up as empty readings and an 'error' field.
        """
        try:
            return await build_dashboard()
        except Exception as e:
            logger.error(f"Failed to build dashboard: {e}")
            return error_response("Failed to fetch dashboard data", e)

    async def build_views():
        try:
            devices = await build_dashboard()
        except Exception as e:
            logger.error(f"Failed to build dashboard: {e}")
            return None, error_response("Failed to fetch dashboard data", e)

        locations = organize_devices(devices, roles)
        if locations is None:
            return None, JSONResponse(status_code=404, content={
                'error': 'No device data available',
                'details': 'The device list is empty'
            })
        return locations, None

    @app.get("/api/view", tags=["Dashboard"])
    async def get_views():
        """Get display-ready values for every location."""
        locations, failure = await build_views()
        if failure is not None:
            return failure
        return {
            'locations': {key: build_location_view(view) for key, view in locations.items()}
        }

    @app.get("/api/view/{location}", tags=["Dashboard"])
    async def get_view(location: str):
        """Get display-ready values for one location (e.g. 'house', 'shed')."""
        locations, failure = await build_views()
        if failure is not None:
            return failure
        if location not in locations:
            return JSONResponse(status_code=404, content={
                'error': f'No data for {location}',
                'details': f"Known locations: {', '.join(locations)}"
            })
        return build_location_view(locations[location])

    return app
