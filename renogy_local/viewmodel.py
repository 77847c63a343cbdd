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
"""Kiosk view model - groups devices into locations and derives display values."""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence

BATTERY_CATEGORY = "Battery"

GAUGE_RADIUS = 90
GAUGE_CIRCUMFERENCE = 2 * math.pi * GAUGE_RADIUS

GAUGE_COLORS = {
    'green': '#4caf50',
    'yellow': '#ffc107',
    'red': '#f44336',
}

PLACEHOLDER = '--'


class LocationRole:
    """Maps a location key to the controller that represents it."""

    def __init__(self, key: str, name: str, controller_name: str, has_batteries: bool = False):
        self.key = key
        self.name = name
        self.controller_name = controller_name
        self.has_batteries = has_batteries

    def __repr__(self) -> str:
        return f"<LocationRole {self.key}: {self.controller_name!r}>"


def default_roles(house_controller: str = 'Controller House', shed_controller: str = 'Controller Shed'):
    """Build the two-location role table with custom controller names."""
    return (
        LocationRole('house', 'House', house_controller, has_batteries=True),
        LocationRole('shed', 'Shed', shed_controller),
    )


DEFAULT_ROLES = default_roles()


class LocationView:
    """One controller plus the batteries shown with it."""

    def __init__(self, key: str, name: str, controller: Optional[Dict[str, Any]], batteries: List[Dict[str, Any]]):
        self.key = key
        self.name = name
        self.controller = controller
        self.batteries = batteries

    def __repr__(self) -> str:
        return f"<LocationView {self.key}: {len(self.batteries)} batteries>"


def organize_devices(
    devices: Sequence[Dict[str, Any]],
    roles: Sequence[LocationRole] = DEFAULT_ROLES,
    battery_category: str = BATTERY_CATEGORY
) -> Optional[Dict[str, LocationView]]:
    """
    Group the hub's sub-devices into location views.

    The first top-level device is the hub. Controllers are matched by exact
    name, batteries by category; batteries only go to locations whose role
    allows them.

    Returns:
        Dict of location key -> LocationView, or None when there are no devices
    """
    if not devices:
        return None

    sublist = devices[0].get('sublist') or []
    batteries = [d for d in sublist if d.get('category') == battery_category]

    locations = {}
    for role in roles:
        controller = next((d for d in sublist if d.get('name') == role.controller_name), None)
        locations[role.key] = LocationView(
            role.key,
            role.name,
            controller,
            list(batteries) if role.has_batteries else []
        )
    return locations


def format_number(value: Any, decimals: int = 1) -> str:
    """Fixed-point formatting, '--' for missing values.

    Ties round away from zero (72.5 -> '73'), as the kiosk always showed.
    """
    if value is None:
        return PLACEHOLDER
    quantum = Decimal(1).scaleb(-decimals)
    return str(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def combined_battery_percentage(batteries: Sequence[Dict[str, Any]]) -> float:
    """Mean batteryLevel over batteries that report one, 0 if none do."""
    levels = [
        (b.get('latestData') or {}).get('batteryLevel')
        for b in batteries
    ]
    levels = [level for level in levels if level is not None]
    if not levels:
        return 0
    return sum(levels) / len(levels)


def gauge_color(percentage: float) -> str:
    if percentage >= 50:
        return 'green'
    if percentage >= 25:
        return 'yellow'
    return 'red'


def gauge_offset(percentage: float) -> float:
    """Stroke dash offset for the circular gauge (full circumference = empty)."""
    clamped = min(max(percentage, 0), 100)
    return GAUGE_CIRCUMFERENCE - (clamped / 100) * GAUGE_CIRCUMFERENCE


def _solar(controller: Optional[Dict[str, Any]]) -> Dict[str, str]:
    if controller is None or controller.get('latestData') is None:
        return {
            'power': f"{PLACEHOLDER} W",
            'amps': f"{PLACEHOLDER} A",
            'volts': f"{PLACEHOLDER} V",
        }

    data = controller['latestData']
    return {
        'power': f"{format_number(data.get('solarWatts') or 0, 1)} W",
        'amps': f"{format_number(data.get('solarAmps') or 0, 1)} A",
        'volts': f"{format_number(data.get('solarVolts') or 0, 1)} V",
    }


def _battery(battery: Dict[str, Any]) -> Dict[str, Any]:
    data = battery.get('latestData') or {}
    return {
        'deviceId': battery.get('deviceId'),
        'name': battery.get('name'),
        'percent': f"{format_number(data.get('batteryLevel') or 0, 0)}%",
        'volts': f"{format_number(data.get('presentVolts') or 0, 1)} V",
    }


def build_location_view(view: LocationView) -> Dict[str, Any]:
    """
    Render one location into display-ready values.

    Returns:
        Dict with name, solar readings, per-battery readings and, when the
        location has batteries, the combined gauge
    """
    result = {
        'location': view.key,
        'name': view.name,
        'controller': view.controller.get('name') if view.controller else None,
        'solar': _solar(view.controller),
        'showBatteries': bool(view.batteries),
        'batteries': [_battery(b) for b in view.batteries],
        'combined': None,
    }

    if view.batteries:
        percentage = combined_battery_percentage(view.batteries)
        color = gauge_color(percentage)
        result['combined'] = {
            'percent': percentage,
            'label': f"{format_number(percentage, 0)}%",
            'color': color,
            'colorHex': GAUGE_COLORS[color],
            'dashOffset': gauge_offset(percentage),
            'circumference': GAUGE_CIRCUMFERENCE,
        }

    return result
