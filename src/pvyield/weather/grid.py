"""Snap arbitrary coordinates onto the weather-data grid.

Grid cells are one degree of longitude by half a degree of latitude. Cell
centres sit at ``x.5`` longitude and ``y.25``/``y.75`` latitude.
"""
from __future__ import annotations

import math

from pvyield.core.debug import DebugCollector, NullDebugCollector
from pvyield.core.models import GeoLocation


def resolve_grid_cell(location: GeoLocation, debug: DebugCollector | None = None) -> GeoLocation:
    """Return the centre of the grid cell containing ``location``."""
    debug = debug or NullDebugCollector()

    lon_floor = math.floor(location.lon)
    lat_floor = math.floor(location.lat)
    lat_offset = 0.25 if location.lat - lat_floor < 0.5 else 0.75
    # 180.5 is off the map; the easternmost cell wraps onto -179.5.
    lon = lon_floor + 0.5 if lon_floor < 180 else -179.5
    # lat == 90 floors into a cell beyond the pole; keep it in the top row.
    lat = lat_floor + lat_offset if lat_floor < 90 else 89.75

    cell = GeoLocation(lat=lat, lon=lon)
    debug.emit(
        "grid.resolve",
        {"lat": location.lat, "lon": location.lon, "cell_lat": cell.lat, "cell_lon": cell.lon},
        ts=None,
    )
    return cell


__all__ = ["resolve_grid_cell"]
