"""File-backed weather store: one CSV per grid cell and year.

Files are named ``"<lon> <lat>_<year>.csv"``. Each data row reads::

    marker,year,month,day,hour,minute,temperature,dhi,dni,ghi,wind

Rows whose marker column is empty, ``0`` or ``1`` are headers/separators and
are skipped. Any other malformed row aborts the load.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, List, Tuple

import pandas as pd

from pvyield.core.debug import DebugCollector, NullDebugCollector
from pvyield.core.models import GeoLocation
from .base import WEATHER_COLUMNS, WeatherDataError, WeatherDataUnavailable, WeatherSource

HEADER_MARKERS = frozenset({"", "0", "1"})
_TIME_COLUMNS = ["year", "month", "day", "hour", "minute"]
_EXPECTED_COLUMNS = 1 + len(_TIME_COLUMNS) + len(WEATHER_COLUMNS)


def weather_filename(grid: GeoLocation, year: int) -> str:
    return f"{grid.lon} {grid.lat}_{year}.csv"


def _parse_row(values: List[str], where: str) -> List[float]:
    if len(values) != _EXPECTED_COLUMNS:
        raise WeatherDataError(f"{where}: expected {_EXPECTED_COLUMNS} columns, got {len(values)}")
    try:
        stamp = [int(v) for v in values[1:6]]
        measurements = [float(v) for v in values[6:_EXPECTED_COLUMNS]]
    except ValueError as exc:
        raise WeatherDataError(f"{where}: non-numeric field ({exc})") from exc
    return stamp + measurements


def parse_weather_csv(path: Path) -> pd.DataFrame:
    """Parse one weather file into a frame indexed by wall-clock timestamps."""
    rows: List[List[float]] = []
    with path.open(newline="", encoding="utf-8") as fh:
        for lineno, values in enumerate(csv.reader(fh), start=1):
            if not values or values[0].strip() in HEADER_MARKERS:
                continue
            rows.append(_parse_row(values, f"{path.name}:{lineno}"))

    raw = pd.DataFrame(rows, columns=_TIME_COLUMNS + WEATHER_COLUMNS)
    try:
        index = pd.to_datetime(raw[_TIME_COLUMNS].astype(int)) if not raw.empty else pd.DatetimeIndex([])
    except ValueError as exc:
        raise WeatherDataError(f"{path.name}: invalid timestamp ({exc})") from exc
    frame = raw[WEATHER_COLUMNS].astype(float)
    frame.index = pd.DatetimeIndex(index, name="ts")
    return frame.sort_index()


class CsvWeatherStore(WeatherSource):
    """Load per-cell, per-year weather files from ``root``; parsed years are cached."""

    def __init__(self, root: str | Path, debug: DebugCollector | None = None):
        self.root = Path(root)
        self.debug = debug or NullDebugCollector()
        self._cache: Dict[Tuple[float, float, int], pd.DataFrame] = {}

    def path_for(self, grid: GeoLocation, year: int) -> Path:
        return self.root / weather_filename(grid, year)

    def fetch_frame(self, grid: GeoLocation, year: int) -> pd.DataFrame:
        key = (grid.lon, grid.lat, int(year))
        cache_hit = key in self._cache
        if not cache_hit:
            path = self.path_for(grid, year)
            if not path.is_file():
                raise WeatherDataUnavailable(f"No weather data for cell ({grid.lat}, {grid.lon}) in {year}: {path}")
            self._cache[key] = parse_weather_csv(path)
        frame = self._cache[key]
        self.debug.emit(
            "weather.load",
            {"file": weather_filename(grid, year), "rows": len(frame), "cache": cache_hit},
            ts=frame.index[0] if not frame.empty else None,
        )
        return frame


class InMemoryWeatherSource(WeatherSource):
    """Serve pre-built frames keyed by year, regardless of grid cell."""

    def __init__(self, frames: Dict[int, pd.DataFrame]):
        self.frames = dict(frames)
        self.requests: List[Tuple[GeoLocation, int]] = []

    def fetch_frame(self, grid: GeoLocation, year: int) -> pd.DataFrame:
        self.requests.append((grid, year))
        if year not in self.frames:
            raise WeatherDataUnavailable(f"No weather data for cell ({grid.lat}, {grid.lon}) in {year}")
        return self.frames[year]


__all__ = ["HEADER_MARKERS", "CsvWeatherStore", "InMemoryWeatherSource", "parse_weather_csv", "weather_filename"]
