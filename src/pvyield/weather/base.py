"""Weather source protocol and sample/frame conversion."""

from __future__ import annotations

from typing import Iterable, List, Protocol

import pandas as pd

from pvyield.core.models import GeoLocation, WeatherSample

WEATHER_COLUMNS = ["temp_air_c", "dhi_wm2", "dni_wm2", "ghi_wm2", "wind_ms"]


class WeatherDataError(RuntimeError):
    """Raised when weather data cannot be read or parsed."""


class WeatherDataUnavailable(WeatherDataError):
    """Raised when no data exists for a grid cell and year."""


class WeatherSource(Protocol):
    """Interface for fetching one year of 15-minute samples for a grid cell."""

    def fetch_frame(self, grid: GeoLocation, year: int) -> pd.DataFrame:
        """Return samples for ``year`` at ``grid``, chronologically ordered.

        The DataFrame is indexed by naive wall-clock timestamps and contains
        the columns in ``WEATHER_COLUMNS``. Raises ``WeatherDataUnavailable``
        when the cell/year has no data.
        """
        ...


def samples_to_frame(samples: Iterable[WeatherSample]) -> pd.DataFrame:
    samples = list(samples)
    index = pd.DatetimeIndex([s.timestamp for s in samples], name="ts")
    data = {col: [float(getattr(s, col)) for s in samples] for col in WEATHER_COLUMNS}
    return pd.DataFrame(data, index=index, columns=WEATHER_COLUMNS)


def frame_to_samples(frame: pd.DataFrame, location: GeoLocation) -> List[WeatherSample]:
    return [
        WeatherSample(location=location, timestamp=ts.to_pydatetime(), **{col: float(row[col]) for col in WEATHER_COLUMNS})
        for ts, row in frame.iterrows()
    ]


def fetch_samples(source: WeatherSource, grid: GeoLocation, year: int) -> List[WeatherSample]:
    """Record-oriented view of :meth:`WeatherSource.fetch_frame`."""
    return frame_to_samples(source.fetch_frame(grid, year), grid)


def validate_frame(frame: pd.DataFrame, where: str) -> pd.DataFrame:
    missing = sorted(set(WEATHER_COLUMNS).difference(frame.columns))
    if missing:
        raise WeatherDataError(f"Weather data for {where} missing required columns: {missing}")
    return frame


__all__ = [
    "WEATHER_COLUMNS",
    "WeatherDataError",
    "WeatherDataUnavailable",
    "WeatherSource",
    "samples_to_frame",
    "frame_to_samples",
    "fetch_samples",
    "validate_frame",
]
