"""Weather source interfaces, the CSV file store and grid resolution."""

from .base import WeatherDataError, WeatherDataUnavailable, WeatherSource, fetch_samples, samples_to_frame
from .csv_store import CsvWeatherStore, InMemoryWeatherSource
from .grid import resolve_grid_cell

__all__ = [
    "WeatherSource",
    "WeatherDataError",
    "WeatherDataUnavailable",
    "CsvWeatherStore",
    "InMemoryWeatherSource",
    "fetch_samples",
    "samples_to_frame",
    "resolve_grid_cell",
]
