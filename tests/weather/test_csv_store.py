from pathlib import Path

import pandas as pd
import pytest

from pvyield.core.debug import ListDebugCollector
from pvyield.core.models import GeoLocation
from pvyield.weather import fetch_samples, samples_to_frame
from pvyield.weather.base import WEATHER_COLUMNS, WeatherDataError, WeatherDataUnavailable, validate_frame
from pvyield.weather.csv_store import CsvWeatherStore, InMemoryWeatherSource, parse_weather_csv, weather_filename

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures"
CELL = GeoLocation(lat=48.25, lon=8.5)


def test_filename_uses_lon_then_lat():
    assert weather_filename(CELL, 2017) == "8.5 48.25_2017.csv"
    assert weather_filename(GeoLocation(lat=-33.75, lon=-0.5), 2019) == "-0.5 -33.75_2019.csv"


def test_parse_skips_header_and_separator_rows():
    frame = parse_weather_csv(FIXTURES / "8.5 48.25_2017.csv")
    assert list(frame.columns) == WEATHER_COLUMNS
    assert len(frame) == 4
    assert frame.index[0] == pd.Timestamp("2017-06-21 04:00")
    assert frame.index.is_monotonic_increasing
    noon = frame.loc[pd.Timestamp("2017-06-21 12:15")]
    assert noon["temp_air_c"] == 24.5
    assert noon["dhi_wm2"] == 110.0
    assert noon["dni_wm2"] == 780.0
    assert noon["ghi_wm2"] == 850.0
    assert noon["wind_ms"] == 2.5


def test_malformed_rows_raise(tmp_path):
    long = tmp_path / "long.csv"
    long.write_text("2,2017,6,21,4,0,12.5,0,0,0,1.2,999,abc\n")
    with pytest.raises(WeatherDataError, match="columns"):
        parse_weather_csv(long)

    short = tmp_path / "short.csv"
    short.write_text("2,2017,6,21,4,0,12.5,0,0\n")
    with pytest.raises(WeatherDataError, match="columns"):
        parse_weather_csv(short)

    text = tmp_path / "text.csv"
    text.write_text("2,2017,6,21,4,0,warm,0,0,0,1.2\n")
    with pytest.raises(WeatherDataError, match="non-numeric"):
        parse_weather_csv(text)


def test_store_loads_caches_and_reports():
    debug = ListDebugCollector()
    store = CsvWeatherStore(FIXTURES, debug=debug)
    first = store.fetch_frame(CELL, 2017)
    second = store.fetch_frame(CELL, 2017)
    assert first is second
    assert [e["payload"]["cache"] for e in debug.events] == [False, True]
    assert debug.events[0]["payload"]["file"] == "8.5 48.25_2017.csv"


def test_store_missing_year_is_unavailable():
    store = CsvWeatherStore(FIXTURES)
    with pytest.raises(WeatherDataUnavailable, match="2018"):
        store.fetch_frame(CELL, 2018)


def test_records_round_trip_through_samples():
    samples = fetch_samples(CsvWeatherStore(FIXTURES), CELL, 2017)
    assert len(samples) == 4
    assert samples[2].ghi_wm2 == 850.0
    assert samples[2].location == CELL
    rebuilt = samples_to_frame(samples)
    parsed = parse_weather_csv(FIXTURES / "8.5 48.25_2017.csv")
    assert list(rebuilt.index) == list(parsed.index)
    assert rebuilt.to_numpy().tolist() == parsed.to_numpy().tolist()


def test_in_memory_source_records_requests():
    frame = parse_weather_csv(FIXTURES / "8.5 48.25_2017.csv")
    source = InMemoryWeatherSource({2017: frame})
    assert source.fetch_frame(CELL, 2017) is frame
    with pytest.raises(WeatherDataUnavailable):
        source.fetch_frame(CELL, 2019)
    assert [year for _, year in source.requests] == [2017, 2019]


def test_validate_frame_requires_columns():
    frame = parse_weather_csv(FIXTURES / "8.5 48.25_2017.csv").drop(columns=["wind_ms"])
    with pytest.raises(WeatherDataError, match="wind_ms"):
        validate_frame(frame, "test")
