import datetime as dt
import json

import pandas as pd
import pytest

from pvyield.core.debug import JsonlDebugWriter, ListDebugCollector
from pvyield.core.models import GeoLocation, HorizonSkyline, PvModuleSpec, PvSystem, WeatherSample
from pvyield.core.params import DEFAULT_YEARS
from pvyield.engine import YieldStage, calculate_request, calculate_yield
from pvyield.engine.yield_calc import annual_yield, interval_energy, sample_energy_wh
from pvyield.solar.horizon import flat_skyline
from pvyield.solar.position import solar_position
from pvyield.weather import InMemoryWeatherSource
from pvyield.weather.base import WeatherDataUnavailable, frame_to_samples

SITE = GeoLocation(lat=48.3, lon=8.7)


def _skyline(elevation):
    return HorizonSkyline(tuple([float(elevation)] * 360))


def _system(skyline=None, dc=10000.0, ac=10000.0, tilt=30.0):
    module = PvModuleSpec(dc_rating_w=dc, azimuth_deg=180.0, tilt_deg=tilt, skyline=skyline or flat_skyline())
    return PvSystem(location=SITE, modules=[module], inverter_ac_rating_w=ac)


def _source(clear_day, years=DEFAULT_YEARS):
    return InMemoryWeatherSource({year: clear_day(year) for year in years})


def test_equator_equinox_noon_interval():
    loc = GeoLocation(lat=0.0, lon=0.0)
    module = PvModuleSpec(dc_rating_w=1000.0, azimuth_deg=180.0, tilt_deg=0.0, skyline=flat_skyline())
    system = PvSystem(location=loc, modules=[module], inverter_ac_rating_w=1000.0)
    sample = WeatherSample(loc, dt.datetime(2019, 3, 20, 13, 0), 25.0, 100.0, 800.0, 700.0, 1.0)

    energy = sample_energy_wh(system, sample)
    assert 0.0 < energy < 250.0
    assert energy == pytest.approx(181.9, abs=1.0)

    frame = pd.DataFrame(
        {"temp_air_c": [25.0], "dhi_wm2": [100.0], "dni_wm2": [800.0], "ghi_wm2": [700.0], "wind_ms": [1.0]},
        index=pd.DatetimeIndex([sample.timestamp], name="ts"),
    )
    assert interval_energy(system, frame)["energy_wh"].iloc[0] == pytest.approx(energy)


def test_samples_without_ghi_contribute_nothing():
    idx = pd.date_range("2019-06-21 11:00", periods=4, freq="15min", name="ts")
    frame = pd.DataFrame(
        {"temp_air_c": 20.0, "dhi_wm2": 100.0, "dni_wm2": 800.0, "ghi_wm2": [0.0, -1.0, 0.0, 0.0], "wind_ms": 1.0},
        index=idx,
    )
    system = _system()
    assert interval_energy(system, frame).empty
    assert annual_yield(system, {2019: frame}).annual_kwh == 0
    sample = frame_to_samples(frame, SITE)[0]
    assert sample_energy_wh(system, sample) == 0.0


def test_vectorised_and_sample_paths_agree(clear_day):
    frame = clear_day(2018)
    system = _system(skyline=_skyline(25.0))
    vectorised = interval_energy(system, frame)["energy_wh"].sum()
    by_sample = sum(sample_energy_wh(system, s) for s in frame_to_samples(frame, SITE))
    assert vectorised == pytest.approx(by_sample)


def test_modules_are_summed(clear_day):
    frames = {2019: clear_day(2019)}
    single = annual_yield(_system(dc=1000.0, ac=5000.0), frames)
    module = PvModuleSpec(dc_rating_w=500.0, azimuth_deg=180.0, tilt_deg=30.0, skyline=flat_skyline())
    split = annual_yield(PvSystem(location=SITE, modules=[module, module], inverter_ac_rating_w=5000.0), frames)
    assert split.total_wh == pytest.approx(single.total_wh)


def test_annual_output_is_truncated_mean(clear_day):
    frames = {year: clear_day(year) for year in DEFAULT_YEARS}
    result = annual_yield(_system(), frames)
    assert set(result.energy_wh_by_year) == set(DEFAULT_YEARS)
    assert result.total_wh == pytest.approx(sum(result.energy_wh_by_year.values()))
    assert result.annual_kwh == int(result.total_wh * 0.001 / 3)
    assert result.daylight_samples == sum(int((f["ghi_wm2"] > 0).sum()) for f in frames.values())


def test_flat_skyline_gives_equal_outputs(clear_day):
    result = calculate_yield(_system(), _source(clear_day))
    assert result.annual_output_with_shadow_kwh == result.annual_output_without_shadow_kwh
    assert result.annual_output_with_shadow_kwh > 0


def test_horizon_reduces_output(clear_day):
    result = calculate_yield(_system(skyline=_skyline(40.0)), _source(clear_day))
    assert result.annual_output_with_shadow_kwh < result.annual_output_without_shadow_kwh
    assert result.shadow_loss_kwh > 0


def test_raising_skyline_never_increases_energy(clear_day):
    frames = {2019: clear_day(2019)}
    totals = [annual_yield(_system(skyline=_skyline(el)), frames).total_wh for el in (0, 10, 20, 40, 70)]
    assert all(later <= earlier for earlier, later in zip(totals, totals[1:]))
    # a skyline above the highest sun leaves only diffuse and ground-reflected light
    assert totals[-1] < totals[0]


def test_missing_year_aborts_without_result(clear_day):
    source = _source(clear_day, years=(2017, 2018))
    with pytest.raises(WeatherDataUnavailable, match="2019"):
        calculate_yield(_system(), source)


def test_weather_fetched_once_per_year_for_grid_cell(clear_day):
    source = _source(clear_day)
    calculate_yield(_system(), source)
    assert [year for _, year in source.requests] == list(DEFAULT_YEARS)
    assert {(cell.lat, cell.lon) for cell, _ in source.requests} == {(48.25, 8.5)}


def test_shadowed_system_not_modified(clear_day):
    system = _system(skyline=_skyline(15.0))
    calculate_yield(system, _source(clear_day))
    assert system.modules[0].skyline == _skyline(15.0)


def test_parallel_matches_serial(clear_day):
    system = _system(skyline=_skyline(30.0))
    serial = calculate_yield(system, _source(clear_day))
    parallel = calculate_yield(system, _source(clear_day), parallel=True)
    assert parallel == serial


def test_request_lifecycle_events(clear_day):
    request = {
        "userGPSCoords": {"longitude": 8.7, "latitude": 48.3},
        "userPanels": [{"panelWatts": 5000, "panelAzimuth": 180, "panelElevation": 30}],
        "userInverters": [{"inverterWatts": 4000}],
    }
    debug = ListDebugCollector()
    result = calculate_request(request, _source(clear_day), debug=debug)

    stages = [s for s in debug.stages() if s.startswith("stage.")]
    assert stages == [f"stage.{stage.value}" for stage in YieldStage]
    passes = [e for e in debug.events if e["stage"] == "pass.summary"]
    assert [e["scope"] for e in passes] == ["shadowed", "unshadowed"]
    assert passes[0]["payload"]["annual_kwh"] == result.annual_output_with_shadow_kwh
    final = [e for e in debug.events if e["stage"] == "yield.result"][0]
    assert final["payload"]["calculatedOutput"] == result.annual_output_with_shadow_kwh
    module_events = [e for e in debug.events if e["stage"] == "pv.dc.summary"]
    assert {e["module"] for e in module_events} == {0}


def test_sun_below_horizon_gets_no_beam_on_either_pass():
    idx = pd.DatetimeIndex(["2019-12-21 07:45", "2019-12-21 08:00"], name="ts")
    frame = pd.DataFrame(
        {"temp_air_c": 0.0, "dhi_wm2": 20.0, "dni_wm2": 100.0, "ghi_wm2": 20.0, "wind_ms": 1.0},
        index=idx,
    )
    assert (solar_position(SITE, idx)["elevation"] < 0).all()

    def _east(skyline):
        module = PvModuleSpec(dc_rating_w=1000.0, azimuth_deg=125.0, tilt_deg=60.0, skyline=skyline)
        return PvSystem(location=SITE, modules=[module], inverter_ac_rating_w=1000.0)

    shadowed = annual_yield(_east(_skyline(2.0)), {2019: frame})
    unshadowed = annual_yield(_east(flat_skyline()), {2019: frame})
    assert unshadowed.total_wh >= shadowed.total_wh
    assert unshadowed.total_wh == pytest.approx(shadowed.total_wh)


def test_parallel_run_writes_whole_jsonl_lines(clear_day, tmp_path):
    path = tmp_path / "debug.jsonl"
    module = PvModuleSpec(dc_rating_w=250.0, azimuth_deg=180.0, tilt_deg=30.0, skyline=_skyline(20.0))
    system = PvSystem(location=SITE, modules=[module] * 20, inverter_ac_rating_w=4000.0)
    writer = JsonlDebugWriter(path)
    try:
        calculate_yield(system, _source(clear_day), debug=writer, parallel=True)
    finally:
        writer.close()

    events = [json.loads(line) for line in path.read_text().splitlines()]
    passes = [e for e in events if e["stage"] == "pass.summary"]
    assert sorted(e["scope"] for e in passes) == ["shadowed", "unshadowed"]
    assert events[-1]["stage"] == "stage.done"
