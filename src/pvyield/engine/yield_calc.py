"""Multi-year annual yield engine.

A request moves through ``idle -> build_system -> compute_shadowed ->
compute_unshadowed -> done``. Each compute stage evaluates every daylight
weather sample (GHI > 0) of every configured year:

    sun position -> per-module POA + DC -> sum -> system losses -> inverter AC

and integrates AC power over the 15-minute intervals. The unshadowed pass
runs on a copy of the system whose modules carry the flat skyline; the
system used for the shadowed pass is never modified.
"""
from __future__ import annotations

import enum
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

import numpy as np
import pandas as pd

from pvyield.core.config import parse_request, result_to_response
from pvyield.core.debug import DebugCollector, NullDebugCollector, ScopedDebugCollector
from pvyield.core.models import GeoLocation, PvSystem, WeatherSample, YieldResult
from pvyield.core.params import DEFAULT_MODEL, INTERVAL_HOURS, ModelConfig
from pvyield.pv.power import SystemLossModel, ac_power, dc_power, module_dc_power
from pvyield.solar.horizon import flat_skyline
from pvyield.solar.irradiance import poa_components, poa_irradiance
from pvyield.solar.position import solar_position, sun_position
from pvyield.solar.temperature import cell_temperature
from pvyield.weather.base import WeatherSource, validate_frame
from pvyield.weather.grid import resolve_grid_cell


class YieldStage(str, enum.Enum):
    IDLE = "idle"
    BUILD_SYSTEM = "build_system"
    COMPUTE_SHADOWED = "compute_shadowed"
    COMPUTE_UNSHADOWED = "compute_unshadowed"
    DONE = "done"


@dataclass(frozen=True)
class PassResult:
    annual_kwh: int
    total_wh: float
    daylight_samples: int
    energy_wh_by_year: Dict[int, float] = field(default_factory=dict)


def _enter(debug: DebugCollector, stage: YieldStage, **payload: Any) -> None:
    debug.emit(f"stage.{stage.value}", payload, ts=None)


def load_weather(
    source: WeatherSource,
    grid: GeoLocation,
    years,
    debug: DebugCollector | None = None,
) -> Dict[int, pd.DataFrame]:
    """Fetch every year up front; any missing year aborts the request."""
    debug = debug or NullDebugCollector()
    frames: Dict[int, pd.DataFrame] = {}
    for year in years:
        frame = validate_frame(source.fetch_frame(grid, year), f"cell ({grid.lat}, {grid.lon}) year {year}")
        frames[year] = frame
        debug.emit(
            "weather.summary",
            {
                "year": year,
                "rows": len(frame),
                "daylight_rows": int((frame["ghi_wm2"] > 0).sum()),
                "ghi_max": float(frame["ghi_wm2"].max()) if not frame.empty else None,
                "temp_min": float(frame["temp_air_c"].min()) if not frame.empty else None,
                "temp_max": float(frame["temp_air_c"].max()) if not frame.empty else None,
            },
            ts=frame.index[0] if not frame.empty else None,
        )
    return frames


def interval_energy(
    system: PvSystem,
    weather: pd.DataFrame,
    model: ModelConfig = DEFAULT_MODEL,
    debug: DebugCollector | None = None,
) -> pd.DataFrame:
    """Per-interval power/energy for the daylight samples of ``weather``.

    Returns one row per sample with GHI > 0 and the columns ``pdc_w``
    (sum over modules), ``pdc_net_w``, ``pac_w`` and ``energy_wh``.
    """
    debug = debug or NullDebugCollector()
    daylight = weather.loc[weather["ghi_wm2"] > 0]
    losses = SystemLossModel(model.losses)

    if daylight.empty:
        empty = pd.Series([], index=daylight.index, dtype=float)
        return pd.DataFrame({"pdc_w": empty, "pdc_net_w": empty, "pac_w": empty, "energy_wh": empty})

    sun = solar_position(system.location, daylight.index, debug=debug)
    # cell temperature depends on weather only, so it is shared by all modules
    temp_cell = cell_temperature(
        daylight["ghi_wm2"], daylight["temp_air_c"], daylight["wind_ms"], params=model.thermal, debug=debug
    )

    pdc_sum = pd.Series(0.0, index=daylight.index, name="pdc_w")
    for idx, module in enumerate(system.modules):
        mod_debug = ScopedDebugCollector(debug, module=idx)
        poa = poa_components(module, daylight, sun, params=model.irradiance, debug=mod_debug)
        pdc_sum = pdc_sum + dc_power(poa["poa_global"], temp_cell, module.dc_rating_w, params=model.thermal, debug=mod_debug)

    pdc_net = losses.apply(pdc_sum, debug=debug)
    pac = ac_power(pdc_net, system.inverter_ac_rating_w, params=model.inverter, debug=debug)

    return pd.DataFrame(
        {
            "pdc_w": pdc_sum,
            "pdc_net_w": pdc_net,
            "pac_w": pac,
            "energy_wh": pac * INTERVAL_HOURS,
        },
        index=daylight.index,
    )


def sample_energy_wh(system: PvSystem, sample: WeatherSample, model: ModelConfig = DEFAULT_MODEL) -> float:
    """Energy (Wh) of one 15-minute sample, evaluated record by record."""
    if sample.ghi_wm2 <= 0:
        return 0.0
    sun = sun_position(system.location, sample.timestamp)
    pdc = sum(
        module_dc_power(
            poa_irradiance(sample, module, sun, params=model.irradiance), sample, module.dc_rating_w, params=model.thermal
        )
        for module in system.modules
    )
    pdc_net = SystemLossModel(model.losses).apply(pdc)
    return float(ac_power(pdc_net, system.inverter_ac_rating_w, params=model.inverter)) * INTERVAL_HOURS


def annual_yield(
    system: PvSystem,
    frames: Mapping[int, pd.DataFrame],
    model: ModelConfig = DEFAULT_MODEL,
    debug: DebugCollector | None = None,
) -> PassResult:
    """Average annual AC energy in whole kWh (truncated) over ``frames``."""
    debug = debug or NullDebugCollector()
    by_year: Dict[int, float] = {}
    daylight_samples = 0
    for year, frame in frames.items():
        energy = interval_energy(system, frame, model=model, debug=debug)
        by_year[year] = float(np.sum(energy["energy_wh"].to_numpy()))
        daylight_samples += len(energy)

    total_wh = sum(by_year.values())
    annual_kwh = int(total_wh * 0.001 / len(frames)) if frames else 0
    debug.emit(
        "pass.summary",
        {"annual_kwh": annual_kwh, "total_wh": total_wh, "daylight_samples": daylight_samples, "energy_wh_by_year": by_year},
        ts=None,
    )
    return PassResult(annual_kwh=annual_kwh, total_wh=total_wh, daylight_samples=daylight_samples, energy_wh_by_year=by_year)


def calculate_yield(
    system: PvSystem,
    weather_source: WeatherSource,
    model: ModelConfig = DEFAULT_MODEL,
    debug: DebugCollector | None = None,
    parallel: bool = False,
) -> YieldResult:
    """Compute annual output with and without horizon shadowing.

    Weather for all years is loaded once and shared by both passes. With
    ``parallel=True`` the two passes run on separate threads; results are
    identical either way.
    """
    debug = debug or NullDebugCollector()

    grid = resolve_grid_cell(system.location, debug=debug)
    frames = load_weather(weather_source, grid, model.years, debug=debug)
    unshadowed_system = system.with_skyline(flat_skyline())

    shadow_debug = ScopedDebugCollector(debug, scope="shadowed")
    clear_debug = ScopedDebugCollector(debug, scope="unshadowed")

    if parallel:
        with ThreadPoolExecutor(max_workers=2) as pool:
            _enter(debug, YieldStage.COMPUTE_SHADOWED, years=list(model.years))
            shadowed_future = pool.submit(annual_yield, system, frames, model, shadow_debug)
            _enter(debug, YieldStage.COMPUTE_UNSHADOWED, years=list(model.years))
            unshadowed_future = pool.submit(annual_yield, unshadowed_system, frames, model, clear_debug)
            shadowed = shadowed_future.result()
            unshadowed = unshadowed_future.result()
    else:
        _enter(debug, YieldStage.COMPUTE_SHADOWED, years=list(model.years))
        shadowed = annual_yield(system, frames, model, shadow_debug)
        _enter(debug, YieldStage.COMPUTE_UNSHADOWED, years=list(model.years))
        unshadowed = annual_yield(unshadowed_system, frames, model, clear_debug)

    result = YieldResult(
        annual_output_with_shadow_kwh=shadowed.annual_kwh,
        annual_output_without_shadow_kwh=unshadowed.annual_kwh,
    )
    debug.emit("yield.result", {**result_to_response(result), "shadow_loss_kwh": result.shadow_loss_kwh}, ts=None)
    _enter(
        debug,
        YieldStage.DONE,
        with_shadow_kwh=result.annual_output_with_shadow_kwh,
        without_shadow_kwh=result.annual_output_without_shadow_kwh,
    )
    return result


def calculate_request(
    request: Mapping[str, Any],
    weather_source: WeatherSource,
    model: ModelConfig = DEFAULT_MODEL,
    debug: DebugCollector | None = None,
    parallel: bool = False,
) -> YieldResult:
    """Full lifecycle for a raw request mapping, starting from ``idle``."""
    debug = debug or NullDebugCollector()
    _enter(debug, YieldStage.IDLE)
    _enter(debug, YieldStage.BUILD_SYSTEM)
    system = parse_request(request, debug=debug)
    return calculate_yield(system, weather_source, model=model, debug=debug, parallel=parallel)


__all__ = [
    "YieldStage",
    "PassResult",
    "load_weather",
    "interval_energy",
    "sample_energy_wh",
    "annual_yield",
    "calculate_yield",
    "calculate_request",
]
