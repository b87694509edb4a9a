"""Plane-of-array irradiance: beam, sky-diffuse and ground-reflected.

All helpers accept scalars or aligned pandas Series/numpy arrays.
"""
from __future__ import annotations

import numpy as np
import pandas as pd

from pvyield.core.debug import DebugCollector, NullDebugCollector
from pvyield.core.models import PvModuleSpec, SolarPosition, WeatherSample
from pvyield.core.params import IrradianceParams

_DEFAULT = IrradianceParams()

# Anti-reflective coating falloff, c0..c5 in powers of AOI (deg).
_REFLECTION_COEFFS = (1.0, -2.438e-3, 3.103e-4, -1.246e-5, 2.112e-7, -1.359e-9)


def angle_of_incidence(sun_azimuth, sun_elevation, surface_azimuth: float, surface_tilt: float):
    """Angle between sun rays and the module normal in degrees, clamped to <= 90."""
    zenith = np.radians(90.0 - np.asarray(sun_elevation, dtype=float))
    inner = (
        np.sin(zenith) * np.cos(np.radians(surface_azimuth) - np.radians(sun_azimuth)) * np.sin(np.radians(surface_tilt))
        + np.cos(zenith) * np.cos(np.radians(surface_tilt))
    )
    # rounding can push |inner| marginally past 1
    aoi = np.degrees(np.arccos(np.clip(inner, -1.0, 1.0)))
    return np.minimum(aoi, 90.0)


def reflection_correction(aoi, threshold_deg: float = _DEFAULT.reflection_threshold_deg):
    """Beam multiplier for steep incidence; exactly 1 up to ``threshold_deg``."""
    aoi = np.asarray(aoi, dtype=float)
    poly = np.polynomial.polynomial.polyval(aoi, _REFLECTION_COEFFS)
    return np.where(aoi > threshold_deg, poly, 1.0)


def extraterrestrial_radiation(day_of_year, solar_constant: float = _DEFAULT.solar_constant_wm2):
    """Spencer-series extraterrestrial irradiance.

    The angle is ``2*pi*day*365`` rather than ``2*pi*day/365``. That keeps the
    angle an integer multiple of 2*pi for integer days, so the result is the
    constant ``solar_constant * 1.03505``. Reproduced as the model defines it.
    """
    beta = (2 * np.pi * np.asarray(day_of_year, dtype=float)) * 365
    return solar_constant * (
        1.00011
        + 0.034221 * np.cos(beta)
        + 0.00128 * np.sin(beta)
        + 0.000719 * np.cos(2 * beta)
        + 0.000077 * np.sin(2 * beta)
    )


def poa_beam(dni, sun_azimuth, sun_elevation, module: PvModuleSpec, params: IrradianceParams = _DEFAULT):
    """Direct beam on the module plane; zero while the skyline hides the sun."""
    shaded = module.skyline.elevation_at(sun_azimuth) >= np.asarray(sun_elevation, dtype=float)
    aoi = angle_of_incidence(sun_azimuth, sun_elevation, module.azimuth_deg, module.tilt_deg)
    raw = np.asarray(dni, dtype=float) * np.cos(np.radians(aoi))
    corrected = raw * reflection_correction(aoi, params.reflection_threshold_deg)
    return np.where(shaded, 0.0, corrected)


def poa_sky_diffuse(dhi, dni, day_of_year, surface_tilt: float, params: IrradianceParams = _DEFAULT):
    anisotropy_index = np.asarray(dni, dtype=float) / extraterrestrial_radiation(day_of_year, params.solar_constant_wm2)
    return np.asarray(dhi, dtype=float) * (1 - anisotropy_index) * (1 + np.cos(np.radians(surface_tilt))) / 2


def poa_ground_reflected(ghi, surface_tilt: float, params: IrradianceParams = _DEFAULT):
    return np.asarray(ghi, dtype=float) * params.albedo * (1 + np.cos(np.radians(surface_tilt))) / 2


def poa_components(
    module: PvModuleSpec,
    weather: pd.DataFrame,
    solar_pos: pd.DataFrame,
    params: IrradianceParams = _DEFAULT,
    debug: DebugCollector | None = None,
) -> pd.DataFrame:
    """Compute plane-of-array irradiance for one module over a weather frame.

    ``weather`` needs ``dni_wm2``, ``dhi_wm2`` and ``ghi_wm2``; ``solar_pos``
    needs ``azimuth`` and ``elevation`` on the same index. Day of year is
    taken from the (wall-clock) weather index.
    """
    debug = debug or NullDebugCollector()

    azimuth = solar_pos["azimuth"].to_numpy()
    elevation = solar_pos["elevation"].to_numpy()
    day_of_year = np.asarray(pd.DatetimeIndex(weather.index).dayofyear)

    direct = poa_beam(weather["dni_wm2"].to_numpy(), azimuth, elevation, module, params)
    diffuse = poa_sky_diffuse(
        weather["dhi_wm2"].to_numpy(), weather["dni_wm2"].to_numpy(), day_of_year, module.tilt_deg, params
    )
    ground = poa_ground_reflected(weather["ghi_wm2"].to_numpy(), module.tilt_deg, params)

    df = pd.DataFrame(
        {
            "poa_global": direct + diffuse + ground,
            "poa_direct": direct,
            "poa_diffuse": diffuse,
            "poa_ground_diffuse": ground,
        },
        index=weather.index,
    )

    blocked = module.skyline.elevation_at(azimuth) >= elevation
    blocked_count = int(np.count_nonzero(blocked))
    debug.emit(
        "poa.horizon_mask",
        {"blocked_samples": blocked_count, "total": len(df), "blocked_pct": (blocked_count / len(df)) if len(df) else 0.0},
        ts=df.index[0] if not df.empty else None,
    )
    _emit_summary(debug, df)
    return df


def poa_irradiance(
    sample: WeatherSample,
    module: PvModuleSpec,
    sun: SolarPosition,
    params: IrradianceParams = _DEFAULT,
) -> float:
    """Single-sample POA irradiance (W/m²) for ``module``."""
    day_of_year = sample.timestamp.timetuple().tm_yday
    beam = poa_beam(sample.dni_wm2, sun.azimuth_deg, sun.elevation_deg, module, params)
    diffuse = poa_sky_diffuse(sample.dhi_wm2, sample.dni_wm2, day_of_year, module.tilt_deg, params)
    ground = poa_ground_reflected(sample.ghi_wm2, module.tilt_deg, params)
    return float(beam + diffuse + ground)


def _emit_summary(debug: DebugCollector, df: pd.DataFrame) -> None:
    if df.empty:
        debug.emit("poa.summary", {"poa_wh_m2": 0.0, "poa_global_max": 0.0}, ts=None)
        return
    payload = {
        "poa_global_max": float(df["poa_global"].max()),
        "poa_direct_max": float(df["poa_direct"].max()),
        "poa_global_mean": float(df["poa_global"].mean()),
    }
    debug.emit("poa.summary", payload, ts=df.index[0])


__all__ = [
    "angle_of_incidence",
    "reflection_correction",
    "extraterrestrial_radiation",
    "poa_beam",
    "poa_sky_diffuse",
    "poa_ground_reflected",
    "poa_components",
    "poa_irradiance",
]
