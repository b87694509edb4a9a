"""Low-precision solar ephemeris (mean longitude / mean anomaly method).

Timestamps are wall-clock times of the weather data, which runs on a fixed
UTC+1 offset without daylight saving. Universal time is obtained by
subtracting one hour.
"""
from __future__ import annotations

import datetime as dt

import numpy as np
import pandas as pd
import pvlib

from pvyield.core.debug import DebugCollector, NullDebugCollector
from pvyield.core.models import GeoLocation, SolarPosition

# Etc/GMT-1 is UTC+1 (POSIX sign convention).
DATA_TIMEZONE = "Etc/GMT-1"
J2000 = 2451545.0


def _sin(deg):
    return np.sin(np.radians(deg))


def _cos(deg):
    return np.cos(np.radians(deg))


def _tan(deg):
    return np.tan(np.radians(deg))


def _to_wall_clock(times: pd.DatetimeIndex) -> pd.DatetimeIndex:
    if times.tz is not None:
        times = times.tz_convert(DATA_TIMEZONE).tz_localize(None)
    return times


def julian_dates(ut: pd.DatetimeIndex) -> tuple[np.ndarray, np.ndarray]:
    """Return (julian day at 0h UT, julian date incl. day fraction) for UT timestamps.

    January and February count as months 13 and 14 of the previous year for
    the Gregorian leap-rule term. Seconds are ignored.
    """
    year = np.asarray(ut.year, dtype=np.int64)
    month = np.asarray(ut.month, dtype=np.int64)
    early = month < 3
    year = np.where(early, year - 1, year)
    month = np.where(early, month + 12, month)

    a = np.floor_divide(year, 100)
    b = 2 - a + np.floor_divide(a, 4)
    day_fraction = np.asarray(ut.hour) / 24.0 + np.asarray(ut.minute) / 1440.0
    julian_day = (
        np.floor(365.25 * (year + 4716))
        + np.floor(30.6001 * (month + 1))
        + np.asarray(ut.day)
        + b
        - 1524.5
    )
    return julian_day, julian_day + day_fraction


def _ephemeris(location: GeoLocation, times: pd.DatetimeIndex) -> tuple[np.ndarray, np.ndarray]:
    ut = times - pd.Timedelta(hours=1)
    julian_day, julian_date = julian_dates(ut)

    n = julian_date - J2000
    mean_longitude = np.mod(280.460 + 0.9856474 * n, 360.0)
    mean_anomaly = np.mod(357.528 + 0.9856003 * n, 360.0)
    ecliptic_longitude = mean_longitude + 1.915 * _sin(mean_anomaly) + 0.01997 * _sin(2 * mean_anomaly)
    obliquity = 23.439 - 0.0000004 * n

    right_ascension = np.degrees(
        np.arctan2(_cos(obliquity) * _sin(ecliptic_longitude), _cos(ecliptic_longitude))
    )
    declination = np.degrees(np.arcsin(_sin(obliquity) * _sin(ecliptic_longitude)))

    t0 = (julian_day - J2000) / 36525.0
    ut_hours = np.asarray(ut.hour) + np.asarray(ut.minute) / 60.0
    sidereal_hours = np.mod(6.697376 + 2400.05134 * t0 + 1.002738 * ut_hours, 24.0)
    local_equinox_angle = sidereal_hours * 15.0 + location.lon
    hour_angle = local_equinox_angle - right_ascension

    lat = location.lat
    elevation = np.degrees(
        np.arcsin(_cos(declination) * _cos(hour_angle) * _cos(lat) + _sin(declination) * _sin(lat))
    )
    # atan, not atan2: only valid while the sun is south of the east-west line
    # (see compare_with_reference).
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = _sin(hour_angle) / (_cos(hour_angle) * _sin(lat) - _tan(declination) * _cos(lat))
    azimuth = np.degrees(np.arctan(ratio)) + 180.0
    return azimuth, elevation


def solar_position(
    location: GeoLocation,
    times: pd.DatetimeIndex,
    debug: DebugCollector | None = None,
) -> pd.DataFrame:
    """Compute sun azimuth/elevation for a location at the given times.

    Parameters
    ----------
    location: GeoLocation
        Observer latitude/longitude in decimal degrees.
    times: pandas.DatetimeIndex
        Naive wall-clock timestamps in the data's UTC+1 convention. Aware
        timestamps are converted to that convention first.
    debug: DebugCollector | None
        Collector for summary debug info.

    Returns
    -------
    pandas.DataFrame
        Columns ``zenith``, ``elevation``, ``azimuth`` in degrees, indexed by ``times``.
    """
    debug = debug or NullDebugCollector()
    wall = _to_wall_clock(pd.DatetimeIndex(times))

    azimuth, elevation = _ephemeris(location, wall)
    df = pd.DataFrame(
        {"zenith": 90.0 - elevation, "elevation": elevation, "azimuth": azimuth},
        index=times,
    )
    _emit_summary(debug, df)
    return df


def sun_position(location: GeoLocation, when: dt.datetime) -> SolarPosition:
    """Scalar convenience wrapper around :func:`solar_position`."""
    row = solar_position(location, pd.DatetimeIndex([when])).iloc[0]
    return SolarPosition(azimuth_deg=float(row["azimuth"]), elevation_deg=float(row["elevation"]))


def compare_with_reference(location: GeoLocation, times: pd.DatetimeIndex) -> pd.DataFrame:
    """Compare the built-in ephemeris against pvlib's SPA implementation.

    ``azimuth_diff`` is wrapped to (-180, 180]. A value close to ±180 marks
    the quadrant ambiguity of the built-in azimuth formula; it is reported,
    not corrected.
    """
    wall = _to_wall_clock(pd.DatetimeIndex(times))
    ours = solar_position(location, wall)
    ref = pvlib.solarposition.get_solarposition(wall.tz_localize(DATA_TIMEZONE), location.lat, location.lon)

    out = pd.DataFrame(
        {
            "azimuth": ours["azimuth"].to_numpy(),
            "elevation": ours["elevation"].to_numpy(),
            "ref_azimuth": ref["azimuth"].to_numpy(),
            "ref_elevation": ref["elevation"].to_numpy(),
        },
        index=wall,
    )
    diff = out["azimuth"] - out["ref_azimuth"]
    out["azimuth_diff"] = 180.0 - np.mod(180.0 - diff, 360.0)
    out["elevation_diff"] = out["elevation"] - out["ref_elevation"]
    out["quadrant_mismatch"] = out["azimuth_diff"].abs() > 90.0
    return out


def _emit_summary(debug: DebugCollector, df: pd.DataFrame) -> None:
    if df.empty:
        debug.emit("solar_position.summary", {"rows": 0}, ts=None)
        return
    payload = {
        "rows": len(df),
        "elevation_min": float(df["elevation"].min()),
        "elevation_max": float(df["elevation"].max()),
        "azimuth_min": float(df["azimuth"].min()),
        "azimuth_max": float(df["azimuth"].max()),
        "has_nans": bool(df.isna().any().any()),
    }
    debug.emit("solar_position.summary", payload, ts=df.index[0])


__all__ = ["solar_position", "sun_position", "compare_with_reference", "julian_dates"]
