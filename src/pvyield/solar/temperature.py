"""Module back-surface and cell temperature (Sandia-style exponential model).

Unlike the plane-of-array form of the Sandia model, the irradiance driver
here is global horizontal irradiance.
"""
from __future__ import annotations

import numpy as np
import pandas as pd

from pvyield.core.debug import DebugCollector, NullDebugCollector
from pvyield.core.params import ThermalParams

_DEFAULT = ThermalParams()


def back_surface_temperature(ghi, temp_air_c, wind_ms, params: ThermalParams = _DEFAULT):
    return np.asarray(ghi, dtype=float) * np.exp(params.a + params.b * np.asarray(wind_ms, dtype=float)) + temp_air_c


def cell_temperature(
    ghi,
    temp_air_c,
    wind_ms,
    params: ThermalParams = _DEFAULT,
    debug: DebugCollector | None = None,
):
    """Estimate cell temperature (°C) from GHI, ambient temperature and wind speed.

    Returns a Series named ``temp_cell_c`` when ``ghi`` is a Series, otherwise
    a float or ndarray matching the input shape.
    """
    debug = debug or NullDebugCollector()

    back = back_surface_temperature(ghi, temp_air_c, wind_ms, params)
    temp_cell = back + np.asarray(ghi, dtype=float) / 1000.0 * params.delta_t

    if isinstance(ghi, pd.Series):
        temp_cell = pd.Series(np.asarray(temp_cell, dtype=float), index=ghi.index, name="temp_cell_c")
        _emit_summary(debug, temp_cell, params)
        return temp_cell
    if np.ndim(temp_cell) == 0:
        return float(temp_cell)
    return temp_cell


def _emit_summary(debug: DebugCollector, temp_cell: pd.Series, params: ThermalParams) -> None:
    payload = {
        "a": params.a,
        "b": params.b,
        "delta_t": params.delta_t,
        "temp_cell_min": float(temp_cell.min()) if not temp_cell.empty else 0.0,
        "temp_cell_max": float(temp_cell.max()) if not temp_cell.empty else 0.0,
    }
    ts = temp_cell.index[0] if not temp_cell.empty else None
    debug.emit("temp_cell.summary", payload, ts=ts)


__all__ = ["back_surface_temperature", "cell_temperature"]
