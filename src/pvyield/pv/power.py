"""PV power chain: temperature-corrected DC, system losses and inverter AC.

Functions take scalars or aligned Series and emit summary debug events when
handed Series, mirroring the rest of the pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import reduce

import numpy as np
import pandas as pd

from pvyield.core.debug import DebugCollector, NullDebugCollector
from pvyield.core.models import WeatherSample
from pvyield.core.params import InverterParams, SystemLossFactors, ThermalParams
from pvyield.solar.temperature import cell_temperature

_THERMAL = ThermalParams()
_INVERTER = InverterParams()


def _like(values, template, name: str):
    if isinstance(template, pd.Series):
        return pd.Series(np.asarray(values, dtype=float), index=template.index, name=name)
    if np.ndim(values) == 0:
        return float(values)
    return values


def dc_power(
    poa_global,
    temp_cell,
    dc_rating_w: float,
    params: ThermalParams = _THERMAL,
    debug: DebugCollector | None = None,
):
    """PVWatts DC model: ``G/1000 * P_dc0 * (1 + gamma * (T_cell - T_ref))``."""
    debug = debug or NullDebugCollector()
    pdc = (
        np.asarray(poa_global, dtype=float)
        / 1000.0
        * dc_rating_w
        * (1 + params.gamma_pdc * (np.asarray(temp_cell, dtype=float) - params.temp_ref_c))
    )
    out = _like(pdc, poa_global, "pdc_w")
    if isinstance(out, pd.Series):
        _emit_dc_summary(debug, out)
    return out


def module_dc_power(poa_global: float, sample: WeatherSample, dc_rating_w: float, params: ThermalParams = _THERMAL) -> float:
    """DC power of one module for one weather sample."""
    temp_cell = cell_temperature(sample.ghi_wm2, sample.temp_air_c, sample.wind_ms, params)
    return float(dc_power(poa_global, temp_cell, dc_rating_w, params))


def total_derate_percent(losses: SystemLossFactors) -> float:
    """Combined loss: ``100 * (1 - prod(1 - loss_i/100))``."""
    remaining = reduce(lambda acc, loss: acc * (1 - loss / 100.0), losses.as_dict().values(), 1.0)
    return 100.0 * (1 - remaining)


@dataclass(frozen=True)
class SystemLossModel:
    """Fixed derate chain; the combined percentage is computed once."""

    losses: SystemLossFactors = field(default_factory=SystemLossFactors)
    total_percent: float = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "total_percent", total_derate_percent(self.losses))

    @property
    def factor(self) -> float:
        return 1 - self.total_percent / 100.0

    def apply(self, pdc_w, debug: DebugCollector | None = None):
        debug = debug or NullDebugCollector()
        out = _like(np.asarray(pdc_w, dtype=float) * self.factor, pdc_w, "pdc_net_w")
        if isinstance(out, pd.Series):
            _emit_losses_summary(debug, self.total_percent, out)
        return out


def nameplate_dc_rating(ac_rating_w: float, params: InverterParams = _INVERTER) -> float:
    """Inverter DC input rating implied by its AC rating and nominal efficiency."""
    return ac_rating_w / params.nominal_efficiency


def ac_power(
    pdc_w,
    ac_rating_w: float,
    params: InverterParams = _INVERTER,
    debug: DebugCollector | None = None,
):
    """PVWatts part-load inverter curve.

    Below the nameplate DC rating, ``P_ac = P_dc * k * (-0.0162*x - 0.0059/x + 0.9858)``
    with load fraction ``x`` and scaling ``k = eta_nom/eta_ref``. At or above
    it the output saturates at ``ac_rating_w``. Zero or negative DC input
    yields zero AC.
    """
    debug = debug or NullDebugCollector()

    pdc0 = nameplate_dc_rating(ac_rating_w, params)
    pdc = np.asarray(pdc_w, dtype=float)
    # dc <= 0 divides by zero; masked below
    with np.errstate(divide="ignore", invalid="ignore"):
        load_fraction = pdc / pdc0
        efficiency = params.scaling_factor * (-0.0162 * load_fraction - 0.0059 / load_fraction + 0.9858)
        part_load = pdc * efficiency
    pac = np.where(pdc >= pdc0, ac_rating_w, np.where(pdc <= 0, 0.0, part_load))

    out = _like(pac, pdc_w, "pac_w")
    if isinstance(out, pd.Series):
        _emit_ac_summary(debug, out, ac_rating_w, pdc0)
    return out


def _emit_dc_summary(debug: DebugCollector, pdc: pd.Series) -> None:
    payload = {
        "pdc_min": float(pdc.min()) if not pdc.empty else 0.0,
        "pdc_max": float(pdc.max()) if not pdc.empty else 0.0,
    }
    ts = pdc.index[0] if not pdc.empty else None
    debug.emit("pv.dc.summary", payload, ts=ts)


def _emit_losses_summary(debug: DebugCollector, total_percent: float, pdc_net: pd.Series) -> None:
    payload = {
        "losses_percent": float(total_percent),
        "pdc_net_min": float(pdc_net.min()) if not pdc_net.empty else 0.0,
        "pdc_net_max": float(pdc_net.max()) if not pdc_net.empty else 0.0,
    }
    ts = pdc_net.index[0] if not pdc_net.empty else None
    debug.emit("pv.losses.summary", payload, ts=ts)


def _emit_ac_summary(debug: DebugCollector, pac: pd.Series, ac_rating_w: float, pdc0_w: float) -> None:
    payload = {
        "pac0_w": float(ac_rating_w),
        "pdc0_w": float(pdc0_w),
        "pac_min": float(pac.min()) if not pac.empty else 0.0,
        "pac_max": float(pac.max()) if not pac.empty else 0.0,
        "clipped_samples": int((pac >= ac_rating_w).sum()),
    }
    ts = pac.index[0] if not pac.empty else None
    debug.emit("pv.ac.summary", payload, ts=ts)


__all__ = [
    "dc_power",
    "module_dc_power",
    "total_derate_percent",
    "SystemLossModel",
    "nameplate_dc_rating",
    "ac_power",
]
