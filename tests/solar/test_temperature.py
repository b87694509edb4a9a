import math

import pandas as pd
import pytest

from pvyield.core.debug import ListDebugCollector
from pvyield.core.params import ThermalParams
from pvyield.solar.temperature import back_surface_temperature, cell_temperature


def test_cell_temperature_formula():
    p = ThermalParams()
    back = 800.0 * math.exp(p.a + p.b * 2.0) + 20.0
    assert back_surface_temperature(800.0, 20.0, 2.0) == pytest.approx(back)
    assert cell_temperature(800.0, 20.0, 2.0) == pytest.approx(back + 0.8 * p.delta_t)


def test_no_irradiance_means_ambient():
    assert cell_temperature(0.0, 12.0, 5.0) == pytest.approx(12.0)


def test_hotter_with_more_sun_cooler_with_wind():
    assert cell_temperature(900.0, 20.0, 1.0) > cell_temperature(300.0, 20.0, 1.0)
    assert cell_temperature(900.0, 20.0, 8.0) < cell_temperature(900.0, 20.0, 1.0)


def test_series_input_returns_named_series_and_emits():
    idx = pd.date_range("2019-06-21 10:00", periods=3, freq="15min")
    ghi = pd.Series([200.0, 500.0, 800.0], index=idx)
    debug = ListDebugCollector()
    out = cell_temperature(ghi, pd.Series(20.0, index=idx), pd.Series(1.0, index=idx), debug=debug)
    assert isinstance(out, pd.Series)
    assert out.name == "temp_cell_c"
    assert out.index.equals(idx)
    assert out.is_monotonic_increasing
    assert debug.stages() == ["temp_cell.summary"]
