import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# ensure src package importable
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from pvyield.core.models import GeoLocation  # noqa: E402
from pvyield.solar.position import solar_position  # noqa: E402

SITE = GeoLocation(lat=48.3, lon=8.7)


def clear_day_frame(year: int, month: int = 6, day: int = 21, location: GeoLocation = SITE) -> pd.DataFrame:
    """One day of synthetic 15-minute clear-sky weather in the data's wall-clock convention."""
    idx = pd.date_range(f"{year}-{month:02d}-{day:02d}", periods=96, freq="15min", name="ts")
    elevation = solar_position(location, idx)["elevation"].to_numpy()
    up = elevation > 0
    sin_el = np.sin(np.radians(np.clip(elevation, 0, None)))
    return pd.DataFrame(
        {
            "temp_air_c": np.full(len(idx), 20.0),
            "dhi_wm2": np.where(up, 100.0, 0.0),
            "dni_wm2": np.where(up, 800.0, 0.0),
            "ghi_wm2": np.where(up, 800.0 * sin_el + 100.0, 0.0),
            "wind_ms": np.full(len(idx), 2.0),
        },
        index=idx,
    )


@pytest.fixture
def clear_day():
    return clear_day_frame
