"""Domain models for the yield calculation.

Provides immutable data structures with validation for locations, horizon
skylines, modules, inverters, PV systems, weather samples and results.
"""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

import numpy as np

AZIMUTH_BUCKETS = 360


class ValidationError(ValueError):
    """Raised when model inputs violate constraints."""


def azimuth_bucket(azimuth_deg: float) -> int:
    """Truncate an azimuth to its integer bucket in 0..359."""
    return int(azimuth_deg) % AZIMUTH_BUCKETS


@dataclass(frozen=True)
class GeoLocation:
    lat: float
    lon: float

    def __post_init__(self):
        if not (-90.0 <= self.lat <= 90.0):
            raise ValidationError("Latitude must be between -90 and 90 degrees")
        if not (-180.0 <= self.lon <= 180.0):
            raise ValidationError("Longitude must be between -180 and 180 degrees")


@dataclass(frozen=True)
class ObstacleSample:
    azimuth_deg: float
    elevation_deg: float

    def __post_init__(self):
        if not (math.isfinite(self.azimuth_deg) and math.isfinite(self.elevation_deg)):
            raise ValidationError("Obstacle azimuth and elevation must be finite")
        if self.elevation_deg < 0:
            raise ValidationError(f"Obstacle elevation must be non-negative, got {self.elevation_deg}")

    @property
    def bucket(self) -> int:
        return azimuth_bucket(self.azimuth_deg)


@dataclass(frozen=True)
class ObstacleDataset:
    id: int | str
    samples: Tuple[ObstacleSample, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "samples", tuple(self.samples))


@dataclass(frozen=True)
class HorizonSkyline:
    """Obstruction elevation (deg) for each integer azimuth bucket 0..359.

    Bucket 359 is adjacent to bucket 0. Lookups truncate the azimuth to its
    bucket, so ``skyline[181.9]`` reads bucket 181.
    """

    elevations: Tuple[float, ...]

    def __post_init__(self):
        values = tuple(float(v) for v in self.elevations)
        if len(values) != AZIMUTH_BUCKETS:
            raise ValidationError(f"Horizon skyline must have exactly {AZIMUTH_BUCKETS} buckets, got {len(values)}")
        if not np.all(np.isfinite(values)):
            raise ValidationError("Horizon skyline elevations must be finite")
        if min(values) < 0:
            raise ValidationError("Horizon skyline elevations must be non-negative")
        object.__setattr__(self, "elevations", values)

    def __getitem__(self, azimuth_deg: float) -> float:
        return self.elevations[azimuth_bucket(azimuth_deg)]

    def __len__(self) -> int:
        return AZIMUTH_BUCKETS

    def elevation_at(self, azimuth_deg):
        """Vectorised bucket lookup for scalars, arrays or Series."""
        idx = np.mod(np.trunc(np.asarray(azimuth_deg, dtype=float)).astype(int), AZIMUTH_BUCKETS)
        values = np.asarray(self.elevations)[idx]
        if np.ndim(values) == 0:
            return float(values)
        return values

    def as_dict(self) -> Dict[int, float]:
        return {az: elev for az, elev in enumerate(self.elevations)}

    @property
    def is_flat(self) -> bool:
        return all(v == 0.0 for v in self.elevations)


@dataclass(frozen=True)
class PvModuleSpec:
    dc_rating_w: float
    azimuth_deg: float
    tilt_deg: float
    skyline: HorizonSkyline
    id: Optional[int | str] = None

    def __post_init__(self):
        if self.dc_rating_w < 0:
            raise ValidationError("dc_rating_w must be non-negative")
        if not (0.0 <= self.tilt_deg <= 90.0):
            raise ValidationError("Tilt must be between 0 and 90 degrees")
        if not isinstance(self.skyline, HorizonSkyline):
            raise ValidationError("skyline must be a HorizonSkyline instance")


@dataclass(frozen=True)
class InverterSpec:
    ac_rating_w: float
    id: Optional[int | str] = None
    name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        if self.ac_rating_w <= 0:
            raise ValidationError("Inverter ac_rating_w must be positive")


@dataclass(frozen=True)
class PvSystem:
    location: GeoLocation
    modules: Tuple[PvModuleSpec, ...] = field(default_factory=tuple)
    inverter_ac_rating_w: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "modules", tuple(self.modules))
        if not isinstance(self.location, GeoLocation):
            raise ValidationError("location must be a GeoLocation instance")
        if not self.modules:
            raise ValidationError("PvSystem must contain at least one module")
        for module in self.modules:
            if not isinstance(module, PvModuleSpec):
                raise ValidationError("modules must contain PvModuleSpec instances")
        if self.inverter_ac_rating_w <= 0:
            raise ValidationError("inverter_ac_rating_w must be positive")

    @property
    def dc_rating_w(self) -> float:
        return sum(m.dc_rating_w for m in self.modules)

    def with_skyline(self, skyline: HorizonSkyline) -> "PvSystem":
        """Return a new system whose modules all share ``skyline``; self is untouched."""
        modules = tuple(replace(m, skyline=skyline) for m in self.modules)
        return replace(self, modules=modules)


@dataclass(frozen=True)
class WeatherSample:
    location: GeoLocation
    timestamp: dt.datetime
    temp_air_c: float
    dhi_wm2: float
    dni_wm2: float
    ghi_wm2: float
    wind_ms: float


@dataclass(frozen=True)
class SolarPosition:
    azimuth_deg: float
    elevation_deg: float

    @property
    def zenith_deg(self) -> float:
        return 90.0 - self.elevation_deg


@dataclass(frozen=True)
class YieldResult:
    annual_output_with_shadow_kwh: int
    annual_output_without_shadow_kwh: int

    @property
    def shadow_loss_kwh(self) -> int:
        return self.annual_output_without_shadow_kwh - self.annual_output_with_shadow_kwh


__all__ = [
    "AZIMUTH_BUCKETS",
    "ValidationError",
    "azimuth_bucket",
    "GeoLocation",
    "ObstacleSample",
    "ObstacleDataset",
    "HorizonSkyline",
    "PvModuleSpec",
    "InverterSpec",
    "PvSystem",
    "WeatherSample",
    "SolarPosition",
    "YieldResult",
]
