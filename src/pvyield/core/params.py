"""Fixed empirical constants of the yield model.

Built once per pipeline run and passed down explicitly; none of them change
during a calculation.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from typing import Dict, Mapping, Tuple

from .models import ValidationError

DEFAULT_YEARS: Tuple[int, ...] = (2017, 2018, 2019)
# Weather samples are 15-minute means.
INTERVAL_HOURS = 0.25


@dataclass(frozen=True)
class SystemLossFactors:
    """Named PVWatts-style losses in percent."""

    soiling: float = 2.0
    snow: float = 0.0
    mismatch: float = 2.0
    wiring: float = 2.0
    connections: float = 0.5
    light_induced_degradation: float = 1.5
    nameplate_rating: float = 1.0
    age: float = 0.0
    availability: float = 3.0

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not (0.0 <= value < 100.0):
                raise ValidationError(f"Loss factor {f.name} must be in [0, 100), got {value}")

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)

    def with_overrides(self, overrides: Mapping[str, float]) -> "SystemLossFactors":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValidationError(f"Unknown loss factors: {unknown}")
        return replace(self, **{k: float(v) for k, v in overrides.items()})


@dataclass(frozen=True)
class ThermalParams:
    """Back-surface temperature model with averaged racking coefficients.

    ``a`` and ``b`` are the means of the four reference configurations
    (-3.47, -2.98, -3.56, -2.81) and (-0.0594, -0.0471, -0.075, -0.0455);
    ``delta_t`` the mean of the four back-to-cell deltas (3, 1, 3, 0).
    """

    a: float = -3.205
    b: float = -0.0568
    delta_t: float = 1.75
    gamma_pdc: float = -0.0047
    temp_ref_c: float = 25.0


@dataclass(frozen=True)
class InverterParams:
    nominal_efficiency: float = 0.96
    reference_efficiency: float = 0.9637

    def __post_init__(self):
        if not (0 < self.nominal_efficiency <= 1):
            raise ValidationError("nominal_efficiency must be in (0, 1]")
        if not (0 < self.reference_efficiency <= 1):
            raise ValidationError("reference_efficiency must be in (0, 1]")

    @property
    def scaling_factor(self) -> float:
        return self.nominal_efficiency / self.reference_efficiency


@dataclass(frozen=True)
class IrradianceParams:
    albedo: float = 0.2
    reflection_threshold_deg: float = 50.0
    solar_constant_wm2: float = 1367.0


@dataclass(frozen=True)
class ModelConfig:
    losses: SystemLossFactors = field(default_factory=SystemLossFactors)
    thermal: ThermalParams = field(default_factory=ThermalParams)
    inverter: InverterParams = field(default_factory=InverterParams)
    irradiance: IrradianceParams = field(default_factory=IrradianceParams)
    years: Tuple[int, ...] = DEFAULT_YEARS

    def __post_init__(self):
        object.__setattr__(self, "years", tuple(int(y) for y in self.years))
        if not self.years:
            raise ValidationError("At least one weather year is required")


DEFAULT_MODEL = ModelConfig()


__all__ = [
    "DEFAULT_YEARS",
    "INTERVAL_HOURS",
    "SystemLossFactors",
    "ThermalParams",
    "InverterParams",
    "IrradianceParams",
    "ModelConfig",
    "DEFAULT_MODEL",
]
