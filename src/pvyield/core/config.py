"""Request and run-configuration loader.

Accepts the yield request structure (camelCase keys, as sent by the web
front end) either as an in-memory mapping or from a YAML/JSON file. An
optional ``run`` section tunes the calculation::

    run:
      weather_dir: data/weather
      years: [2017, 2018, 2019]
      losses:
        soiling: 3.0
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

try:
    import yaml
except ModuleNotFoundError as exc:  # pragma: no cover
    raise ImportError("PyYAML is required to load YAML configs") from exc

from .debug import DebugCollector, NullDebugCollector
from .models import (
    GeoLocation,
    InverterSpec,
    ObstacleDataset,
    ObstacleSample,
    PvModuleSpec,
    PvSystem,
    ValidationError,
    YieldResult,
)
from .params import DEFAULT_YEARS, ModelConfig, SystemLossFactors
from pvyield.solar.horizon import build_skyline, flat_skyline


class ConfigError(ValueError):
    """Raised when configuration cannot be parsed into domain models."""


_REQUIRED_REQUEST_KEYS = {"userGPSCoords", "userPanels", "userInverters"}
_REQUIRED_PANEL_KEYS = {"panelWatts", "panelAzimuth", "panelElevation"}


@dataclass(frozen=True)
class RunSettings:
    weather_dir: Optional[Path] = None
    model: ModelConfig = field(default_factory=ModelConfig)


def _load_raw(path: Path) -> Dict[str, Any]:
    text = path.read_text()
    if path.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(text) or {}
    if path.suffix.lower() == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    raise ConfigError(f"Unsupported config extension: {path.suffix}")


def _number(raw: Mapping[str, Any], key: str, what: str) -> float:
    if not isinstance(raw, Mapping) or key not in raw:
        raise ConfigError(f"Missing {what} field: {key}")
    try:
        return float(raw[key])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{what} field {key} must be numeric, got {raw[key]!r}") from exc


def _parse_location(raw: Mapping[str, Any]) -> GeoLocation:
    if not isinstance(raw, Mapping):
        raise ConfigError("userGPSCoords must be a mapping with longitude/latitude")
    try:
        return GeoLocation(lat=_number(raw, "latitude", "userGPSCoords"), lon=_number(raw, "longitude", "userGPSCoords"))
    except ValidationError as exc:
        raise ConfigError(f"Invalid location: {exc}") from exc


def _parse_datasets(raw_sets: Any) -> List[ObstacleDataset]:
    if raw_sets is None:
        return []
    if not isinstance(raw_sets, list):
        raise ConfigError("panelObstacleDatasets must be a list")
    datasets = []
    for idx, raw in enumerate(raw_sets):
        if not isinstance(raw, Mapping):
            raise ConfigError("panelObstacleDatasets entries must be mappings")
        points = raw.get("dataPoints") or []
        samples = tuple(
            ObstacleSample(
                azimuth_deg=_number(p, "azimuth", "dataPoint"),
                elevation_deg=_number(p, "elevation", "dataPoint"),
            )
            for p in points
        )
        datasets.append(ObstacleDataset(id=raw.get("dataSetID", idx), samples=samples))
    return datasets


def _parse_panel(raw: Mapping[str, Any], debug: DebugCollector) -> PvModuleSpec:
    if not isinstance(raw, Mapping):
        raise ConfigError("userPanels entries must be mappings")
    missing = _REQUIRED_PANEL_KEYS - raw.keys()
    if missing:
        raise ConfigError(f"Missing panel fields: {sorted(missing)}")
    try:
        datasets = _parse_datasets(raw.get("panelObstacleDatasets"))
        if any(ds.samples for ds in datasets):
            skyline = build_skyline(datasets, debug=debug)
        else:
            skyline = flat_skyline()
        return PvModuleSpec(
            id=raw.get("panelID"),
            dc_rating_w=_number(raw, "panelWatts", "panel"),
            azimuth_deg=_number(raw, "panelAzimuth", "panel"),
            tilt_deg=_number(raw, "panelElevation", "panel"),
            skyline=skyline,
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid panel {raw.get('panelID')!r}: {exc}") from exc


def _parse_inverter(raw: Mapping[str, Any]) -> InverterSpec:
    try:
        return InverterSpec(
            id=raw.get("inverterID"),
            ac_rating_w=_number(raw, "inverterWatts", "inverter"),
            name=raw.get("inverterName"),
            description=raw.get("inverterDescription"),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid inverter: {exc}") from exc


def parse_request(raw: Mapping[str, Any], debug: DebugCollector | None = None) -> PvSystem:
    """Build a :class:`PvSystem` from the request mapping.

    Only the first entry of ``userInverters`` is used.
    """
    debug = debug or NullDebugCollector()
    if not isinstance(raw, Mapping):
        raise ConfigError("Request must be a mapping")
    missing = _REQUIRED_REQUEST_KEYS - raw.keys()
    if missing:
        raise ConfigError(f"Missing request fields: {sorted(missing)}")

    panels = raw["userPanels"] or []
    inverters = raw["userInverters"] or []
    if not panels:
        raise ConfigError("userPanels must contain at least one panel")
    if not inverters:
        raise ConfigError("userInverters must contain at least one inverter")

    if not isinstance(inverters[0], Mapping):
        raise ConfigError("userInverters entries must be mappings")

    location = _parse_location(raw["userGPSCoords"])
    modules = [_parse_panel(p, debug) for p in panels]
    inverter = _parse_inverter(inverters[0])
    try:
        system = PvSystem(location=location, modules=modules, inverter_ac_rating_w=inverter.ac_rating_w)
    except ValidationError as exc:
        raise ConfigError(f"Invalid system: {exc}") from exc

    debug.emit(
        "system.build",
        {
            "lat": location.lat,
            "lon": location.lon,
            "modules": len(modules),
            "dc_rating_w": system.dc_rating_w,
            "inverter_ac_rating_w": inverter.ac_rating_w,
            "ignored_inverters": len(inverters) - 1,
        },
        ts=None,
    )
    return system


def parse_run_settings(raw: Mapping[str, Any] | None, base_dir: Path | None = None) -> RunSettings:
    """Parse the optional ``run`` section; relative ``weather_dir`` resolves against ``base_dir``."""
    raw = raw or {}
    if not isinstance(raw, Mapping):
        raise ConfigError("run section must be a mapping")

    weather_dir = raw.get("weather_dir")
    if weather_dir is not None:
        weather_dir = Path(weather_dir)
        if base_dir is not None and not weather_dir.is_absolute():
            weather_dir = base_dir / weather_dir

    try:
        years = tuple(int(y) for y in raw.get("years", DEFAULT_YEARS))
        losses = SystemLossFactors().with_overrides(raw.get("losses") or {})
        model = ModelConfig(losses=losses, years=years)
    except (TypeError, ValueError) as exc:
        # ValidationError is a ValueError
        raise ConfigError(f"Invalid run settings: {exc}") from exc
    return RunSettings(weather_dir=weather_dir, model=model)


def load_request(path: str | Path, debug: DebugCollector | None = None) -> PvSystem:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Request file not found: {path}")
    return parse_request(_load_raw(path), debug=debug)


def load_run_settings(path: str | Path) -> RunSettings:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    raw = _load_raw(path)
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return parse_run_settings(raw.get("run"), base_dir=path.parent)


def result_to_response(result: YieldResult) -> Dict[str, int]:
    return {
        "calculatedOutput": int(result.annual_output_with_shadow_kwh),
        "calculatedOutputNoShadow": int(result.annual_output_without_shadow_kwh),
    }


__all__ = [
    "ConfigError",
    "RunSettings",
    "parse_request",
    "parse_run_settings",
    "load_request",
    "load_run_settings",
    "result_to_response",
]
