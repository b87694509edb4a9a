"""Command line entrypoint for pvyield.

Commands:

* ``run``: annual yield (with and without shadowing) for a request file.
* ``grid``: weather grid cell a coordinate resolves to.
* ``skyline``: merged 360-bucket horizon skyline of one panel.
* ``check-position``: built-in solar ephemeris vs pvlib for one day.
"""
from __future__ import annotations

import datetime as dt
import json
from pathlib import Path
from typing import Optional

import pandas as pd
import typer

from pvyield.core.config import ConfigError, load_request, load_run_settings, result_to_response
from pvyield.core.debug import NullDebugCollector, build_debug_collector
from pvyield.core.models import GeoLocation, ValidationError
from pvyield.engine.yield_calc import calculate_yield
from pvyield.solar.position import compare_with_reference
from pvyield.weather.base import WeatherDataError
from pvyield.weather.csv_store import CsvWeatherStore
from pvyield.weather.grid import resolve_grid_cell

__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="Annual PV yield estimator with horizon shadowing")


def default_weather_store(root: Path, debug) -> CsvWeatherStore:
    """Factory separated for easy monkeypatching in tests."""

    return CsvWeatherStore(root, debug=debug)


def _exit_with_error(msg: str) -> None:
    typer.echo(f"Error: {msg}", err=True)
    raise typer.Exit(code=1)


@app.command()
def run(
    request: Path = typer.Option(..., exists=True, readable=True, help="Request YAML/JSON file"),
    weather_dir: Optional[Path] = typer.Option(
        None,
        help="Directory with '<lon> <lat>_<year>.csv' weather files. Defaults to run.weather_dir in the request file.",
    ),
    parallel: bool = typer.Option(False, "--parallel", help="Compute shadowed and unshadowed passes concurrently"),
    debug: Optional[Path] = typer.Option(None, help="Write debug events to this path (.json array or JSONL)"),
    output: Optional[Path] = typer.Option(None, help="Also write the response JSON to this file"),
):
    """Estimate annual output for the system described in REQUEST."""

    debug_collector = build_debug_collector(debug) if debug else NullDebugCollector()
    try:
        settings = load_run_settings(request)
        system = load_request(request, debug=debug_collector)
    except ConfigError as exc:
        _exit_with_error(str(exc))

    effective_dir = weather_dir or settings.weather_dir
    if effective_dir is None:
        _exit_with_error("weather directory required: pass --weather-dir or set run.weather_dir")

    store = default_weather_store(effective_dir, debug=debug_collector)
    try:
        result = calculate_yield(system, store, model=settings.model, debug=debug_collector, parallel=parallel)
    except WeatherDataError as exc:
        _exit_with_error(str(exc))
    finally:
        close = getattr(debug_collector, "close", None)
        if close is not None:
            close()

    payload = json.dumps(result_to_response(result), indent=2)
    if output:
        output.write_text(payload)
    typer.echo(payload)
    if debug:
        typer.echo(f"Debug events -> {debug}", err=True)


@app.command()
def grid(
    lat: float = typer.Option(..., help="Latitude in decimal degrees"),
    lon: float = typer.Option(..., help="Longitude in decimal degrees"),
):
    """Print the weather grid cell for a coordinate."""

    try:
        cell = resolve_grid_cell(GeoLocation(lat=lat, lon=lon))
    except ValidationError as exc:
        _exit_with_error(str(exc))
    typer.echo(json.dumps({"latitude": cell.lat, "longitude": cell.lon}))


@app.command()
def skyline(
    request: Path = typer.Option(..., exists=True, readable=True, help="Request YAML/JSON file"),
    panel: int = typer.Option(0, help="Zero-based panel index"),
):
    """Print the merged horizon skyline of one panel as 'azimuth,elevation' lines."""

    try:
        system = load_request(request)
    except ConfigError as exc:
        _exit_with_error(str(exc))
    if not (0 <= panel < len(system.modules)):
        _exit_with_error(f"panel index {panel} out of range (0..{len(system.modules) - 1})")

    for azimuth, elevation in system.modules[panel].skyline.as_dict().items():
        typer.echo(f"{azimuth},{elevation:.3f}")


@app.command("check-position")
def check_position(
    lat: float = typer.Option(..., help="Latitude in decimal degrees"),
    lon: float = typer.Option(..., help="Longitude in decimal degrees"),
    date: str = typer.Option(..., help="Day to tabulate (YYYY-MM-DD)"),
    freq: str = typer.Option("1h", help="Sampling interval, e.g. 1h or 15min"),
):
    """Tabulate built-in vs pvlib sun position (UTC+1 wall clock) for daylight hours."""

    try:
        day = dt.date.fromisoformat(date)
        location = GeoLocation(lat=lat, lon=lon)
    except ValueError as exc:
        # ValidationError is a ValueError
        _exit_with_error(str(exc))

    times = pd.date_range(pd.Timestamp(day), periods=int(pd.Timedelta("1D") / pd.Timedelta(freq)), freq=freq)
    table = compare_with_reference(location, times)
    table = table[table["ref_elevation"] > 0]
    if table.empty:
        typer.echo("Sun stays below the horizon all day")
        return

    columns = ["azimuth", "ref_azimuth", "azimuth_diff", "elevation", "ref_elevation", "elevation_diff", "quadrant_mismatch"]
    typer.echo(table[columns].round(3).to_string())
    mismatches = int(table["quadrant_mismatch"].sum())
    if mismatches:
        typer.echo(f"{mismatches} sample(s) with azimuth quadrant mismatch", err=True)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def version_callback(
    version: bool = typer.Option(False, "--version", callback=_show_version, is_eager=True, help="Show version and exit"),
):
    """Annual PV yield estimator with horizon shadowing."""


def main() -> None:  # pragma: no cover - thin wrapper for console_script
    app()


__all__ = ["app", "main", "default_weather_store"]


if __name__ == "__main__":  # pragma: no cover
    main()
