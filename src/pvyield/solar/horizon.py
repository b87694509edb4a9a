"""Merge obstacle surveys into a per-module horizon skyline.

Surveys are grouped by integer azimuth bucket and averaged. Buckets nobody
observed are linearly interpolated between the nearest observed neighbours
on either side, going around the circle (359 and 0 are one degree apart).
"""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List

from pvyield.core.debug import DebugCollector, NullDebugCollector
from pvyield.core.models import (
    AZIMUTH_BUCKETS,
    HorizonSkyline,
    ObstacleDataset,
    ObstacleSample,
    ValidationError,
)


def _circular_distance(start: int, end: int) -> int:
    """Clockwise distance in buckets from ``start`` to ``end``."""
    return (end - start) % AZIMUTH_BUCKETS


def _combine(datasets: Iterable[ObstacleDataset]) -> Dict[int, List[float]]:
    grouped: Dict[int, List[float]] = defaultdict(list)
    for dataset in datasets:
        for sample in dataset.samples:
            grouped[sample.bucket].append(float(sample.elevation_deg))
    return grouped


def _average(grouped: Dict[int, List[float]]) -> Dict[int, float]:
    return {bucket: sum(values) / len(values) for bucket, values in grouped.items()}


def _neighbour(observed: Dict[int, float], target: int, step: int) -> int:
    for offset in range(1, AZIMUTH_BUCKETS + 1):
        candidate = (target + step * offset) % AZIMUTH_BUCKETS
        if candidate in observed:
            return candidate
    raise ValidationError("No observed azimuth bucket to interpolate from")


def _interpolate(observed: Dict[int, float]) -> List[float]:
    elevations: List[float] = []
    for azimuth in range(AZIMUTH_BUCKETS):
        if azimuth in observed:
            elevations.append(observed[azimuth])
            continue
        left = _neighbour(observed, azimuth, -1)
        right = _neighbour(observed, azimuth, +1)
        span = _circular_distance(left, right)
        if span == 0:
            # a single observed bucket covers the whole circle
            elevations.append(observed[left])
            continue
        t = _circular_distance(left, azimuth) / span
        elevations.append(observed[left] + t * (observed[right] - observed[left]))
    return elevations


def build_skyline(datasets: Iterable[ObstacleDataset], debug: DebugCollector | None = None) -> HorizonSkyline:
    """Build a 360-bucket skyline from one or more obstacle surveys.

    Raises ``ValidationError`` when the surveys contain no samples at all;
    callers without survey data should use :func:`flat_skyline`.
    """
    debug = debug or NullDebugCollector()
    datasets = list(datasets)

    observed = _average(_combine(datasets))
    if not observed:
        raise ValidationError("At least one obstacle sample is required to build a horizon skyline")

    skyline = HorizonSkyline(tuple(_interpolate(observed)))
    debug.emit(
        "horizon.build",
        {
            "datasets": len(datasets),
            "observed_buckets": len(observed),
            "elevation_max": max(skyline.elevations),
            "elevation_mean": sum(skyline.elevations) / AZIMUTH_BUCKETS,
        },
        ts=None,
    )
    return skyline


def flat_skyline() -> HorizonSkyline:
    """The unobstructed skyline, built from a single zero-elevation sample."""
    return build_skyline([ObstacleDataset(id=0, samples=(ObstacleSample(0.0, 0.0),))])


__all__ = ["build_skyline", "flat_skyline"]
