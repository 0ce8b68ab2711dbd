"""
Prediction synthesizer.

Sums the station's constituents into a sampled water-level (or current
velocity) series:

    value(t) = datum + sum(f * A * cos(speed * t + V0 + u - g))

where t is hours since the start of the nodal interval, V0 is taken at that
start, f and u at its midpoint, and g is the station phase converted to a
Greenwich phase lag. Requests longer than the nodal interval are split so the
slowly varying corrections are re-derived for each piece.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

import numpy as np

from .astronomy import astronomical_arguments
from .catalog import Catalog
from .models import PredictionPoint, Station
from .nodal import compute_all

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_INTERVAL = timedelta(minutes=1)
DEFAULT_NODAL_INTERVAL = timedelta(days=31)


def greenwich_phase(phase: float, speed: float, meridian: float) -> float:
    """
    Convert a phase referenced to a zone meridian into a Greenwich phase lag.

    Args:
        phase: Station phase in degrees
        speed: Constituent speed in degrees per hour
        meridian: Zone UTC offset in hours (east positive)
    """
    return (phase - speed * meridian) % 360.0


def generate(catalog: Catalog,
             station: Station,
             start: datetime,
             end: datetime,
             sample_interval: timedelta = DEFAULT_SAMPLE_INTERVAL,
             nodal_interval: Optional[timedelta] = DEFAULT_NODAL_INTERVAL) -> List[PredictionPoint]:
    """
    Predict a station's values from start to end inclusive.

    Args:
        catalog: Catalog holding the station's resolved harmonics
        station: Station to predict
        start: First sample time (naive values are taken as UTC)
        end: Last permitted sample time
        sample_interval: Step between samples
        nodal_interval: Longest span sharing one set of f, u and V0;
            None evaluates them once for the whole range

    Returns:
        List of PredictionPoint in time order; empty when the station has no harmonics

    Raises:
        ValueError: If end precedes start or an interval is not positive
    """
    if sample_interval <= timedelta(0):
        raise ValueError("sample_interval must be positive")
    if nodal_interval is not None and nodal_interval <= timedelta(0):
        raise ValueError("nodal_interval must be positive")
    if end < start:
        raise ValueError(f"end {end.isoformat()} precedes start {start.isoformat()}")

    harmonics = catalog.harmonics_for(station.id)
    if not harmonics:
        return []

    step = sample_interval.total_seconds()
    count = int((end - start).total_seconds() // step) + 1
    offsets = np.arange(count) * step  # seconds from start

    span = nodal_interval.total_seconds() if nodal_interval else offsets[-1] + step
    values = np.full(count, station.datum_offset, dtype=float)

    chunk_start = 0.0
    while chunk_start <= offsets[-1]:
        chunk_end = min(chunk_start + span, (end - start).total_seconds())
        mask = (offsets >= chunk_start) & (offsets < chunk_start + span)
        t0 = start + timedelta(seconds=chunk_start)
        mid = start + timedelta(seconds=(chunk_start + chunk_end) / 2.0)

        factors = compute_all(catalog.definitions,
                              astronomical_arguments(t0),
                              astronomical_arguments(mid),
                              catalog.order)
        logger.debug("Station %s: nodal factors for %s (midpoint %s)",
                     station.id, t0.isoformat(), mid.isoformat())

        hours = (offsets[mask] - chunk_start) / 3600.0
        chunk = np.zeros(hours.shape)
        for h in harmonics:
            speed = catalog.definitions[h.constituent].speed
            nf = factors[h.constituent]
            g = greenwich_phase(h.phase, speed, station.meridian)
            chunk += nf.f * h.amplitude * np.cos(np.radians(speed * hours + nf.v0 + nf.u - g))
        values[mask] += chunk

        chunk_start += span

    return [
        PredictionPoint(time=start + timedelta(seconds=float(s)), value=float(v), units=station.units)
        for s, v in zip(offsets, values)
    ]
