"""
Peak detection on predicted series.

Local extrema are bracketed by sign changes in the first difference of the
series and refined by fitting a parabola through the three samples around
each one, which places events between samples. Flat runs are resolved to
their midpoint.

Water level series yield alternating High and Low events. Current velocity
series (positive = flood, negative = ebb) yield Slack at each zero crossing
and the strongest MaxFlood or MaxEbb between consecutive slacks.
"""
import logging
from dataclasses import replace
from datetime import timedelta
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .models import (
    PeakEvent,
    PeakType,
    PredictionPoint,
    Station,
    StationKind,
    kind_for_units,
)

logger = logging.getLogger(__name__)


def _carry_signs(values: np.ndarray) -> np.ndarray:
    """
    Signs of values with zeros replaced by the preceding nonzero sign.

    Leading zeros take the first nonzero sign; an all-zero input stays zero.
    """
    signs = np.sign(values)
    nonzero = np.flatnonzero(signs)
    if nonzero.size == 0:
        return signs
    signs[:nonzero[0]] = signs[nonzero[0]]
    for i in range(nonzero[0] + 1, len(signs)):
        if signs[i] == 0:
            signs[i] = signs[i - 1]
    return signs


def find_extrema(seconds: np.ndarray, values: np.ndarray) -> List[Tuple[float, float, bool]]:
    """
    Locate local extrema with sub-sample precision.

    Args:
        seconds: Sample times in seconds from the first sample
        values: Sample values

    Returns:
        List of (seconds, value, is_maximum), alternating maxima and minima
    """
    if len(values) < 3:
        return []
    diffs = np.diff(values)
    signs = _carry_signs(diffs)
    extrema = []
    for i in np.flatnonzero(signs[1:] != signs[:-1]) + 1:
        is_max = signs[i - 1] > 0
        # Samples i-1..i+1 bracket the turn; a zero difference before i means
        # the turn sits at the end of a flat run
        if diffs[i - 1] == 0:
            j = i - 1
            while j > 0 and diffs[j - 1] == 0:
                j -= 1
            extrema.append(((seconds[j] + seconds[i]) / 2.0, float(values[i]), is_max))
            continue

        y1, y2, y3 = values[i - 1], values[i], values[i + 1]
        dt = (seconds[i + 1] - seconds[i - 1]) / 2.0
        denom = y1 - 2 * y2 + y3
        if abs(denom) > 1e-12:
            t = seconds[i] + 0.5 * (y1 - y3) / denom * dt
            value = y2 - 0.125 * (y1 - y3) ** 2 / denom
        else:
            t, value = seconds[i], y2
        extrema.append((float(t), float(value), is_max))
    return extrema


def find_zero_crossings(seconds: np.ndarray, values: np.ndarray) -> List[float]:
    """Times (seconds) where the series changes sign, by linear interpolation."""
    signs = _carry_signs(values)
    crossings = []
    for i in np.flatnonzero(signs[1:] != signs[:-1]):
        v1, v2 = values[i], values[i + 1]
        frac = v1 / (v1 - v2)
        crossings.append(float(seconds[i] + frac * (seconds[i + 1] - seconds[i])))
    return crossings


def _tide_events(extrema, at, units) -> List[PeakEvent]:
    return [
        PeakEvent(time=at(t), type=PeakType.HIGH if is_max else PeakType.LOW,
                  value=value, units=units)
        for t, value, is_max in extrema
    ]


def _current_events(extrema, crossings, at, units,
                    station: Optional[Station]) -> List[PeakEvent]:
    flood_dir = station.flood_direction if station else None
    ebb_dir = station.ebb_direction if station else None

    events = [PeakEvent(time=at(t), type=PeakType.SLACK, value=0.0, units=units)
              for t in crossings]

    bounds = [-np.inf] + crossings + [np.inf]
    for lo, hi in zip(bounds[:-1], bounds[1:]):
        candidates = [(t, v) for t, v, is_max in extrema
                      if lo < t < hi and ((is_max and v > 0) or (not is_max and v < 0))]
        if not candidates:
            continue
        t, v = max(candidates, key=lambda c: abs(c[1]))
        if v > 0:
            events.append(PeakEvent(time=at(t), type=PeakType.MAX_FLOOD, value=v,
                                    units=units, direction=flood_dir))
        else:
            events.append(PeakEvent(time=at(t), type=PeakType.MAX_EBB, value=v,
                                    units=units, direction=ebb_dir))

    events.sort(key=lambda e: e.time)
    return events


def apply_peak_offsets(events: Sequence[PeakEvent], station: Station) -> List[PeakEvent]:
    """
    Shift and scale events by the station's peak offsets.

    High and MaxFlood use the high pair, Low and MaxEbb the low pair; Slack is unchanged.
    """
    offsets = station.peak_offsets
    if offsets is None:
        return list(events)
    adjusted = []
    for e in events:
        if e.type in (PeakType.HIGH, PeakType.MAX_FLOOD):
            e = replace(e, time=e.time + offsets.high_time, value=e.value * offsets.high_multiplier)
        elif e.type in (PeakType.LOW, PeakType.MAX_EBB):
            e = replace(e, time=e.time + offsets.low_time, value=e.value * offsets.low_multiplier)
        adjusted.append(e)
    adjusted.sort(key=lambda e: e.time)
    return adjusted


def detect(points: Sequence[PredictionPoint],
           kind: Optional[StationKind] = None,
           station: Optional[Station] = None) -> List[PeakEvent]:
    """
    Extract classified events from a predicted series.

    Args:
        points: Samples in time order
        kind: Tide or current; taken from the station, else inferred from the units
        station: Station the series belongs to, for current directions and peak offsets

    Returns:
        Events in time order; empty for fewer than three samples or a monotonic series
    """
    if len(points) < 3:
        return []

    if kind is None:
        kind = station.kind if station is not None else kind_for_units(points[0].units)

    origin = points[0].time
    seconds = np.array([(p.time - origin).total_seconds() for p in points])
    values = np.array([p.value for p in points], dtype=float)
    units = points[0].units

    def at(t: float):
        return origin + timedelta(seconds=t)

    extrema = find_extrema(seconds, values)
    if kind is StationKind.CURRENT:
        events = _current_events(extrema, find_zero_crossings(seconds, values), at, units, station)
    else:
        events = _tide_events(extrema, at, units)

    if station is not None and station.peak_offsets is not None:
        events = apply_peak_offsets(events, station)
    logger.debug("Detected %d events in %d samples", len(events), len(points))
    return events
