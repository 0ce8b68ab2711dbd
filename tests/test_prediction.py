"""
Tests for the prediction synthesizer
"""
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from tide_harmonics.constituents import STANDARD_DEFINITIONS
from tide_harmonics.models import PeakType, StationHarmonic
from tide_harmonics.peaks import detect
from tide_harmonics.prediction import generate, greenwich_phase

from tests.stations import catalog_of, harmonics, station

START = datetime(2024, 3, 1)
M2_SPEED = STANDARD_DEFINITIONS['M2'].speed
M2_PERIOD_HOURS = 360.0 / M2_SPEED


def _values(points):
    return np.array([p.value for p in points])


def _predict(entries, start=START, end=None, **kwargs):
    s = kwargs.pop('station', None) or station()
    catalog = catalog_of([(s, harmonics(*entries))])
    return generate(catalog, s, start, end or start + timedelta(hours=48), **kwargs)


class TestGreenwichPhase:
    """Tests for the zone-to-Greenwich phase conversion."""

    def test_utc_unchanged(self):
        assert greenwich_phase(123.0, M2_SPEED, 0.0) == pytest.approx(123.0)

    def test_zone_shift(self):
        assert greenwich_phase(0.0, 15.0, -5.0) == pytest.approx(75.0)
        assert greenwich_phase(0.0, 15.0, 2.0) == pytest.approx(330.0)


class TestGenerate:
    """Tests for predicted series."""

    def test_semidiurnal_cycle(self):
        points = _predict([('M2', 1.0, 0.0)])
        events = detect(points)
        assert 7 <= len(events) <= 8
        types = [e.type for e in events]
        assert all(a != b for a, b in zip(types, types[1:]))

        highs = [e for e in events if e.type is PeakType.HIGH]
        for a, b in zip(highs, highs[1:]):
            spacing = (b.time - a.time).total_seconds() / 3600.0
            assert spacing == pytest.approx(M2_PERIOD_HOURS, abs=0.05)
        for e in highs:
            assert 0.9 <= e.value <= 1.1

    def test_amplitude_scaling(self):
        single = _predict([('M2', 1.0, 30.0), ('K1', 0.5, 100.0)])
        double = _predict([('M2', 2.0, 30.0), ('K1', 1.0, 100.0)])
        np.testing.assert_allclose(_values(double), 2 * _values(single), atol=1e-9)
        assert [p.time for p in double] == [p.time for p in single]

    def test_datum_offset(self):
        entries = [('M2', 1.0, 30.0)]
        base = _predict(entries)
        raised = _predict(entries, station=station(datum_offset=2.5))
        np.testing.assert_allclose(_values(raised), _values(base) + 2.5, atol=1e-9)

    def test_no_harmonics(self):
        assert _predict([]) == []

    def test_end_is_inclusive(self):
        points = _predict([('M2', 1.0, 0.0)], end=START + timedelta(hours=1),
                          sample_interval=timedelta(minutes=10))
        assert len(points) == 7
        assert points[0].time == START
        assert points[-1].time == START + timedelta(hours=1)

    def test_end_between_samples(self):
        points = _predict([('M2', 1.0, 0.0)], end=START + timedelta(minutes=25),
                          sample_interval=timedelta(minutes=10))
        assert [p.time for p in points] == [START + timedelta(minutes=m) for m in (0, 10, 20)]

    def test_units_follow_station(self):
        points = _predict([('M2', 1.0, 0.0)], station=station(units='meters'),
                          end=START + timedelta(hours=1))
        assert {p.units for p in points} == {'meters'}

    @pytest.mark.parametrize('kwargs', [
        {'end': START - timedelta(minutes=1)},
        {'sample_interval': timedelta(0)},
        {'nodal_interval': timedelta(seconds=-1)},
    ])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            _predict([('M2', 1.0, 0.0)], **kwargs)

    def test_chunked_matches_single_interval(self):
        entries = [('M2', 1.0, 30.0), ('S2', 0.4, 60.0), ('K1', 0.5, 100.0), ('O1', 0.3, 80.0)]
        chunked = _predict(entries, nodal_interval=timedelta(days=1),
                           sample_interval=timedelta(minutes=6))
        single = _predict(entries, nodal_interval=None, sample_interval=timedelta(minutes=6))
        np.testing.assert_allclose(_values(chunked), _values(single), atol=1e-3)

    def test_meridian_equivalence(self):
        zone_phase = (-5.0 * M2_SPEED) % 360.0
        eastern = _predict([('M2', 1.0, zone_phase)], station=station(meridian=-5.0))
        utc = _predict([('M2', 1.0, 0.0)])
        np.testing.assert_allclose(_values(eastern), _values(utc), atol=1e-9)

    def test_aware_start_matches_naive_utc(self):
        entries = [('M2', 1.0, 30.0), ('K1', 0.5, 100.0)]
        naive = _predict(entries)
        aware = _predict(entries, start=START.replace(tzinfo=timezone.utc),
                         end=START.replace(tzinfo=timezone.utc) + timedelta(hours=48))
        np.testing.assert_allclose(_values(aware), _values(naive), atol=1e-9)

    def test_compound_constituent(self):
        points = _predict([('M4', 0.2, 0.0)], sample_interval=timedelta(minutes=5))
        highs = [e for e in detect(points) if e.type is PeakType.HIGH]
        spacing = (highs[1].time - highs[0].time).total_seconds() / 3600.0
        assert spacing == pytest.approx(M2_PERIOD_HOURS / 2, abs=0.05)

    def test_unknown_station_harmonics_ignored(self):
        s = station('S1')
        catalog = catalog_of([(station('OTHER'), (StationHarmonic('M2', 1.0, 0.0),))])
        assert generate(catalog, s, START, START + timedelta(hours=1)) == []
