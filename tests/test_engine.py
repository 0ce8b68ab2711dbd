"""
Tests for the HarmonicsEngine entry point
"""
import threading
import time
from datetime import datetime, timedelta

import pytest

import tide_harmonics.loader
from tide_harmonics import HarmonicsEngine, HarmonicsLoader, json_format
from tide_harmonics.constituents import (
    ConstituentDefinition,
    ConstituentKind,
    NodeFormula,
    standard_definitions,
)
from tide_harmonics.exceptions import CatalogIntegrityError, StationNotFoundError
from tide_harmonics.models import PeakType, StationKind

from tests.stations import current_record, subordinate_record, tide_record

START = datetime(2024, 1, 15)


@pytest.fixture
def engine(config, json_path):
    json_format.write_database(json_path, [
        tide_record('SEA', ('M2', 3.5, 140.0), ('S2', 0.9, 165.0),
                    ('K1', 2.6, 260.0), ('O1', 1.5, 240.0), datum_offset=6.7),
        subordinate_record('SUB', 'SEA', ratio=0.9),
        current_record('RACE', ('M2', 2.0, 80.0), ('S2', 0.5, 100.0)),
        tide_record('EMPTY'),
    ])
    return HarmonicsEngine(config)


class SlowLoader(HarmonicsLoader):
    """Loader that takes long enough to read for concurrent callers to overlap."""

    def read(self):
        time.sleep(0.05)
        return super().read()


class TestStations:
    """Tests for station lookup."""

    def test_stations(self, engine):
        assert [s.id for s in engine.stations()] == ['SEA', 'SUB', 'RACE', 'EMPTY']

    def test_find_station(self, engine):
        assert engine.find_station('RACE').kind is StationKind.CURRENT
        assert engine.find_station('NOPE') is None

    def test_harmonics_available(self, engine, config):
        assert engine.harmonics_available() is True
        config.json_path.unlink()
        assert HarmonicsEngine(config).harmonics_available() is False

    def test_no_databases(self, config):
        engine = HarmonicsEngine(config)
        assert engine.stations() == []


class TestGeneratePredictions:
    """Tests for predictions through the engine."""

    def test_tide_station(self, engine):
        points = engine.generate_predictions('SEA', START, START + timedelta(days=1))
        assert len(points) == 24 * 60 + 1
        assert all(p.units == 'feet' for p in points)
        values = [p.value for p in points]
        assert 6.7 - 10.0 <= min(values) and max(values) <= 6.7 + 10.0

    def test_configured_sample_interval(self, engine):
        points = engine.generate_predictions('SEA', START, START + timedelta(hours=1),
                                             sample_interval=timedelta(minutes=15))
        assert len(points) == 5

    def test_unknown_station(self, engine):
        with pytest.raises(StationNotFoundError) as excinfo:
            engine.generate_predictions('NOPE', START, START + timedelta(hours=1))
        assert isinstance(excinfo.value, KeyError)
        assert str(excinfo.value) == 'Unknown station id: NOPE'

    def test_station_without_harmonics(self, engine):
        assert engine.generate_predictions('EMPTY', START, START + timedelta(hours=1)) == []

    def test_end_before_start(self, engine):
        with pytest.raises(ValueError):
            engine.generate_predictions('SEA', START, START - timedelta(hours=1))

    def test_subordinate_station(self, engine):
        sub = engine.generate_predictions('SUB', START, START + timedelta(days=1))
        ref = engine.generate_predictions('SEA', START, START + timedelta(days=1))
        assert [p.value for p in sub] == pytest.approx([0.9 * (p.value - 6.7) for p in ref], abs=1e-9)


class TestDetectPeaks:
    """Tests for end-to-end event detection."""

    def test_tide_events(self, engine):
        points = engine.generate_predictions('SEA', START, START + timedelta(days=2))
        events = engine.detect_peaks(points, engine.find_station('SEA'))
        assert len(events) >= 6
        types = [e.type for e in events]
        assert set(types) == {PeakType.HIGH, PeakType.LOW}
        assert all(a != b for a, b in zip(types, types[1:]))
        assert [e.time for e in events] == sorted(e.time for e in events)

    def test_current_events(self, engine):
        station = engine.find_station('RACE')
        points = engine.generate_predictions('RACE', START, START + timedelta(days=1))
        events = engine.detect_peaks(points, station)
        types = {e.type for e in events}
        assert types == {PeakType.SLACK, PeakType.MAX_FLOOD, PeakType.MAX_EBB}
        for e in events:
            if e.type is PeakType.MAX_FLOOD:
                assert e.value > 0 and e.direction == 45.0
            elif e.type is PeakType.MAX_EBB:
                assert e.value < 0 and e.direction == 225.0


class TestConcurrency:
    """Tests for one-time catalog loading under concurrent access."""

    def test_single_load(self, config, json_path):
        json_format.write_database(json_path, [tide_record('A', ('M2', 1.0, 0.0))])
        loader = SlowLoader(config)
        engine = HarmonicsEngine(loader=loader)
        barrier = threading.Barrier(8)
        catalogs = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            catalog = engine.catalog
            with lock:
                catalogs.append(catalog)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(catalogs) == 8
        assert all(c is catalogs[0] for c in catalogs)
        assert loader.load_count == 1

    def test_concurrent_predictions_agree(self, engine):
        results = [None] * 4

        def worker(i):
            results[i] = engine.generate_predictions('SEA', START, START + timedelta(hours=6))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert all(r == results[0] for r in results)


class TestIntegrity:
    """A corrupt constituent table fails every operation."""

    def test_missing_nodal_vector(self, config, monkeypatch):
        broken = dict(standard_definitions())
        broken['BAD'] = ConstituentDefinition(
            name='BAD', kind=ConstituentKind.BASIC, speed=1.0,
            arguments=(1.0, 0.0, 0.0, 0.0, 0.0, 0.0), nodal=None,
            f_formula=NodeFormula.UNITY,
        )
        monkeypatch.setattr(tide_harmonics.loader, 'standard_definitions', lambda: broken)
        engine = HarmonicsEngine(config)
        with pytest.raises(CatalogIntegrityError):
            engine.stations()
        with pytest.raises(CatalogIntegrityError):
            engine.find_station('A')
