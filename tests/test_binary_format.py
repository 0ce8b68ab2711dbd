"""
Unit tests for the binary harmonics database codec
"""
import struct
from datetime import timedelta

import pytest

from tide_harmonics.binary_format import (
    MAGIC,
    VERSION,
    decode_database,
    encode_database,
    read_database,
    write_database,
)
from tide_harmonics.exceptions import DatabaseFormatError
from tide_harmonics.models import PeakOffsets
from tide_harmonics.records import ConstituentRecord

from tests.stations import (
    STANDARD_CONSTITUENTS,
    current_record,
    subordinate_record,
    tide_record,
)

HEADER = struct.Struct('<4sHHII')


def _header(n_constituents: int, n_stations: int) -> bytes:
    return HEADER.pack(MAGIC, VERSION, 0, n_constituents, n_stations)


def _station_frames(*records) -> bytes:
    """Framed station records as laid out after the constituent table."""
    prefix = len(encode_database(STANDARD_CONSTITUENTS, []))
    return encode_database(STANDARD_CONSTITUENTS, list(records))[prefix:]


def _constituent_frames() -> bytes:
    return encode_database(STANDARD_CONSTITUENTS, [])[HEADER.size:]


# A station payload whose first string claims more bytes than the record holds
GARBAGE_FRAME = struct.pack('<I', 4) + b'\x40\x00ab'


@pytest.fixture
def records():
    return [
        tide_record('9447130', ('M2', 3.5, 127.5), ('K1', 2.6, 250.0), datum_offset=6.6),
        subordinate_record('9447110', '9447130', ratio=0.9, phase_offset=12.0,
                           peak_offsets=PeakOffsets(high_time=timedelta(minutes=30),
                                                    high_multiplier=0.9,
                                                    low_time=timedelta(minutes=-12),
                                                    low_multiplier=1.1)),
        current_record('PUG1515', ('M2', 1.2, 40.0), ('O1', 0.3, 10.0), depth=15.0),
    ]


class TestRoundTrip:
    """Tests for encoding then decoding a database."""

    def test_records_survive(self, records):
        decoded = decode_database(encode_database(STANDARD_CONSTITUENTS, records))
        assert decoded.skipped == 0
        assert decoded.constituents == tuple(STANDARD_CONSTITUENTS)
        assert decoded.stations == tuple(records)

    def test_file_round_trip(self, tmp_path, records):
        path = tmp_path / 'harmonics.tdb'
        write_database(path, STANDARD_CONSTITUENTS, records)
        decoded = read_database(path)
        assert decoded.source == str(path)
        assert [s.id for s in decoded.stations] == ['9447130', '9447110', 'PUG1515']

    def test_subordinate_reference_by_index(self, records):
        decoded = decode_database(encode_database(STANDARD_CONSTITUENTS, records))
        sub = decoded.stations[1]
        assert sub.reference_id == '9447130'
        assert sub.ratio == 0.9
        assert sub.harmonics == ()

    def test_reference_to_station_without_id(self):
        records = [tide_record('', ('M2', 1.0, 0.0)), subordinate_record('B', '')]
        decoded = decode_database(encode_database(STANDARD_CONSTITUENTS, records))
        assert decoded.skipped == 0
        ref, sub = decoded.stations
        assert ref.index == 0
        assert sub.reference_id == ''
        assert sub.reference_index == 0

    def test_missing_meridian_stored_as_sentinel(self):
        record = tide_record('A', ('M2', 1.0, 0.0), meridian=None)
        decoded = decode_database(encode_database(STANDARD_CONSTITUENTS, [record]))
        assert decoded.stations[0].meridian == '\\N'


class TestHeader:
    """Tests for fatal header errors."""

    def test_too_short(self):
        with pytest.raises(DatabaseFormatError, match="too short"):
            decode_database(b'HTDB')

    def test_bad_magic(self):
        data = HEADER.pack(b'XTDB', VERSION, 0, 0, 0)
        with pytest.raises(DatabaseFormatError, match="magic"):
            decode_database(data)

    def test_unsupported_version(self):
        data = HEADER.pack(MAGIC, VERSION + 1, 0, 0, 0)
        with pytest.raises(DatabaseFormatError, match="version"):
            decode_database(data)

    def test_unreadable_path(self, tmp_path):
        with pytest.raises(DatabaseFormatError):
            read_database(tmp_path)

    def test_empty_database(self):
        decoded = decode_database(_header(0, 0))
        assert decoded.stations == ()
        assert decoded.skipped == 0


class TestMalformedRecords:
    """Tests for per-record recovery."""

    def test_malformed_station_skipped(self):
        good = tide_record('A', ('M2', 1.0, 0.0))
        data = (_header(len(STANDARD_CONSTITUENTS), 2) + _constituent_frames()
                + GARBAGE_FRAME + _station_frames(good))
        decoded = decode_database(data)
        assert [s.id for s in decoded.stations] == ['A']
        assert decoded.skipped == 1

    def test_truncated_file_skips_remaining_records(self):
        good = tide_record('A', ('M2', 1.0, 0.0))
        data = (_header(len(STANDARD_CONSTITUENTS), 3) + _constituent_frames()
                + _station_frames(good) + GARBAGE_FRAME)
        decoded = decode_database(data)
        assert [s.id for s in decoded.stations] == ['A']
        assert decoded.skipped == 2

    def test_reference_to_skipped_station_skips_subordinate(self):
        ref = tide_record('A', ('M2', 1.0, 0.0))
        sub = subordinate_record('B', 'A')
        sub_frame = _station_frames(ref, sub)[len(_station_frames(ref)):]
        data = (_header(len(STANDARD_CONSTITUENTS), 2) + _constituent_frames()
                + GARBAGE_FRAME + sub_frame)
        decoded = decode_database(data)
        assert decoded.stations == ()
        assert decoded.skipped == 2

    def test_out_of_range_constituent_index(self):
        """A harmonic pointing past the constituent table invalidates its station."""
        short_table = [ConstituentRecord('S2', 30.0, 'Basic 2 0 0 0 0 0 0 0 0 0 0 0 1')]
        data = (_header(1, 1) + encode_database(short_table, [])[HEADER.size:]
                + _station_frames(tide_record('B', ('K1', 1.0, 0.0))))
        decoded = decode_database(data)
        assert decoded.stations == ()
        assert decoded.skipped == 1


class TestEncoding:
    """Tests for encoder validation."""

    def test_unknown_reference_rejected(self):
        with pytest.raises(ValueError, match="not being encoded"):
            encode_database(STANDARD_CONSTITUENTS, [subordinate_record('B', 'A')])

    def test_unknown_constituent_rejected(self):
        with pytest.raises(ValueError, match="constituent table"):
            encode_database(STANDARD_CONSTITUENTS, [tide_record('A', ('M4', 0.1, 0.0))])
