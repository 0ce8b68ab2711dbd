"""
Binary harmonics database codec.

Layout (all integers and floats little-endian):

    header      magic b"HTDB", version u16, flags u16,
                constituent count u32, station count u32
    constituent u32 length, then: name str16, speed f64, definition str16
    station     u32 length, then:
                id str16, name str16, latitude f64, longitude f64,
                timezone str16, meridian str16, units str16,
                datum offset f64, depth f64,
                reference index i32 (-1 for reference stations),
                ratio f64, phase offset f64,
                flood direction f64, ebb direction f64,
                high time offset (minutes) f64, high multiplier f64,
                low time offset (minutes) f64, low multiplier f64,
                harmonic count u16, then per harmonic:
                    constituent index u16, amplitude f64, phase f64
    str16       u16 byte length, then UTF-8 bytes

NaN in an optional float field means "absent"; a NaN high time offset means
the station carries no peak offsets. Every record is length-prefixed, so a
malformed record is skipped without losing the position of the next one.
"""
import logging
import math
import struct
from dataclasses import replace
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .exceptions import DatabaseFormatError, RecordDecodeError
from .models import PeakOffsets, StationHarmonic
from .records import (
    NO_DATA,
    ConstituentRecord,
    DecodedDatabase,
    RecordResult,
    StationRecord,
)

logger = logging.getLogger(__name__)

MAGIC = b'HTDB'
VERSION = 1
NO_REFERENCE = -1

_HEADER = struct.Struct('<4sHHII')
_LENGTH = struct.Struct('<I')
_U16 = struct.Struct('<H')
_I32 = struct.Struct('<i')
_F64 = struct.Struct('<d')
_HARMONIC = struct.Struct('<Hdd')


class _Reader:
    """Sequential reader over one slice of the file."""

    def __init__(self, data: bytes, start: int = 0, end: Optional[int] = None):
        self.data = data
        self.pos = start
        self.end = len(data) if end is None else end

    @property
    def remaining(self) -> int:
        return self.end - self.pos

    def unpack(self, fmt: struct.Struct) -> tuple:
        if fmt.size > self.remaining:
            raise RecordDecodeError(
                f"truncated at byte {self.pos}: need {fmt.size}, have {self.remaining}"
            )
        values = fmt.unpack_from(self.data, self.pos)
        self.pos += fmt.size
        return values

    def u16(self) -> int:
        return self.unpack(_U16)[0]

    def i32(self) -> int:
        return self.unpack(_I32)[0]

    def f64(self) -> float:
        return self.unpack(_F64)[0]

    def optional_f64(self) -> Optional[float]:
        value = self.f64()
        return None if math.isnan(value) else value

    def string(self) -> str:
        length = self.u16()
        if length > self.remaining:
            raise RecordDecodeError(f"string of {length} bytes overruns record at byte {self.pos}")
        raw = self.data[self.pos:self.pos + length]
        self.pos += length
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise RecordDecodeError(f"invalid UTF-8 string: {e}") from e

    def frame(self) -> "_Reader":
        """Consume one length-prefixed record and return a reader over its payload."""
        length = self.unpack(_LENGTH)[0]
        if length > self.remaining:
            raise RecordDecodeError(
                f"record of {length} bytes overruns file at byte {self.pos}"
            )
        record = _Reader(self.data, self.pos, self.pos + length)
        self.pos += length
        return record


def _finite(value: float, field: str) -> float:
    if not math.isfinite(value):
        raise RecordDecodeError(f"{field} is not a finite number")
    return value


def _decode_constituent(reader: _Reader) -> ConstituentRecord:
    name = reader.string().strip()
    if not name:
        raise RecordDecodeError("constituent without a name")
    speed = _finite(reader.f64(), f"{name} speed")
    definition = reader.string()
    return ConstituentRecord(name=name.upper(), speed=speed, definition=definition)


def _decode_station(reader: _Reader,
                    constituent_names: Sequence[Optional[str]]) -> Tuple[StationRecord, int]:
    station_id = reader.string()
    name = reader.string()
    latitude = _finite(reader.f64(), 'latitude')
    longitude = _finite(reader.f64(), 'longitude')
    if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 360.0:
        raise RecordDecodeError(f"coordinates out of range: {latitude}, {longitude}")
    timezone = reader.string()
    meridian = reader.string()
    units = reader.string()
    datum_offset = _finite(reader.f64(), 'datum offset')
    depth = reader.optional_f64()
    reference_index = reader.i32()
    ratio = _finite(reader.f64(), 'ratio')
    phase_offset = _finite(reader.f64(), 'phase offset')
    flood_direction = reader.optional_f64()
    ebb_direction = reader.optional_f64()
    high_time = reader.optional_f64()
    high_multiplier = reader.f64()
    low_time = reader.optional_f64()
    low_multiplier = reader.f64()

    peak_offsets = None
    if high_time is not None:
        peak_offsets = PeakOffsets(
            high_time=timedelta(minutes=high_time),
            high_multiplier=_finite(high_multiplier, 'high multiplier'),
            low_time=timedelta(minutes=low_time or 0.0),
            low_multiplier=_finite(low_multiplier, 'low multiplier'),
        )

    harmonics = []
    for _ in range(reader.u16()):
        index, amplitude, phase = reader.unpack(_HARMONIC)
        if index >= len(constituent_names):
            raise RecordDecodeError(f"constituent index {index} out of range")
        if not math.isfinite(amplitude) or amplitude < 0 or not math.isfinite(phase):
            raise RecordDecodeError(f"invalid amplitude/phase {amplitude}/{phase}")
        # A constituent whose table entry failed to decode is dropped by the loader
        harmonics.append(StationHarmonic(
            constituent=constituent_names[index] or f"#{index}",
            amplitude=amplitude,
            phase=phase % 360.0,
        ))

    record = StationRecord(
        id=station_id,
        name=name,
        latitude=latitude,
        longitude=longitude,
        timezone=timezone if timezone != NO_DATA else '',
        meridian=meridian or None,
        units=units or 'feet',
        datum_offset=datum_offset,
        depth=depth,
        ratio=ratio,
        phase_offset=phase_offset,
        flood_direction=flood_direction,
        ebb_direction=ebb_direction,
        peak_offsets=peak_offsets,
        harmonics=tuple(harmonics),
    )
    return record, reference_index


def _decode_records(reader: _Reader, count: int, decode, label: str) -> List[RecordResult]:
    results = []
    for i in range(count):
        try:
            payload = reader.frame()
        except RecordDecodeError as e:
            # Framing is lost: nothing after this point can be located
            for j in range(i, count):
                results.append(RecordResult(index=j, error=f"{label} {j}: {e}"))
            break
        try:
            results.append(RecordResult(index=i, value=decode(payload)))
        except RecordDecodeError as e:
            results.append(RecordResult(index=i, error=f"{label} {i}: {e}"))
    return results


def decode_database(data: bytes, source: str = '<bytes>') -> DecodedDatabase:
    """
    Decode a binary harmonics database.

    Args:
        data: File contents
        source: Label used in log messages

    Returns:
        DecodedDatabase with every well-formed record and the errors of the rest

    Raises:
        DatabaseFormatError: If the header is missing, truncated or has the wrong magic/version
    """
    if len(data) < _HEADER.size:
        raise DatabaseFormatError(f"{source}: file too short for header ({len(data)} bytes)")
    magic, version, _flags, n_constituents, n_stations = _HEADER.unpack_from(data, 0)
    if magic != MAGIC:
        raise DatabaseFormatError(f"{source}: bad magic {magic!r}")
    if version != VERSION:
        raise DatabaseFormatError(f"{source}: unsupported version {version}")

    reader = _Reader(data, _HEADER.size)
    errors: List[str] = []

    constituent_results = _decode_records(reader, n_constituents, _decode_constituent, 'constituent')
    constituents = []
    names: List[Optional[str]] = []
    for result in constituent_results:
        if result.ok:
            constituents.append(result.value)
            names.append(result.value.name)
        else:
            errors.append(result.error)
            names.append(None)

    station_results = _decode_records(
        reader, n_stations, lambda r: _decode_station(r, names), 'station'
    )

    # Reference indices point into the station table, so resolve them once
    # every record has been decoded. The raw id may be empty; the loader maps
    # the index to the id it assigns the reference station.
    ids_by_index: Dict[int, str] = {
        r.index: r.value[0].id for r in station_results if r.ok
    }
    stations = []
    for result in station_results:
        if not result.ok:
            errors.append(result.error)
            continue
        record, reference_index = result.value
        if reference_index != NO_REFERENCE:
            reference_id = ids_by_index.get(reference_index)
            if reference_id is None:
                errors.append(
                    f"station {result.index}: reference index {reference_index} "
                    "does not name a decoded station"
                )
                continue
            record = replace(record, reference_id=reference_id,
                             reference_index=reference_index, harmonics=())
        stations.append(replace(record, index=result.index))

    for message in errors:
        logger.warning("%s: skipped %s", source, message)

    return DecodedDatabase(
        source=source,
        constituents=tuple(constituents),
        stations=tuple(stations),
        errors=tuple(errors),
    )


def read_database(path: Union[str, Path]) -> DecodedDatabase:
    """
    Read and decode a binary harmonics database file.

    Raises:
        DatabaseFormatError: If the file cannot be read or its header is invalid
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DatabaseFormatError(f"{path}: {e}") from e
    return decode_database(data, source=str(path))


# Encoding

def _pack_string(value: Optional[str]) -> bytes:
    raw = (value or '').encode('utf-8')
    if len(raw) > 0xFFFF:
        raise ValueError(f"string too long for str16 field ({len(raw)} bytes)")
    return _U16.pack(len(raw)) + raw


def _pack_optional(value: Optional[float]) -> bytes:
    return _F64.pack(math.nan if value is None else value)


def _frame(payload: bytes) -> bytes:
    return _LENGTH.pack(len(payload)) + payload


def _encode_station(record: StationRecord,
                    station_index: Dict[str, int],
                    constituent_index: Dict[str, int]) -> bytes:
    if record.reference_id is not None:
        if record.reference_id not in station_index:
            raise ValueError(
                f"station {record.id!r} refers to {record.reference_id!r}, "
                "which is not being encoded"
            )
        reference_index = station_index[record.reference_id]
    else:
        reference_index = NO_REFERENCE

    offsets = record.peak_offsets
    parts = [
        _pack_string(record.id),
        _pack_string(record.name),
        _F64.pack(record.latitude),
        _F64.pack(record.longitude),
        _pack_string(record.timezone),
        _pack_string(record.meridian if record.meridian is not None else NO_DATA),
        _pack_string(record.units),
        _F64.pack(record.datum_offset),
        _pack_optional(record.depth),
        _I32.pack(reference_index),
        _F64.pack(record.ratio),
        _F64.pack(record.phase_offset),
        _pack_optional(record.flood_direction),
        _pack_optional(record.ebb_direction),
        _pack_optional(offsets.high_time.total_seconds() / 60.0 if offsets else None),
        _F64.pack(offsets.high_multiplier if offsets else 1.0),
        _pack_optional(offsets.low_time.total_seconds() / 60.0 if offsets else None),
        _F64.pack(offsets.low_multiplier if offsets else 1.0),
        _U16.pack(len(record.harmonics)),
    ]
    for harmonic in record.harmonics:
        if harmonic.constituent not in constituent_index:
            raise ValueError(
                f"station {record.id!r} uses {harmonic.constituent}, "
                "which is not in the constituent table"
            )
        parts.append(_HARMONIC.pack(
            constituent_index[harmonic.constituent], harmonic.amplitude, harmonic.phase
        ))
    return b''.join(parts)


def encode_database(constituents: Sequence[ConstituentRecord],
                    stations: Sequence[StationRecord],
                    flags: int = 0) -> bytes:
    """
    Encode constituent and station records into the binary layout.

    Subordinate stations are stored with the index of their reference station,
    so every reference_id must name a station in the same batch.

    Raises:
        ValueError: If a reference or constituent cannot be indexed
    """
    constituent_index = {c.name: i for i, c in enumerate(constituents)}
    station_index = {s.id: i for i, s in enumerate(stations)}

    chunks = [_HEADER.pack(MAGIC, VERSION, flags, len(constituents), len(stations))]
    for c in constituents:
        chunks.append(_frame(
            _pack_string(c.name) + _F64.pack(c.speed) + _pack_string(c.definition)
        ))
    for s in stations:
        chunks.append(_frame(_encode_station(s, station_index, constituent_index)))
    return b''.join(chunks)


def write_database(path: Union[str, Path],
                   constituents: Sequence[ConstituentRecord],
                   stations: Sequence[StationRecord]) -> None:
    """Encode records and write them to a binary database file."""
    Path(path).write_bytes(encode_database(constituents, stations))
