"""
JSON harmonics database codec.

The document follows the TICON station export:

    {
      "constituents": [{"name": "M2", "speed": 28.98, "definition": "Basic ..."}],
      "stations": [
        {
          "id": "...", "name": "...", "lat": 0.0, "lon": 0.0,
          "timezone": "...", "units": "meters", "meridian": "00:00:00",
          "datum_offset": 0.0, "depth": null,
          "reference": {"station_id": "...", "ratio": 1.0, "phase_offset": 0.0},
          "flood_direction": null, "ebb_direction": null,
          "peak_offsets": {"high_time_minutes": 0, "high_multiplier": 1.0,
                           "low_time_minutes": 0, "low_multiplier": 1.0},
          "constituents": [{"name": "M2", "amp": 1.0, "phase": 0.0}]
        }
      ]
    }

Only "name", "lat", "lon" and "constituents" (or "reference") are required.
TICON phases are referenced to UTC, so the meridian defaults to 00:00:00.
"""
import json
import logging
import math
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .exceptions import DatabaseFormatError, RecordDecodeError
from .models import PeakOffsets, StationHarmonic
from .records import ConstituentRecord, DecodedDatabase, RecordResult, StationRecord

logger = logging.getLogger(__name__)

UTC_MERIDIAN = '00:00:00'

# TICON current stations carry their depth in the name, e.g. "Race Point (depth 15 ft)"
_DEPTH_IN_NAME = re.compile(r'\(depth (\d+(?:\.\d+)?)\s*(ft|m)\)', re.IGNORECASE)


def _number(obj: Dict[str, Any], key: str, default: Optional[float] = None) -> Optional[float]:
    value = obj.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise RecordDecodeError(f"{key} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise RecordDecodeError(f"{key} is not a finite number")
    return float(value)


def _required_number(obj: Dict[str, Any], key: str) -> float:
    if obj.get(key) is None:
        raise RecordDecodeError(f"missing {key}")
    return _number(obj, key)


def _decode_harmonic(entry: Any) -> StationHarmonic:
    if not isinstance(entry, dict) or not entry.get('name'):
        raise RecordDecodeError(f"invalid constituent entry {entry!r}")
    amplitude = _required_number(entry, 'amp')
    if amplitude < 0:
        raise RecordDecodeError(f"negative amplitude for {entry['name']}")
    return StationHarmonic(
        constituent=str(entry['name']).strip().upper(),
        amplitude=amplitude,
        phase=_required_number(entry, 'phase') % 360.0,
    )


def _decode_peak_offsets(obj: Any) -> Optional[PeakOffsets]:
    if obj is None:
        return None
    if not isinstance(obj, dict):
        raise RecordDecodeError("peak_offsets must be an object")
    return PeakOffsets(
        high_time=timedelta(minutes=_number(obj, 'high_time_minutes', 0.0)),
        high_multiplier=_number(obj, 'high_multiplier', 1.0),
        low_time=timedelta(minutes=_number(obj, 'low_time_minutes', 0.0)),
        low_multiplier=_number(obj, 'low_multiplier', 1.0),
    )


def _decode_station(obj: Any) -> StationRecord:
    if not isinstance(obj, dict):
        raise RecordDecodeError(f"station entry is not an object: {obj!r}")

    name = obj.get('name')
    if not isinstance(name, str) or not name.strip():
        raise RecordDecodeError("station without a name")
    latitude = _required_number(obj, 'lat')
    longitude = _required_number(obj, 'lon')
    if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 360.0:
        raise RecordDecodeError(f"coordinates out of range: {latitude}, {longitude}")

    depth = _number(obj, 'depth')
    if depth is None:
        match = _DEPTH_IN_NAME.search(name)
        if match:
            depth = float(match.group(1))

    reference = obj.get('reference')
    reference_id, ratio, phase_offset = None, 1.0, 0.0
    if reference is not None:
        if not isinstance(reference, dict) or not reference.get('station_id'):
            raise RecordDecodeError("reference must be an object with a station_id")
        reference_id = str(reference['station_id'])
        ratio = _number(reference, 'ratio', 1.0)
        phase_offset = _number(reference, 'phase_offset', 0.0)

    entries = obj.get('constituents', [])
    if not isinstance(entries, list):
        raise RecordDecodeError("constituents must be a list")
    harmonics = tuple(_decode_harmonic(e) for e in entries) if reference_id is None else ()

    return StationRecord(
        id=str(obj.get('id') or ''),
        name=name.strip(),
        latitude=latitude,
        longitude=longitude,
        timezone=str(obj.get('timezone') or ''),
        meridian=obj.get('meridian') or UTC_MERIDIAN,
        units=str(obj.get('units') or 'meters'),
        datum_offset=_number(obj, 'datum_offset', 0.0),
        depth=depth,
        reference_id=reference_id,
        ratio=ratio,
        phase_offset=phase_offset,
        flood_direction=_number(obj, 'flood_direction'),
        ebb_direction=_number(obj, 'ebb_direction'),
        peak_offsets=_decode_peak_offsets(obj.get('peak_offsets')),
        harmonics=harmonics,
    )


def _decode_constituent(obj: Any) -> ConstituentRecord:
    if not isinstance(obj, dict) or not obj.get('name') or not obj.get('definition'):
        raise RecordDecodeError(f"invalid constituent definition {obj!r}")
    return ConstituentRecord(
        name=str(obj['name']).strip().upper(),
        speed=_required_number(obj, 'speed'),
        definition=str(obj['definition']),
    )


def _decode_each(entries: Sequence[Any], decode, label: str) -> List[RecordResult]:
    results = []
    for i, entry in enumerate(entries):
        try:
            results.append(RecordResult(index=i, value=decode(entry)))
        except RecordDecodeError as e:
            results.append(RecordResult(index=i, error=f"{label} {i}: {e}"))
    return results


def decode_document(document: Any, source: str = '<json>') -> DecodedDatabase:
    """
    Decode a parsed JSON harmonics document.

    Args:
        document: Parsed JSON value
        source: Label used in log messages

    Returns:
        DecodedDatabase with every well-formed record and the errors of the rest

    Raises:
        DatabaseFormatError: If the document is not an object with a "stations" list
    """
    if not isinstance(document, dict) or not isinstance(document.get('stations'), list):
        raise DatabaseFormatError(f"{source}: expected an object with a 'stations' list")
    definitions = document.get('constituents', [])
    if not isinstance(definitions, list):
        raise DatabaseFormatError(f"{source}: 'constituents' must be a list")

    constituent_results = _decode_each(definitions, _decode_constituent, 'constituent')
    station_results = _decode_each(document['stations'], _decode_station, 'station')

    errors = [r.error for r in constituent_results + station_results if not r.ok]
    for message in errors:
        logger.warning("%s: skipped %s", source, message)

    return DecodedDatabase(
        source=source,
        constituents=tuple(r.value for r in constituent_results if r.ok),
        stations=tuple(r.value for r in station_results if r.ok),
        errors=tuple(errors),
    )


def read_database(path: Union[str, Path]) -> DecodedDatabase:
    """
    Read and decode a JSON harmonics database file.

    Raises:
        DatabaseFormatError: If the file cannot be read, is not valid JSON or
            has the wrong shape
    """
    path = Path(path)
    try:
        document = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DatabaseFormatError(f"{path}: {e}") from e
    return decode_document(document, source=str(path))


def encode_station(record: StationRecord) -> Dict[str, Any]:
    """Convert a StationRecord to its JSON object form."""
    obj: Dict[str, Any] = {
        'id': record.id,
        'name': record.name,
        'lat': record.latitude,
        'lon': record.longitude,
        'timezone': record.timezone,
        'units': record.units,
        'meridian': record.meridian or UTC_MERIDIAN,
        'datum_offset': record.datum_offset,
        'depth': record.depth,
        'flood_direction': record.flood_direction,
        'ebb_direction': record.ebb_direction,
        'constituents': [
            {'name': h.constituent, 'amp': h.amplitude, 'phase': h.phase}
            for h in record.harmonics
        ],
    }
    if record.reference_id is not None:
        obj['reference'] = {
            'station_id': record.reference_id,
            'ratio': record.ratio,
            'phase_offset': record.phase_offset,
        }
    if record.peak_offsets is not None:
        offsets = record.peak_offsets
        obj['peak_offsets'] = {
            'high_time_minutes': offsets.high_time.total_seconds() / 60.0,
            'high_multiplier': offsets.high_multiplier,
            'low_time_minutes': offsets.low_time.total_seconds() / 60.0,
            'low_multiplier': offsets.low_multiplier,
        }
    return obj


def write_database(path: Union[str, Path],
                   stations: Sequence[StationRecord],
                   constituents: Sequence[ConstituentRecord] = ()) -> None:
    """Write station and constituent records as a JSON harmonics database."""
    document: Dict[str, Any] = {'stations': [encode_station(s) for s in stations]}
    if constituents:
        document['constituents'] = [
            {'name': c.name, 'speed': c.speed, 'definition': c.definition}
            for c in constituents
        ]
    Path(path).write_text(json.dumps(document, indent=2), encoding='utf-8')
