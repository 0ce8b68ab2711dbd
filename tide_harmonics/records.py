"""
Source-agnostic records produced by the database codecs.

Both the binary and the JSON decoder yield the same record types, so the
loader builds stations and harmonics identically whichever file they came
from. Each record is decoded on its own and reported as a RecordResult: a
malformed record becomes a failed result that the loader logs and counts,
while the remaining records are still decoded.
"""
from dataclasses import dataclass, field
from typing import Generic, Optional, Tuple, TypeVar

from .models import PeakOffsets, StationHarmonic

T = TypeVar('T')

# Marks an absent value in string fields
NO_DATA = '\\N'


@dataclass(frozen=True)
class ConstituentRecord:
    """A constituent carried by a database: name, speed and textual definition."""
    name: str
    speed: float
    definition: str


@dataclass(frozen=True)
class StationRecord:
    """
    A station as stored on disk, before ids, timezones and meridians are normalised.

    Attributes:
        id: Station id, empty when the database does not carry one
        name: Display name
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        timezone: IANA timezone name, empty when unknown
        meridian: Time meridian text ("HH:MM:SS"), None or NO_DATA when absent
        units: Units of predicted values
        datum_offset: Mean level
        depth: Sensor depth, currents only
        reference_id: Id of the reference station for subordinates, empty when
            a binary reference points at a station stored without an id
        ratio: Amplitude ratio applied to the reference harmonics
        phase_offset: Phase offset in degrees applied to the reference harmonics
        flood_direction: Flood direction in degrees true
        ebb_direction: Ebb direction in degrees true
        peak_offsets: Event time/height adjustments
        harmonics: Stored harmonics (empty for subordinates)
        index: Position in the source station table, binary records only
        reference_index: Station table position of the reference, binary records only
    """
    id: str
    name: str
    latitude: float
    longitude: float
    timezone: str = ''
    meridian: Optional[str] = None
    units: str = 'feet'
    datum_offset: float = 0.0
    depth: Optional[float] = None
    reference_id: Optional[str] = None
    ratio: float = 1.0
    phase_offset: float = 0.0
    flood_direction: Optional[float] = None
    ebb_direction: Optional[float] = None
    peak_offsets: Optional[PeakOffsets] = None
    harmonics: Tuple[StationHarmonic, ...] = ()
    index: Optional[int] = field(default=None, compare=False)
    reference_index: Optional[int] = field(default=None, compare=False)


@dataclass(frozen=True)
class RecordResult(Generic[T]):
    """Outcome of decoding one record: either a value or an error message."""
    index: int
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class DecodedDatabase:
    """
    Everything decoded from one database file.

    Attributes:
        source: Path or label of the decoded file
        constituents: Successfully decoded constituent records
        stations: Successfully decoded station records, in file order
        errors: Messages for records that were skipped
    """
    source: str
    constituents: Tuple[ConstituentRecord, ...] = ()
    stations: Tuple[StationRecord, ...] = ()
    errors: Tuple[str, ...] = ()

    @property
    def skipped(self) -> int:
        return len(self.errors)
