"""
Station, harmonic and prediction data types shared across the engine.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


class StationKind(str, Enum):
    """Whether a station predicts water level or signed current velocity."""
    TIDE = "tide"
    CURRENT = "current"


class PeakType(str, Enum):
    HIGH = "High"
    LOW = "Low"
    SLACK = "Slack"
    MAX_FLOOD = "MaxFlood"
    MAX_EBB = "MaxEbb"


CURRENT_UNITS = ('knots', 'knots^2')


def kind_for_units(units: Optional[str]) -> StationKind:
    """Current stations are recognised by velocity units."""
    if units and units.strip().lower() in CURRENT_UNITS:
        return StationKind.CURRENT
    return StationKind.TIDE


@dataclass(frozen=True)
class SubordinateReference:
    """
    Link from a subordinate station to the station its harmonics derive from.

    Attributes:
        station_id: Id of the reference station
        ratio: Amplitude multiplier applied to every reference harmonic
        phase_offset: Degrees added to every reference phase
    """
    station_id: str
    ratio: float = 1.0
    phase_offset: float = 0.0


@dataclass(frozen=True)
class PeakOffsets:
    """
    Time shifts and height multipliers applied to detected events.

    High/MaxFlood events use the high pair, Low/MaxEbb the low pair.
    """
    high_time: timedelta = timedelta(0)
    high_multiplier: float = 1.0
    low_time: timedelta = timedelta(0)
    low_multiplier: float = 1.0


@dataclass(frozen=True)
class StationHarmonic:
    """One constituent's amplitude and phase (degrees) at a station."""
    constituent: str
    amplitude: float
    phase: float


@dataclass(frozen=True)
class Station:
    """
    A tide or current station.

    Attributes:
        id: Stable station identifier
        name: Display name
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        timezone: IANA timezone name
        meridian: UTC offset of the zone the phases refer to, in hours (east positive)
        units: Units of predicted values (e.g. 'feet', 'meters', 'knots')
        kind: Tide or current
        datum_offset: Mean level added to every prediction
        depth: Sensor depth, currents only
        reference: Subordinate linkage, None for reference stations
        flood_direction: Flood direction in degrees true, currents only
        ebb_direction: Ebb direction in degrees true, currents only
        peak_offsets: Event time/height adjustments, None when not used
        source: Path of the database the station was read from
    """
    id: str
    name: str
    latitude: float
    longitude: float
    timezone: str = "UTC"
    meridian: float = 0.0
    units: str = "feet"
    kind: StationKind = StationKind.TIDE
    datum_offset: float = 0.0
    depth: Optional[float] = None
    reference: Optional[SubordinateReference] = None
    flood_direction: Optional[float] = None
    ebb_direction: Optional[float] = None
    peak_offsets: Optional[PeakOffsets] = None
    source: str = field(default="", compare=False)

    @property
    def is_subordinate(self) -> bool:
        return self.reference is not None

    @property
    def is_current(self) -> bool:
        return self.kind is StationKind.CURRENT


@dataclass(frozen=True)
class PredictionPoint:
    time: datetime
    value: float
    units: str


@dataclass(frozen=True)
class PeakEvent:
    """
    A classified extremum or slack.

    Attributes:
        time: Interpolated event time
        type: High, Low, Slack, MaxFlood or MaxEbb
        value: Interpolated height or velocity at the event
        units: Units of value
        direction: Current direction in degrees true, if known
    """
    time: datetime
    type: PeakType
    value: float
    units: str
    direction: Optional[float] = None
