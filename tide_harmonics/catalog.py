"""
Immutable in-memory catalog of constituents and stations.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .constituents import ConstituentDefinition, resolution_order, standard_definitions
from .models import Station, StationHarmonic


@dataclass(frozen=True)
class Catalog:
    """
    Constituent definitions plus every loaded station with its resolved harmonics.

    Built once by HarmonicsLoader and shared read-only afterwards.

    Attributes:
        definitions: Constituent definitions by name
        order: Constituent names, components before the constituents built on them
        stations: Stations in load order
        harmonics: Resolved harmonics by station id
        aliases: Ids of merged duplicate stations, mapped to the surviving id
        skipped_records: Station and constituent records dropped while loading
        skipped_harmonics: Station harmonics dropped for naming unknown constituents
    """
    definitions: Mapping[str, ConstituentDefinition]
    order: Tuple[str, ...]
    stations: Tuple[Station, ...] = ()
    harmonics: Mapping[str, Tuple[StationHarmonic, ...]] = field(
        default_factory=lambda: MappingProxyType({}))
    aliases: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    skipped_records: int = 0
    skipped_harmonics: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'definitions', MappingProxyType(dict(self.definitions)))
        object.__setattr__(self, 'harmonics', MappingProxyType(dict(self.harmonics)))
        object.__setattr__(self, 'aliases', MappingProxyType(dict(self.aliases)))
        object.__setattr__(self, 'stations', tuple(self.stations))
        object.__setattr__(self, '_by_id', MappingProxyType({s.id: s for s in self.stations}))

    @classmethod
    def empty(cls) -> "Catalog":
        definitions = standard_definitions()
        return cls(definitions=definitions, order=resolution_order(definitions))

    def __len__(self) -> int:
        return len(self.stations)

    def resolve_id(self, station_id: str) -> str:
        """The surviving id for a merged station, else the id unchanged."""
        return self.aliases.get(station_id, station_id)

    def station(self, station_id: str) -> Optional[Station]:
        return self._by_id.get(self.resolve_id(station_id))

    def harmonics_for(self, station_id: str) -> Tuple[StationHarmonic, ...]:
        return self.harmonics.get(self.resolve_id(station_id), ())
