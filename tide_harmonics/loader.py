"""
Harmonics database loader.

Reads the binary database and then the JSON database, merges their stations
in load order, resolves subordinate stations into their own harmonics and
merges copies of one station carried by both databases. The result is published as one immutable Catalog, built at most once per
loader.
"""
import hashlib
import logging
import re
import threading
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from zoneinfo import ZoneInfo

from timezonefinder import TimezoneFinder

from . import binary_format, json_format
from .catalog import Catalog
from .config import HarmonicsConfig
from .constituents import (
    ConstituentDefinition,
    parse_definition,
    resolution_order,
    standard_definitions,
    verify_definitions,
)
from .exceptions import DatabaseFormatError, RecordDecodeError, ReferenceCycleError
from .models import Station, StationHarmonic, StationKind, SubordinateReference, kind_for_units
from .records import NO_DATA, DecodedDatabase, StationRecord

logger = logging.getLogger(__name__)

# Id prefixes for stations whose database record carries no id
BINARY_ID_PREFIX = 'X'
JSON_ID_PREFIX = 'T'

# Stations sharing a name within this many degrees are candidates for merging
MERGE_DISTANCE = 0.05
# Agreement required to treat two stations as one (metres, degrees)
AMPLITUDE_TOLERANCE = 0.005
PHASE_TOLERANCE = 0.1
FEET_TO_METRES = 0.3048


def parse_meridian(text: Optional[str]) -> float:
    """
    Parse a time meridian such as "-05:00:00" into hours.

    None, the empty string and the no-data sentinel all mean 0.0.

    Raises:
        ValueError: If the text is not [-]HH[:MM[:SS]]
    """
    if text is None:
        return 0.0
    text = str(text).strip()
    if not text or text == NO_DATA:
        return 0.0
    sign = -1.0 if text.startswith('-') else 1.0
    parts = [float(p) for p in text.lstrip('+-').split(':')]
    if not 1 <= len(parts) <= 3:
        raise ValueError(f"invalid meridian {text!r}")
    parts += [0.0] * (3 - len(parts))
    return sign * (parts[0] + parts[1] / 60.0 + parts[2] / 3600.0)


def coordinate_id(prefix: str, latitude: float, longitude: float) -> str:
    """Stable station id derived from coordinates."""
    digest = hashlib.sha256(f"{latitude:.8f}_{longitude:.8f}".encode('ascii')).hexdigest()
    return f"{prefix}{digest[:7]}"


class HarmonicsLoader:
    """
    Builds the station catalog from the configured harmonics databases.

    Missing database files contribute nothing; when neither exists the
    catalog is empty. Malformed records are skipped and counted. A
    subordinate reference cycle or a corrupt constituent table aborts the
    load and nothing is published.
    """

    def __init__(self, config: Optional[HarmonicsConfig] = None):
        self.config = config or HarmonicsConfig()
        self._catalog: Optional[Catalog] = None
        self._lock = threading.Lock()
        self._tz_finder: Optional[TimezoneFinder] = None
        self.load_count = 0

    def harmonics_available(self) -> bool:
        """Whether at least one backing database file exists."""
        return self.config.binary_path.is_file() or self.config.json_path.is_file()

    def catalog(self) -> Catalog:
        """Return the catalog, loading it on first use. Thread-safe."""
        catalog = self._catalog
        if catalog is not None:
            return catalog
        with self._lock:
            if self._catalog is None:
                self._catalog = self.read()
            return self._catalog

    def read(self) -> Catalog:
        """
        Build a fresh catalog from the database files.

        Returns:
            Catalog

        Raises:
            CatalogIntegrityError: If the constituent table is corrupt
            ReferenceCycleError: If subordinate stations refer to each other in a cycle
        """
        self.load_count += 1
        databases = self._read_databases()

        skipped = sum(db.skipped for db, _ in databases)
        definitions, rejected = self._merge_definitions([db for db, _ in databases])
        skipped += rejected
        verify_definitions(definitions)
        order = resolution_order(definitions)

        stations: List[Station] = []
        stored: Dict[str, Tuple[StationHarmonic, ...]] = {}
        preferred = set()
        skipped_harmonics = 0
        for db, prefix in databases:
            # Binary subordinates name their reference by table position; map
            # positions to the ids assigned here once the whole table is built
            ids_by_index: Dict[int, str] = {}
            linked: List[Tuple[int, int]] = []
            for record in db.stations:
                try:
                    station = self._build_station(record, prefix, db.source)
                except (RecordDecodeError, ValueError) as e:
                    logger.warning("%s: skipped station %r: %s", db.source, record.name, e)
                    skipped += 1
                    continue
                if record.index is not None:
                    ids_by_index[record.index] = station.id
                if station.id in stored:
                    logger.warning("%s: skipped duplicate station id %s (%s)",
                                   db.source, station.id, station.name)
                    skipped += 1
                    continue
                known = tuple(h for h in record.harmonics if h.constituent in definitions)
                if len(known) != len(record.harmonics):
                    unknown = sorted({h.constituent for h in record.harmonics} - set(definitions))
                    logger.warning("Station %s: skipped unknown constituents %s",
                                   station.id, ", ".join(unknown))
                    skipped_harmonics += len(record.harmonics) - len(known)
                if record.reference_index is not None:
                    linked.append((len(stations), record.reference_index))
                if prefix == JSON_ID_PREFIX:
                    preferred.add(station.id)
                stations.append(station)
                stored[station.id] = known

            for position, reference_index in linked:
                station = stations[position]
                if reference_index in ids_by_index:
                    stations[position] = replace(station, reference=replace(
                        station.reference, station_id=ids_by_index[reference_index]))

        stations, harmonics, unresolved = self._resolve_subordinates(stations, stored, definitions)
        skipped += unresolved

        stations, aliases = self._merge_duplicates(stations, harmonics, preferred)
        harmonics = {s.id: harmonics[s.id] for s in stations}

        for station in stations:
            if not harmonics[station.id]:
                logger.warning("No constituents found for station %s (%s)", station.id, station.name)

        logger.info("Loaded %d stations (%d subordinate, %d merged) from %d database(s), "
                    "skipped %d records",
                    len(stations), sum(1 for s in stations if s.is_subordinate),
                    len(aliases), len(databases), skipped)

        return Catalog(
            definitions=definitions,
            order=order,
            stations=tuple(stations),
            harmonics=harmonics,
            aliases=aliases,
            skipped_records=skipped,
            skipped_harmonics=skipped_harmonics,
        )

    def _read_databases(self) -> List[Tuple[DecodedDatabase, str]]:
        """Decode each existing database, paired with the id prefix of its format."""
        databases = []
        sources = (
            (self.config.binary_path, binary_format.read_database, BINARY_ID_PREFIX),
            (self.config.json_path, json_format.read_database, JSON_ID_PREFIX),
        )
        for path, read, prefix in sources:
            if not path.is_file():
                logger.debug("Harmonics database %s not found", path)
                continue
            logger.info("Loading harmonics from: %s", path)
            try:
                databases.append((read(path), prefix))
            except DatabaseFormatError as e:
                logger.error("Failed to read harmonics database: %s", e)
                databases.append((DecodedDatabase(source=str(path), errors=(str(e),)), prefix))
        return databases

    def _merge_definitions(self, databases) -> Tuple[Dict[str, ConstituentDefinition], int]:
        """Add database-carried constituents the built-in table does not define."""
        standard = standard_definitions()
        definitions: Dict[str, ConstituentDefinition] = dict(standard)
        rejected = 0
        for db in databases:
            for record in db.constituents:
                known = definitions.get(record.name)
                if known is not None:
                    if abs(known.speed - record.speed) > 1e-6:
                        logger.warning("%s: %s speed %.7f differs from catalog speed %.7f",
                                       db.source, record.name, record.speed, known.speed)
                    continue
                try:
                    definitions[record.name] = parse_definition(
                        record.name, record.definition, record.speed)
                except RecordDecodeError as e:
                    logger.warning("%s: skipped constituent: %s", db.source, e)
                    rejected += 1

        # Drop database combinations built on constituents nobody defines
        changed = True
        while changed:
            changed = False
            for name, d in list(definitions.items()):
                if name in standard:
                    continue
                missing = [c for c, _ in d.components if c not in definitions]
                if missing:
                    logger.warning("Skipped constituent %s: unknown components %s",
                                   name, ", ".join(missing))
                    del definitions[name]
                    rejected += 1
                    changed = True
        return definitions, rejected

    def _timezone_at(self, latitude: float, longitude: float) -> str:
        if self._tz_finder is None:
            self._tz_finder = TimezoneFinder()
        return self._tz_finder.timezone_at(lat=latitude, lng=longitude) or 'UTC'

    def _build_station(self, record: StationRecord, id_prefix: str, source: str) -> Station:
        kind = kind_for_units(record.units)

        station_id = record.id.strip()
        if not station_id:
            station_id = coordinate_id(id_prefix, record.latitude, record.longitude)
            if kind is StationKind.CURRENT and record.depth is not None:
                station_id = f"{station_id}_{record.depth:g}"

        timezone = record.timezone.strip() or self._timezone_at(record.latitude, record.longitude)
        try:
            ZoneInfo(timezone)
        except (ValueError, KeyError):
            logger.warning("Station %s: unknown timezone %r, using UTC", station_id, timezone)
            timezone = 'UTC'

        reference = None
        if record.reference_id is not None:
            reference = SubordinateReference(
                station_id=record.reference_id,
                ratio=record.ratio,
                phase_offset=record.phase_offset,
            )

        return Station(
            id=station_id,
            name=record.name,
            latitude=record.latitude,
            longitude=record.longitude,
            timezone=timezone,
            meridian=parse_meridian(record.meridian),
            units=record.units,
            kind=kind,
            datum_offset=record.datum_offset,
            depth=record.depth,
            reference=reference,
            flood_direction=record.flood_direction,
            ebb_direction=record.ebb_direction,
            peak_offsets=record.peak_offsets,
            source=source,
        )

    def _resolve_subordinates(self, stations: List[Station],
                              stored: Mapping[str, Tuple[StationHarmonic, ...]],
                              definitions: Mapping[str, ConstituentDefinition]):
        """
        Derive subordinate harmonics from their reference stations.

        Each harmonic of the reference becomes amplitude * ratio and
        phase + offset, re-referenced from the reference meridian to the
        subordinate's. Chains resolve recursively.

        Returns:
            (stations kept, harmonics by station id, subordinates dropped)
        """
        by_id = {s.id: s for s in stations}
        resolved: Dict[str, Optional[Tuple[StationHarmonic, ...]]] = {}

        def resolve(station_id: str, chain: List[str]) -> Optional[Tuple[StationHarmonic, ...]]:
            if station_id in resolved:
                return resolved[station_id]
            if station_id in chain:
                raise ReferenceCycleError(chain[chain.index(station_id):] + [station_id])
            station = by_id[station_id]
            if station.reference is None:
                resolved[station_id] = stored[station_id]
                return resolved[station_id]

            ref = station.reference
            if ref.station_id not in by_id:
                logger.warning("Skipped subordinate station %s: reference %s not found",
                               station_id, ref.station_id)
                resolved[station_id] = None
                return None

            base = resolve(ref.station_id, chain + [station_id])
            if base is None:
                logger.warning("Skipped subordinate station %s: reference %s was skipped",
                               station_id, ref.station_id)
                resolved[station_id] = None
                return None

            shift = station.meridian - by_id[ref.station_id].meridian
            resolved[station_id] = tuple(
                StationHarmonic(
                    constituent=h.constituent,
                    amplitude=h.amplitude * ref.ratio,
                    phase=(h.phase + ref.phase_offset
                           + definitions[h.constituent].speed * shift) % 360.0,
                )
                for h in base
            )
            return resolved[station_id]

        kept = []
        harmonics = {}
        for station in stations:
            result = resolve(station.id, [])
            if result is None:
                continue
            kept.append(station)
            harmonics[station.id] = result
        return kept, harmonics, len(stations) - len(kept)


    def _merge_duplicates(self, stations: List[Station],
                          harmonics: Mapping[str, Tuple[StationHarmonic, ...]],
                          preferred) -> Tuple[List[Station], Dict[str, str]]:
        """
        Collapse copies of one physical station carried by both databases.

        Stations with the same normalised name lying within MERGE_DISTANCE
        degrees of each other are merged when their harmonics agree. The
        survivor is the copy from the preferred (JSON) source, then the
        shortest name, then the lowest id; every other id becomes an alias.

        Returns:
            (stations kept in load order, alias id -> surviving id)
        """
        groups: Dict[str, List[Station]] = {}
        for station in stations:
            groups.setdefault(_name_key(station.name), []).append(station)

        aliases: Dict[str, str] = {}
        for name_key, pool in groups.items():
            while pool:
                primary = pool.pop(0)
                near = [s for s in pool
                        if abs(s.latitude - primary.latitude) < MERGE_DISTANCE
                        and abs(s.longitude - primary.longitude) < MERGE_DISTANCE]
                identical = [s for s in near if harmonics_equal(
                    primary, harmonics[primary.id], s, harmonics[s.id])]
                for other in near:
                    if other not in identical:
                        logger.debug("Station cluster [%s] at %.4f,%.4f has different "
                                     "constituents: %s vs %s", name_key, primary.latitude,
                                     primary.longitude, primary.id, other.id)
                if not identical:
                    continue

                cluster = [primary] + identical
                best = min(cluster, key=lambda s: (s.id not in preferred, len(s.name), s.id))
                for s in cluster:
                    if s is not best:
                        aliases[s.id] = best.id
                pool = [s for s in pool if s not in identical]

        kept = [s for s in stations if s.id not in aliases]
        return kept, aliases


def _name_key(name: str) -> str:
    return re.sub(r'[^a-z0-9]', '', name.lower())


def _metres_per_unit(units: str) -> float:
    return FEET_TO_METRES if units.strip().lower() in ('feet', 'foot', 'ft') else 1.0


def harmonics_equal(a: Station, a_harmonics: Sequence[StationHarmonic],
                    b: Station, b_harmonics: Sequence[StationHarmonic]) -> bool:
    """
    Whether two stations carry the same harmonics within rounding.

    Water level amplitudes are compared in metres so a feet and a metres copy
    of one station match; phases are compared on the circle.
    """
    if a.kind is not b.kind or len(a_harmonics) != len(b_harmonics):
        return False
    scale_a, scale_b = _metres_per_unit(a.units), _metres_per_unit(b.units)
    pairs = zip(sorted(a_harmonics, key=lambda h: h.constituent),
                sorted(b_harmonics, key=lambda h: h.constituent))
    for ha, hb in pairs:
        if ha.constituent != hb.constituent:
            return False
        if abs(ha.amplitude * scale_a - hb.amplitude * scale_b) > AMPLITUDE_TOLERANCE:
            return False
        phase_gap = abs(ha.phase - hb.phase) % 360.0
        if min(phase_gap, 360.0 - phase_gap) > PHASE_TOLERANCE:
            return False
    return True
