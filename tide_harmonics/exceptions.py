"""
Exceptions raised by the harmonics engine.

Catalog integrity failures are fatal: a catalog that fails them must never be
used to serve predictions. Record decode failures are recoverable and are
captured per record by the database codecs rather than propagated.
"""


class HarmonicsError(Exception):
    """Base class for every error raised by the harmonics engine."""


class CatalogIntegrityError(HarmonicsError):
    """The constituent catalog or station graph is corrupt."""


class ReferenceCycleError(CatalogIntegrityError):
    """A chain of subordinate stations refers back to one of its own members."""

    def __init__(self, chain):
        self.chain = list(chain)
        super().__init__(
            "Subordinate station reference cycle: " + " -> ".join(self.chain)
        )


class DatabaseFormatError(HarmonicsError):
    """A harmonics database file cannot be read at all (bad header or top-level shape)."""


class RecordDecodeError(HarmonicsError):
    """A single station or constituent record is malformed."""


class StationNotFoundError(HarmonicsError, KeyError):
    """No station with the requested id exists in the catalog."""

    def __init__(self, station_id: str):
        self.station_id = station_id
        super().__init__(f"Unknown station id: {station_id}")

    def __str__(self):
        return self.args[0]
