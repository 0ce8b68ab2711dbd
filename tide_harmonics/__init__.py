"""
Harmonic tide and current prediction.
"""
from .catalog import Catalog
from .config import HarmonicsConfig
from .engine import HarmonicsEngine
from .exceptions import (
    CatalogIntegrityError,
    DatabaseFormatError,
    HarmonicsError,
    RecordDecodeError,
    ReferenceCycleError,
    StationNotFoundError,
)
from .loader import HarmonicsLoader, parse_meridian
from .models import (
    PeakEvent,
    PeakOffsets,
    PeakType,
    PredictionPoint,
    Station,
    StationHarmonic,
    StationKind,
    SubordinateReference,
)

__version__ = "1.0.0"
