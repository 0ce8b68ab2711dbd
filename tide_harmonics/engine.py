"""
Harmonic tide and current prediction engine.

HarmonicsEngine is the entry point for collaborators: it owns the loader,
exposes the loaded stations and turns a station id and time range into a
predicted series and its classified events.

The catalog is loaded lazily on first use and shared read-only afterwards,
so predictions and peak detection can run from any number of threads.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from . import peaks, prediction
from .catalog import Catalog
from .config import HarmonicsConfig
from .exceptions import StationNotFoundError
from .loader import HarmonicsLoader
from .models import PeakEvent, PredictionPoint, Station

logger = logging.getLogger(__name__)


class HarmonicsEngine:
    """
    Service for predicting tides and currents from harmonic station databases.

    Usage:
        engine = HarmonicsEngine(HarmonicsConfig.from_env())
        if engine.harmonics_available():
            points = engine.generate_predictions(station_id, start, end)
            events = engine.detect_peaks(points, engine.find_station(station_id))
    """

    def __init__(self, config: Optional[HarmonicsConfig] = None,
                 loader: Optional[HarmonicsLoader] = None):
        """
        Initialize the engine.

        Args:
            config: Engine configuration; defaults are used when omitted
            loader: Loader to build the catalog with; created from config when omitted
        """
        self.config = config or (loader.config if loader else HarmonicsConfig())
        self.loader = loader or HarmonicsLoader(self.config)

    @property
    def catalog(self) -> Catalog:
        return self.loader.catalog()

    def harmonics_available(self) -> bool:
        return self.loader.harmonics_available()

    def stations(self) -> List[Station]:
        """All loaded stations, in load order."""
        return list(self.catalog.stations)

    def find_station(self, station_id: str) -> Optional[Station]:
        return self.catalog.station(station_id)

    def generate_predictions(self,
                             station_id: str,
                             start_time: datetime,
                             end_time: datetime,
                             sample_interval: Optional[timedelta] = None) -> List[PredictionPoint]:
        """
        Predict a station's water level or current from start_time to end_time.

        Args:
            station_id: Station to predict
            start_time: First sample time (naive values are taken as UTC)
            end_time: Last permitted sample time
            sample_interval: Step between samples (defaults to the configured interval)

        Returns:
            List of PredictionPoint; empty if the station has no harmonics

        Raises:
            StationNotFoundError: If no station has this id
            ValueError: If end_time precedes start_time
        """
        catalog = self.catalog
        station = catalog.station(station_id)
        if station is None:
            raise StationNotFoundError(station_id)

        points = prediction.generate(
            catalog,
            station,
            start_time,
            end_time,
            sample_interval=sample_interval or self.config.sample_interval,
            nodal_interval=self.config.nodal_interval,
        )
        if not points:
            logger.warning("No constituents found for station %s", station_id)
        return points

    def detect_peaks(self, predictions: Sequence[PredictionPoint],
                     station: Optional[Station] = None) -> List[PeakEvent]:
        """
        Classify the extrema of a predicted series.

        Args:
            predictions: Series from generate_predictions
            station: Station the series belongs to; supplies current directions
                and peak offsets

        Returns:
            List of PeakEvent in time order
        """
        return peaks.detect(predictions, station=station)
