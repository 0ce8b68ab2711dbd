"""
Configuration for the harmonics engine.

Defaults can be overridden by environment variables (or a .env file at the
repository root) through HarmonicsConfig.from_env(). The surrounding
application resolves the configuration once and hands it to the engine.
"""
import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / 'data'

DEFAULT_BINARY_FILE = DATA_DIR / 'latest-harmonics.tdb'
DEFAULT_JSON_FILE = DATA_DIR / 'latest-ticon.json'

# Sampling step of predicted series; fine enough to resolve the fastest
# overtides for extremum refinement
DEFAULT_SAMPLE_SECONDS = 60.0

# Longest span that reuses one set of nodal factors
DEFAULT_NODAL_INTERVAL_DAYS = 31.0


def _get_float_env(key: str, default: float) -> float:
    """Get a float value from environment variable or use default."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning("Ignoring non-numeric %s=%r", key, value)
    return default


def _get_path_env(key: str, default: Path) -> Path:
    """Get a path from environment variable or use default."""
    value = os.environ.get(key)
    if value:
        return Path(value).expanduser()
    return default


@dataclass(frozen=True)
class HarmonicsConfig:
    """
    Engine configuration.

    Attributes:
        binary_path: Binary harmonics database
        json_path: JSON harmonics database
        sample_interval: Step between predicted samples
        nodal_interval: Longest span over which f, u and V0 are reused
    """
    binary_path: Path = DEFAULT_BINARY_FILE
    json_path: Path = DEFAULT_JSON_FILE
    sample_interval: timedelta = field(
        default_factory=lambda: timedelta(seconds=DEFAULT_SAMPLE_SECONDS))
    nodal_interval: timedelta = field(
        default_factory=lambda: timedelta(days=DEFAULT_NODAL_INTERVAL_DAYS))

    def __post_init__(self):
        if self.sample_interval <= timedelta(0):
            raise ValueError("sample_interval must be positive")
        if self.nodal_interval <= timedelta(0):
            raise ValueError("nodal_interval must be positive")

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "HarmonicsConfig":
        """
        Build a configuration from environment variables.

        Environment variables:
            HARMONICS_BINARY_FILE: Binary database path
            HARMONICS_JSON_FILE: JSON database path
            HARMONICS_SAMPLE_SECONDS: Sample step in seconds
            HARMONICS_NODAL_INTERVAL_DAYS: Nodal factor reuse span in days

        Args:
            env_file: .env file to load first (defaults to the repository root)
        """
        env_path = env_file or PROJECT_ROOT / '.env'
        if env_path.exists():
            load_dotenv(env_path)

        sample_seconds = _get_float_env('HARMONICS_SAMPLE_SECONDS', DEFAULT_SAMPLE_SECONDS)
        if sample_seconds <= 0:
            sample_seconds = DEFAULT_SAMPLE_SECONDS
        nodal_days = _get_float_env('HARMONICS_NODAL_INTERVAL_DAYS', DEFAULT_NODAL_INTERVAL_DAYS)
        if nodal_days <= 0:
            nodal_days = DEFAULT_NODAL_INTERVAL_DAYS

        return cls(
            binary_path=_get_path_env('HARMONICS_BINARY_FILE', DEFAULT_BINARY_FILE),
            json_path=_get_path_env('HARMONICS_JSON_FILE', DEFAULT_JSON_FILE),
            sample_interval=timedelta(seconds=sample_seconds),
            nodal_interval=timedelta(days=nodal_days),
        )
