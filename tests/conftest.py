"""
Shared fixtures: temporary database paths and configurations.
"""
import pytest

from tide_harmonics.config import HarmonicsConfig


@pytest.fixture
def binary_path(tmp_path):
    return tmp_path / 'harmonics.tdb'


@pytest.fixture
def json_path(tmp_path):
    return tmp_path / 'ticon.json'


@pytest.fixture
def config(binary_path, json_path):
    """Configuration pointing at (initially absent) databases in a temp directory."""
    return HarmonicsConfig(binary_path=binary_path, json_path=json_path)
