"""Static data loader for gazetteer, variant table and carousel defaults."""

import yaml
from pathlib import Path
from typing import Any, Dict

DATA_DIR = Path(__file__).parent


class DataFileLoader:
    """Loads and caches one YAML data file."""

    def __init__(self, filename: str, data_dir: Path = None):
        """Initialize the loader.

        Args:
            filename: Name of the YAML file
            data_dir: Directory holding the file, defaults to the config package
        """
        if data_dir is None:
            data_dir = DATA_DIR
        self.path = Path(data_dir) / filename
        self._data = None

    def load(self) -> Dict[str, Any]:
        """Load the file once and return its mapping."""
        if self._data is None:
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    self._data = yaml.safe_load(f) or {}
            except Exception as e:
                raise RuntimeError(f"Failed to load data file {self.path}: {e}")
            if not isinstance(self._data, dict):
                raise RuntimeError(f"Data file {self.path} must contain a mapping")
        return self._data


_gazetteer = DataFileLoader("gazetteer.yaml")
_cause_variants = DataFileLoader("cause_variants.yaml")
_carousel_defaults = DataFileLoader("carousel_defaults.yaml")


def load_gazetteer() -> Dict[str, Any]:
    """Cities, aliases, location indicators and virtual keywords."""
    return _gazetteer.load()


def load_cause_variants() -> Dict[str, Any]:
    """Cause to variant table for the cause experience."""
    return _cause_variants.load()


def load_carousel_defaults() -> Dict[str, Any]:
    """Default carousel copy."""
    return _carousel_defaults.load()
