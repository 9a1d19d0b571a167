"""
Field Extractor - Flatten Signal K path values into point fields.
"""

import logging
from numbers import Real
from typing import Any, Dict, Mapping, Optional

import humps
import numpy as np
import pygeohash

from ..config import PipelineConfig, DEFAULT_CONFIG
from .delta import FieldValue, PathValue

logger = logging.getLogger(__name__)

POSITION_PATH = 'navigation.position'


def field_name(path: str) -> str:
    """Camel-case a dotted Signal K path, e.g. navigation.speedOverGround -> navigationSpeedOverGround."""
    return humps.camelize(path.replace('.', '_'))


def is_finite_number(value: Any) -> bool:
    """True for real, finite numbers. Booleans do not count."""
    if isinstance(value, (bool, np.bool_)):
        return False
    if not isinstance(value, (Real, np.number)):
        return False
    return bool(np.isfinite(value))


class FieldExtractor:
    """
    Turns a single path value into a flat field record.

    Positions are stored as geohash strings, finite numbers as-is.
    Everything else is not a recordable metric and yields nothing.
    """

    def __init__(self, config: PipelineConfig = None):
        self.config = config or DEFAULT_CONFIG.pipeline

    def _encode_position(self, value: Any) -> Optional[str]:
        if not isinstance(value, Mapping):
            return None

        latitude = value.get('latitude')
        longitude = value.get('longitude')
        if not (is_finite_number(latitude) and is_finite_number(longitude)):
            return None
        if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
            return None

        return pygeohash.encode(
            float(latitude),
            float(longitude),
            precision=self.config.geohash_precision
        )

    def extract(self, path_value: PathValue) -> Optional[Dict[str, FieldValue]]:
        """
        Extract the field record for a path value.

        Args:
            path_value: The path/value pair from an update

        Returns:
            A one-entry mapping keyed by the camel-cased path, or None
        """
        if path_value.path == POSITION_PATH:
            geohash = self._encode_position(path_value.value)
            if geohash is None:
                logger.warning(f"Malformed position dropped: {path_value.value!r}")
                return None
            return {field_name(path_value.path): geohash}

        if is_finite_number(path_value.value):
            value = path_value.value
            # numpy scalars are unwrapped so the store sees plain Python numbers
            if hasattr(value, 'item'):
                value = value.item()
            return {field_name(path_value.path): value}

        return None
