"""
Delta Router - Dispatch delta updates to field extraction and true wind.
"""

import logging
from typing import Dict, List, Optional
from datetime import datetime

from ..config import PipelineConfig, DEFAULT_CONFIG
from .batch_flusher import BatchFlusher
from .delta import Delta, Point, parse_timestamp
from .field_extractor import FieldExtractor
from .true_wind import TrueWindEngine

logger = logging.getLogger(__name__)


class DeltaRouter:
    """
    Routes the self vessel's deltas into points on the pending batch.

    Deltas for other vessels are ignored, as are deltas with a null
    context. Deltas without a context are assumed to be about the self
    vessel. A true wind point goes on the batch ahead of the point for
    the value that completed it.
    """

    def __init__(
        self,
        flusher: BatchFlusher,
        config: PipelineConfig = None,
        extractor: FieldExtractor = None,
        true_wind: TrueWindEngine = None
    ):
        self.config = config or DEFAULT_CONFIG.pipeline
        self._self_context = self.config.self_context
        self._flusher = flusher
        self._extractor = extractor or FieldExtractor(self.config)
        self._true_wind = true_wind or TrueWindEngine(self.config)

        self._current_timestamp: Optional[datetime] = None

        self._routed_count = 0
        self._ignored_count = 0
        self._point_count = 0

        logger.debug(f"DeltaRouter initialized for {self._self_context}")

    def _is_self(self, delta: Delta) -> bool:
        return not delta.has_context or delta.context == self._self_context

    def route(self, delta: Delta) -> List[Point]:
        """
        Route one delta.

        Args:
            delta: The delta to process

        Returns:
            The points appended to the pending batch, in order
        """
        if not self._is_self(delta):
            self._ignored_count += 1
            logger.debug(f"Ignoring delta for context {delta.context}")
            return []

        self._routed_count += 1
        appended: List[Point] = []

        for update in delta.updates:
            if not update.values:
                continue

            timestamp = parse_timestamp(update.timestamp)
            self._current_timestamp = timestamp

            for path_value in update.values:
                channel = self._true_wind.channel_for(path_value.path)
                if channel is not None:
                    wind_point = self._true_wind.observe(channel, path_value.value, timestamp)
                    if wind_point is not None:
                        appended.append(wind_point)

                fields = self._extractor.extract(path_value)
                if fields:
                    appended.append(Point(
                        measurement=self.config.measurement,
                        fields=fields,
                        timestamp=timestamp
                    ))

        for point in appended:
            self._flusher.append(point)
        self._point_count += len(appended)

        return appended

    @property
    def current_timestamp(self) -> Optional[datetime]:
        """Timestamp of the most recently processed update."""
        return self._current_timestamp

    @property
    def true_wind(self) -> TrueWindEngine:
        return self._true_wind

    @property
    def statistics(self) -> Dict:
        return {
            'routed': self._routed_count,
            'ignored': self._ignored_count,
            'points': self._point_count
        }
