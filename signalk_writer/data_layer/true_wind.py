"""
True Wind - Derive true wind from apparent wind and vessel motion.

Angles are in radians with 0 at the bow. The four input channels update
independently; the engine keeps the latest value of each and recomputes
whenever one of them changes the combined input.
"""

import logging
import math
from enum import Enum
from typing import Dict, Optional, Tuple
from datetime import datetime

from ..config import PipelineConfig, DEFAULT_CONFIG
from .delta import Point
from .field_extractor import is_finite_number

logger = logging.getLogger(__name__)

TWO_PI = 2 * math.pi

WIND_DIRECTION_FIELD = 'environmentWindDirectionTrue'
WIND_SPEED_FIELD = 'environmentWindSpeedTrue'


class WindChannel(Enum):
    """Signal K paths feeding the true wind calculation."""
    ANGLE_APPARENT = 'environment.wind.angleApparent'
    SPEED_APPARENT = 'environment.wind.speedApparent'
    SPEED_OVER_GROUND = 'navigation.speedOverGround'
    COURSE_OVER_GROUND_TRUE = 'navigation.courseOverGroundTrue'


_CHANNELS_BY_PATH = {channel.value: channel for channel in WindChannel}


def true_wind_speed(awa: float, aws: float, sog: float) -> float:
    squared = aws ** 2 + sog ** 2 - 2 * aws * sog * math.cos(awa)
    # (aws - sog)^2 lower bound; rounding can dip just below zero
    return math.sqrt(max(squared, 0.0))


def true_wind_angle(awa: float, aws: float, sog: float, tws: float) -> float:
    """
    True wind angle relative to the bow.

    Returns 0 when there is no true wind (tws == 0).
    """
    if tws == 0:
        return 0.0

    normalized_awa = math.fmod(awa, TWO_PI)
    if (normalized_awa < 0 and -normalized_awa < math.pi) or normalized_awa > math.pi:
        sign = -1.0
    else:
        sign = 1.0

    ratio = (aws * math.cos(awa) - sog) / tws
    return sign * math.acos(min(1.0, max(-1.0, ratio)))


def true_wind(sog: float, aws: float, awa: float, cog: float) -> Dict[str, float]:
    """
    Compute the true wind fields.

    Args:
        sog: Speed over ground
        aws: Apparent wind speed
        awa: Apparent wind angle (radians)
        cog: Course over ground, true (radians)

    Returns:
        Dict with environmentWindDirectionTrue and environmentWindSpeedTrue
    """
    tws = true_wind_speed(awa, aws, sog)
    twa = true_wind_angle(awa, aws, sog, tws)
    return {
        WIND_DIRECTION_FIELD: math.fmod(twa + cog, TWO_PI),
        WIND_SPEED_FIELD: tws
    }


class TrueWindEngine:
    """
    Latest-value combination of the four true wind channels.

    Emits a point once every channel has been observed, and afterwards on
    each observation that changes the combined (awa, aws, sog, cog) input.
    """

    def __init__(self, config: PipelineConfig = None):
        self.config = config or DEFAULT_CONFIG.pipeline
        self._latest: Dict[WindChannel, Optional[float]] = {
            channel: None for channel in WindChannel
        }
        self._last_emitted: Optional[Tuple[float, float, float, float]] = None

    @staticmethod
    def channel_for(path: str) -> Optional[WindChannel]:
        return _CHANNELS_BY_PATH.get(path)

    @property
    def latest(self) -> Dict[WindChannel, Optional[float]]:
        return dict(self._latest)

    @property
    def is_ready(self) -> bool:
        return all(value is not None for value in self._latest.values())

    def observe(
        self,
        channel: WindChannel,
        value,
        timestamp: datetime
    ) -> Optional[Point]:
        """
        Record a channel value and recombine.

        Args:
            channel: The channel being updated
            value: Its new value
            timestamp: Timestamp of the update being processed, used for
                the emitted point

        Returns:
            A true wind point, or None if not all channels are set yet or the
            combined input is unchanged since the last emission
        """
        if not isinstance(channel, WindChannel):
            raise ValueError(f"Unknown true wind channel: {channel!r}")

        if not is_finite_number(value):
            logger.debug(f"Ignoring non-numeric {channel.value}: {value!r}")
            return None

        self._latest[channel] = float(value)
        return self._combine(timestamp)

    def _combine(self, timestamp: datetime) -> Optional[Point]:
        if not self.is_ready:
            return None

        inputs = (
            self._latest[WindChannel.ANGLE_APPARENT],
            self._latest[WindChannel.SPEED_APPARENT],
            self._latest[WindChannel.SPEED_OVER_GROUND],
            self._latest[WindChannel.COURSE_OVER_GROUND_TRUE]
        )
        if inputs == self._last_emitted:
            return None
        self._last_emitted = inputs

        awa, aws, sog, cog = inputs
        return Point(
            measurement=self.config.measurement,
            fields=true_wind(sog, aws, awa, cog),
            timestamp=timestamp
        )

    def reset(self):
        for channel in self._latest:
            self._latest[channel] = None
        self._last_emitted = None
