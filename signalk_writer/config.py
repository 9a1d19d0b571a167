"""
Configuration settings for the Signal K writer.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class PipelineConfig:
    """Configuration for delta routing and batching."""
    self_id: Optional[str] = None  # Vessel identifier, e.g. "urn:mrn:imo:mmsi:230099999"
    measurement: str = "signalk"
    flush_threshold: int = 100  # Flush once the batch holds more points than this
    geohash_precision: int = 12
    write_timeout_seconds: float = 10.0
    max_in_flight_writes: int = 4

    @property
    def self_context(self) -> str:
        if not self.self_id:
            raise ValueError("self_id is required to build the self context")
        return f"vessels.{self.self_id}"


@dataclass
class SinkConfig:
    """Connection info for the time-series store."""
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    key_prefix: str = "signalk"
    stream_maxlen: int = 100000
    connect_timeout_seconds: float = 0.5


@dataclass
class SourceConfig:
    """Where deltas come from."""
    input_path: Optional[str] = None  # NDJSON file, "-" for stdin
    redis_channel: Optional[str] = None  # Redis pub/sub channel carrying deltas


@dataclass
class SystemConfig:
    """Master configuration container."""
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    sink: SinkConfig = field(default_factory=SinkConfig)
    source: SourceConfig = field(default_factory=SourceConfig)


# Global default configuration
DEFAULT_CONFIG = SystemConfig()
