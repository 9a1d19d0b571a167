import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..config import SinkConfig, DEFAULT_CONFIG
from .delta import Point

logger = logging.getLogger(__name__)


@runtime_checkable
class BatchSink(Protocol):
    """Anything that can take a batch of points. Raises on failure."""

    async def write_batch(self, points: Sequence[Point]) -> None:
        ...


class PointStore:
    """
    Time-series store on Redis streams, one stream per measurement.

    Falls back to an in-memory store when Redis cannot be reached.
    """

    def __init__(self, config: SinkConfig = None):
        self.config = config or DEFAULT_CONFIG.sink
        self.client: Optional[redis.Redis] = None
        self.connected = False
        self._in_memory_streams: Dict[str, List[Dict[str, Any]]] = {}

    def stream_key(self, measurement: str) -> str:
        return f"{self.config.key_prefix}:{measurement}:stream"

    async def connect(self) -> bool:
        host, port = self.config.host, self.config.port

        # Fast socket check to avoid redis-py retrying against a dead host
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=self.config.connect_timeout_seconds
            )
            writer.close()
            await writer.wait_closed()
        except (OSError, asyncio.TimeoutError):
            logger.warning(f"No Redis found at {host}:{port}. Using in-memory fallback.")
            self.connected = False
            return False

        try:
            self.client = redis.Redis(
                host=host,
                port=port,
                db=self.config.db,
                decode_responses=True,
                socket_connect_timeout=self.config.connect_timeout_seconds
            )
            await self.client.ping()
            self.connected = True
            logger.info(f"Connected to Redis at {host}:{port}")
            return True
        except RedisError as e:
            logger.warning(f"Using in-memory fallback (connection failed: {e})")
            self.connected = False
            return False

    async def write_batch(self, points: Sequence[Point]) -> None:
        """
        Append points to their measurement streams.

        Raises:
            RedisError: if the write to Redis fails
        """
        entries = []
        for point in points:
            entry = dict(point.fields)
            entry['time'] = point.timestamp.isoformat()
            entries.append((self.stream_key(point.measurement), entry))

        if self.connected:
            async with self.client.pipeline(transaction=False) as pipe:
                for key, entry in entries:
                    pipe.xadd(key, entry, maxlen=self.config.stream_maxlen, approximate=True)
                await pipe.execute()
        else:
            # Fallback
            for key, entry in entries:
                stream = self._in_memory_streams.setdefault(key, [])
                stream.append(entry)
                if len(stream) > self.config.stream_maxlen:
                    del stream[:len(stream) - self.config.stream_maxlen]

        logger.debug(f"Wrote {len(entries)} points")

    async def get_latest(self, measurement: str = 'signalk', count: int = 10) -> List[Dict]:
        key = self.stream_key(measurement)

        if self.connected:
            data = await self.client.xrevrange(key, count=count)
            return [fields for _, fields in data]

        # Fallback
        return list(self._in_memory_streams.get(key, []))[-count:][::-1]

    async def close(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        self.connected = False
