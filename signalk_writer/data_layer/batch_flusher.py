"""
Batch Flusher - Pending point buffer with threshold-triggered writes.
"""

import asyncio
import logging
from typing import Dict, List, Set

from ..config import PipelineConfig, DEFAULT_CONFIG
from .delta import Point
from .point_store import BatchSink

logger = logging.getLogger(__name__)


class BatchFlusher:
    """
    Owns the pending batch and dispatches it to the sink.

    A flush detaches the current batch, starts the write as a background
    task on the running event loop and carries on with an empty batch.
    Failed writes are logged and their points dropped; nothing is retried.
    """

    def __init__(self, sink: BatchSink, config: PipelineConfig = None):
        """
        Initialize the flusher.

        Args:
            sink: Store receiving flushed batches
            config: Pipeline configuration
        """
        self.config = config or DEFAULT_CONFIG.pipeline
        self._sink = sink
        self._points: List[Point] = []

        self._tasks: Set[asyncio.Task] = set()
        self._write_slots = asyncio.Semaphore(self.config.max_in_flight_writes)

        self._batches_written = 0
        self._batches_failed = 0
        self._points_written = 0
        self._points_dropped = 0

    def append(self, point: Point):
        self._points.append(point)

    def after_delta(self) -> bool:
        """
        Flush if the batch has grown past the threshold.

        Must be called from the event loop thread. Does not wait for the
        write to complete.

        Returns:
            True if a write was dispatched
        """
        if len(self._points) > self.config.flush_threshold:
            self._dispatch()
            return True
        return False

    def flush(self) -> bool:
        """Dispatch whatever is pending, regardless of the threshold."""
        if not self._points:
            return False
        self._dispatch()
        return True

    def _dispatch(self):
        loop = asyncio.get_running_loop()
        batch, self._points = self._points, []
        task = loop.create_task(self._write(batch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Dispatched batch of {len(batch)} points ({len(self._tasks)} in flight)")

    async def _write(self, batch: List[Point]):
        async with self._write_slots:
            try:
                await asyncio.wait_for(
                    self._sink.write_batch(batch),
                    timeout=self.config.write_timeout_seconds
                )
            except asyncio.CancelledError:
                self._batches_failed += 1
                self._points_dropped += len(batch)
                raise
            except asyncio.TimeoutError:
                self._batches_failed += 1
                self._points_dropped += len(batch)
                logger.error(
                    f"Time-series write timed out after {self.config.write_timeout_seconds}s, "
                    f"dropped {len(batch)} points"
                )
            except Exception as e:
                self._batches_failed += 1
                self._points_dropped += len(batch)
                logger.error(f"Time-series write error: {e}")
            else:
                self._batches_written += 1
                self._points_written += len(batch)

    async def drain(self):
        """Wait for all in-flight writes to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> List[Point]:
        """Copy of the points waiting for the next flush."""
        return list(self._points)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    @property
    def statistics(self) -> Dict:
        return {
            'pending': len(self._points),
            'in_flight': len(self._tasks),
            'batches_written': self._batches_written,
            'batches_failed': self._batches_failed,
            'points_written': self._points_written,
            'points_dropped': self._points_dropped
        }
