import asyncio
import logging
from typing import Any, AsyncIterable, Dict, List, Mapping, Union

from .config import SystemConfig, DEFAULT_CONFIG
from .data_layer import BatchFlusher, BatchSink, Delta, DeltaRouter, Point

logger = logging.getLogger(__name__)


class SignalKWriter:
    """
    Feeds deltas through the router and flusher, one at a time.
    """

    def __init__(self, sink: BatchSink, config: SystemConfig = None):
        self.config = config or DEFAULT_CONFIG
        self._flusher = BatchFlusher(sink, self.config.pipeline)
        self._router = DeltaRouter(self._flusher, self.config.pipeline)
        self._closed = False

        logger.info(f"SignalKWriter initialized for {self.config.pipeline.self_context}")

    def handle_delta(self, delta: Union[Delta, Mapping[str, Any]]) -> List[Point]:
        """
        Route one delta and flush if the batch is over the threshold.

        Must run on the event loop thread; the flush is dispatched as a task.
        """
        if not isinstance(delta, Delta):
            delta = Delta.from_dict(delta)
        points = self._router.route(delta)
        self._flusher.after_delta()
        return points

    async def run(self, source: AsyncIterable[Delta]):
        """Consume a delta source until it is exhausted."""
        async for delta in source:
            self.handle_delta(delta)
            # Let dispatched writes make progress between deltas
            await asyncio.sleep(0)

    async def close(self):
        """Flush the partial batch and wait for all writes to finish."""
        if self._closed:
            return
        self._closed = True
        if self._flusher.flush():
            logger.info("Flushed remaining points on shutdown")
        await self._flusher.drain()
        logger.info(f"SignalKWriter closed: {self.statistics}")

    @property
    def router(self) -> DeltaRouter:
        return self._router

    @property
    def flusher(self) -> BatchFlusher:
        return self._flusher

    @property
    def statistics(self) -> Dict:
        return {**self._router.statistics, **self._flusher.statistics}
