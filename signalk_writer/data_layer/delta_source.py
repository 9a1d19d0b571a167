"""
Delta Sources - Feed Signal K deltas from NDJSON streams or Redis pub/sub.
"""

import asyncio
import json
import logging
import sys
from typing import AsyncIterator, Iterable, Optional, TextIO

import redis.asyncio as redis

from ..config import SinkConfig, DEFAULT_CONFIG
from .delta import Delta

logger = logging.getLogger(__name__)


def parse_delta_line(line: str) -> Optional[Delta]:
    """
    Decode one JSON-encoded delta.

    Blank or malformed lines are logged and yield None.
    """
    line = line.strip()
    if not line:
        return None
    try:
        return Delta.from_dict(json.loads(line))
    except ValueError as e:
        # json.JSONDecodeError is a ValueError too
        logger.warning(f"Skipping malformed delta: {e}")
        return None


async def iter_lines(lines: Iterable[str]) -> AsyncIterator[Delta]:
    for line in lines:
        delta = parse_delta_line(line)
        if delta is not None:
            yield delta


async def read_handle(handle: TextIO) -> AsyncIterator[Delta]:
    """
    Yield deltas from a text stream until EOF.

    Lines are read in the default executor so a slow or idle stream does
    not hold up the event loop.
    """
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, handle.readline)
        if not line:
            break
        delta = parse_delta_line(line)
        if delta is not None:
            yield delta


async def read_ndjson(path: str) -> AsyncIterator[Delta]:
    """
    Read newline-delimited deltas from a file, or from stdin for "-".
    """
    if path == '-':
        async for delta in read_handle(sys.stdin):
            yield delta
        return

    with open(path, 'r', encoding='utf-8') as handle:
        async for delta in read_handle(handle):
            yield delta


async def subscribe_deltas(
    channel: str,
    config: SinkConfig = None
) -> AsyncIterator[Delta]:
    """
    Yield deltas published on a Redis channel.

    Runs until the connection is closed or the consumer stops iterating.
    """
    config = config or DEFAULT_CONFIG.sink
    client = redis.Redis(
        host=config.host,
        port=config.port,
        db=config.db,
        decode_responses=True
    )
    pubsub = client.pubsub()
    await pubsub.subscribe(channel)
    logger.info(f"Listening for deltas on '{channel}'...")

    try:
        async for message in pubsub.listen():
            if message["type"] != "message":
                continue
            delta = parse_delta_line(message["data"])
            if delta is not None:
                yield delta
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        await client.aclose()
