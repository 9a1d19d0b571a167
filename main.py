#!/usr/bin/env python3

import argparse
import asyncio
import logging
import sys

from signalk_writer.config import SystemConfig, PipelineConfig, SinkConfig, SourceConfig
from signalk_writer.data_layer import PointStore
from signalk_writer.data_layer.delta_source import read_ndjson, subscribe_deltas
from signalk_writer.writer import SignalKWriter


class SignalKWriterApp:

    def __init__(self, config: SystemConfig):
        self._config = config
        self._store: PointStore = None
        self._writer: SignalKWriter = None

    def _source(self):
        source = self._config.source
        if source.redis_channel:
            return subscribe_deltas(source.redis_channel, self._config.sink)
        return read_ndjson(source.input_path or '-')

    async def run_async(self):
        self._store = PointStore(self._config.sink)
        await self._store.connect()

        self._writer = SignalKWriter(self._store, self._config)
        try:
            await self._writer.run(self._source())
        finally:
            await self._writer.close()
            await self._store.close()

    def run(self):
        asyncio.run(self.run_async())


def build_config(args: argparse.Namespace) -> SystemConfig:
    return SystemConfig(
        pipeline=PipelineConfig(
            self_id=args.self_id,
            flush_threshold=args.flush_threshold
        ),
        sink=SinkConfig(
            host=args.redis_host,
            port=args.redis_port,
            db=args.redis_db
        ),
        source=SourceConfig(
            input_path=args.input,
            redis_channel=args.redis_channel
        )
    )


def main():
    parser = argparse.ArgumentParser(description="Signal K delta to time-series writer")
    parser.add_argument("--self-id", required=True, help="Self vessel id, e.g. urn:mrn:imo:mmsi:230099999")
    parser.add_argument("--input", default="-", help="NDJSON delta file, '-' for stdin")
    parser.add_argument("--redis-channel", help="Read deltas from this Redis pub/sub channel instead")
    parser.add_argument("--redis-host", default="localhost")
    parser.add_argument("--redis-port", type=int, default=6379)
    parser.add_argument("--redis-db", type=int, default=0)
    parser.add_argument("--flush-threshold", type=int, default=100)
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", help="Also log to this file")
    args = parser.parse_args()

    handlers = [logging.StreamHandler(sys.stderr)]
    if args.log_file:
        handlers.append(logging.FileHandler(args.log_file))
    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )
    logging.getLogger('signalk_writer').setLevel(args.log_level.upper())

    try:
        SignalKWriterApp(build_config(args)).run()
    except KeyboardInterrupt:
        print("\nShutting down...")
    except Exception as e:
        print(f"Error: {e}")
        logging.exception("Fatal error")
        sys.exit(1)


if __name__ == "__main__":
    main()
