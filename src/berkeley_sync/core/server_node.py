import argparse
import asyncio
import logging

from aiohttp import web

from berkeley_sync import config
from berkeley_sync.core.coordinator import Coordinator
from berkeley_sync.time.api import (
    clock_handler,
    peers_handler,
    status_handler,
    sync_trigger_handler,
)

logger = logging.getLogger(__name__)


def make_app(coordinator: Coordinator):
    """
    Build the diagnostics aiohttp app; the coordinator's lifecycle is tied to
    the app's startup and cleanup.
    """
    app = web.Application()
    app['coordinator'] = coordinator
    app.add_routes([
        web.get('/clock', clock_handler),
        web.get('/peers', peers_handler),
        web.get('/status', status_handler),
        web.post('/sync', sync_trigger_handler),
    ])
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


async def on_startup(app):
    await app['coordinator'].start()


async def on_cleanup(app):
    await app['coordinator'].stop()


def positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Berkeley clock synchronization coordinator")
    parser.add_argument("--host", default=config.DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=config.DEFAULT_PORT,
                        help="port peers connect to")
    parser.add_argument("--interval", type=positive_float, default=config.SYNC_INTERVAL,
                        help="seconds between synchronization cycles")
    parser.add_argument("--timeout", type=positive_float, default=config.IO_TIMEOUT,
                        help="per-operation I/O timeout in seconds")
    parser.add_argument("--offset", type=int, default=config.INITIAL_OFFSET_MS,
                        help="initial logical clock offset in milliseconds")
    parser.add_argument("--initial-delay", type=float, default=config.INITIAL_DELAY,
                        help="seconds before the first cycle")
    parser.add_argument("--status-host", default=config.STATUS_HOST)
    parser.add_argument("--status-port", type=int, default=None,
                        help="serve the diagnostics HTTP API on this port")
    parser.add_argument("--log-level", default=config.LOG_LEVEL,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def build_coordinator(args) -> Coordinator:
    return Coordinator(
        host=args.host,
        port=args.port,
        sync_interval=args.interval,
        io_timeout=args.timeout,
        initial_offset=args.offset,
        initial_delay=args.initial_delay,
    )


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format=config.LOG_FORMAT)
    coordinator = build_coordinator(args)

    if args.status_port is not None:
        web.run_app(make_app(coordinator), host=args.status_host, port=args.status_port)
        return

    try:
        asyncio.run(coordinator.serve_forever())
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")


if __name__ == "__main__":
    main()
