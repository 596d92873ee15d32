import argparse
import asyncio
import logging
import random

from berkeley_sync import config
from berkeley_sync.core.peer_client import PeerClient

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Berkeley clock synchronization peer")
    parser.add_argument("--host", default=config.PEER_CONNECT_HOST,
                        help="coordinator host")
    parser.add_argument("--port", type=int, default=config.DEFAULT_PORT,
                        help="coordinator port")
    parser.add_argument("--id", dest="client_id", default=None,
                        help="peer identity (random cli-NNN if omitted)")
    parser.add_argument("--offset", type=int, default=None,
                        help="initial logical clock offset in milliseconds "
                             f"(random within +/-{config.PEER_RANDOM_OFFSET_MS} if omitted)")
    parser.add_argument("--log-level", default=config.LOG_LEVEL,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)
    if args.client_id is None:
        args.client_id = f"cli-{random.randrange(1000)}"
    if args.offset is None:
        args.offset = random.randint(-config.PEER_RANDOM_OFFSET_MS, config.PEER_RANDOM_OFFSET_MS)
    return args


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format=config.LOG_FORMAT)
    client = PeerClient(args.host, args.port, args.client_id, initial_offset=args.offset)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    except OSError as e:
        logger.error(f"Connection to {args.host}:{args.port} failed: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
