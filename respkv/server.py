#!/usr/bin/env python3
"""
RESP-KV Server Entry Point

Parses flags, configures logging and serves until SIGINT or SIGTERM.

Usage:
    python -m respkv.server                       # Default settings (127.0.0.1:6379)
    python -m respkv.server --port 7000           # Custom port
    python -m respkv.server --host 0.0.0.0        # Listen on all interfaces
    python -m respkv.server --debug               # Enable debug logging
    python -m respkv.server --max-connections 50  # Cap concurrent clients

Environment Variables:
    RESPKV_HOST             - Server bind address
    RESPKV_PORT             - Server port
    RESPKV_MAX_CONNECTIONS  - Maximum concurrent clients
    RESPKV_BUFFER_SIZE      - Socket read size in bytes
    RESPKV_DEBUG            - Enable debug mode (true/false)
"""

import argparse
import asyncio
import logging
import signal
import sys

from . import __version__
from .config.settings import settings
from .errors import ServerStartupError
from .network.tcp_server import KVServer
from .storage.store import KVStore


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="RESP-KV: In-Memory Key-Value Store Server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Host address to bind to",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Port number to listen on",
    )

    parser.add_argument(
        "--max-connections",
        type=int,
        default=settings.MAX_CONNECTIONS,
        help="Maximum number of concurrent clients",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def main(argv=None) -> None:
    """Run the server until it is stopped; exit with status 1 if it cannot bind."""
    args = parse_args(argv)

    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    store = KVStore()
    server = KVServer(
        host=args.host,
        port=args.port,
        store=store,
        max_connections=args.max_connections,
    )

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    async def shutdown(sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, stopping")
        await server.stop()

    # add_signal_handler is unavailable on Windows event loops
    if sys.platform != 'win32':
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(shutdown(s)))

    logger.info(
        f"Starting RESP-KV {__version__} on {args.host}:{args.port} "
        f"(max {args.max_connections} clients)"
    )

    try:
        loop.run_until_complete(server.start())
    except ServerStartupError as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping")
        loop.run_until_complete(server.stop())
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
        logger.info("Stopped")


if __name__ == "__main__":
    main()
