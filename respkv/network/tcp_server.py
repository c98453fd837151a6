"""
Async TCP Server Module

This module implements the listener for RESP-KV: it binds one TCP address
and runs a ClientSession for every accepted connection, all sharing a
single KVStore.

Key asyncio concepts used:
- asyncio.start_server(): one task per accepted connection
- StreamReader.read() / StreamWriter.drain(): the only suspension points
- Server.serve_forever() / close() / wait_closed(): lifecycle
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from typing import Optional, Set

from ..commands.dispatcher import Dispatcher
from ..config.settings import settings
from ..errors import ServerStartupError
from ..protocol.codec import RespCodec
from ..protocol.replies import Reply
from ..storage.store import KVStore
from .session import ClientSession

logger = logging.getLogger(__name__)


class KVServer:
    """
    Asynchronous TCP server for the RESP-KV service.

    Each client connection is handled in its own coroutine, so a slow
    client never blocks the others. The only state shared between
    connections is the KVStore.

    Usage:
        server = KVServer(host='127.0.0.1', port=6379)
        await server.start()  # Runs forever

    Attributes:
        host: Server bind address
        port: Server port number (0 picks a free port, see bound_port)
        store: The KVStore instance shared by all connections
        dispatcher: The Dispatcher executing commands against the store
        max_connections: Connections above this are refused
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            store: KVStore = None,
            max_connections: int = None,
    ):
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.store = store if store is not None else KVStore()
        self.dispatcher = Dispatcher(self.store)
        self.codec = RespCodec()
        self.max_connections = (
            max_connections if max_connections is not None else settings.MAX_CONNECTIONS
        )

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._running = False
        self._started = asyncio.Event()
        self._active_connections = 0
        self._connection_count = 0
        self._rejected_connections = 0
        self._finished_requests = 0
        self._sessions: Set[ClientSession] = set()

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single client connection.

        Refuses the connection when the server is at capacity, otherwise
        runs a ClientSession until it closes.
        """
        if self._active_connections >= self.max_connections:
            self._rejected_connections += 1
            logger.warning(
                f"Refusing {writer.get_extra_info('peername')}: "
                f"{self._active_connections} connections open"
            )
            try:
                writer.write(self.codec.encode(Reply.error("ERR max number of clients reached")))
                await writer.drain()
                writer.close()
                await writer.wait_closed()
            except OSError:
                pass
            return

        self._active_connections += 1
        self._connection_count += 1
        session = ClientSession(reader, writer, self.dispatcher, self.codec)
        self._sessions.add(session)
        try:
            await session.run()
        finally:
            self._sessions.discard(session)
            self._active_connections -= 1
            self._finished_requests += session.requests

    async def start(self) -> None:
        """
        Bind the listening socket and serve until stopped or cancelled.

        Raises:
            ServerStartupError: If the address cannot be bound
        """
        if self._running:
            return

        try:
            self._server = await asyncio.start_server(
                self.handle_client,
                self.host,
                self.port,
            )
        except OSError as exc:
            raise ServerStartupError(
                f"could not bind {self.host}:{self.port}: {exc.strerror or exc}"
            ) from exc
        self._running = True
        self._started.set()

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info(f"Serving on {addrs}")

        try:
            async with self._server:
                await self._server.serve_forever()
        except asyncio.CancelledError:
            # Expected during shutdown/fixture cleanup
            logger.debug("Server start cancelled")
        finally:
            self._running = False

    async def wait_started(self) -> None:
        """Wait until the listening socket is bound."""
        await self._started.wait()

    async def stop(self) -> None:
        """
        Stop the server gracefully.

        Closes the listening socket and every open client connection, then
        waits for the server to shut down.
        """
        if self._server is None:
            return

        self._server.close()
        for session in list(self._sessions):
            session.writer.close()
        try:
            await self._server.wait_closed()
        finally:
            self._server = None
            self._running = False

    @property
    def bound_port(self) -> Optional[int]:
        """The actual listening port, once bound."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with connection counts, request counts and store stats.
        """
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "active_connections": self._active_connections,
            "total_connections": self._connection_count,
            "rejected_connections": self._rejected_connections,
            "total_requests": self._finished_requests + sum(s.requests for s in self._sessions),
            "store_stats": self.store.get_stats(),
        }


async def run_server(host: str = None, port: int = None, store: KVStore = None) -> None:
    """
    Convenience function to create and run the server.

    Usage:
        asyncio.run(run_server(port=6379))
    """
    server = KVServer(host=host, port=port, store=store)

    try:
        await server.start()
    except asyncio.CancelledError:
        logger.info("Server shutdown requested")
    finally:
        await server.stop()
