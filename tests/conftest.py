"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
from contextlib import closing
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from respkv.commands.dispatcher import Dispatcher
from respkv.network.tcp_server import KVServer
from respkv.protocol.codec import RespCodec
from respkv.storage.store import KVStore


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Store / Protocol Fixtures
# ============================================================================

@pytest.fixture
def store() -> KVStore:
    """Create a fresh, empty KVStore."""
    return KVStore()


@pytest.fixture
def codec() -> RespCodec:
    """Create a RespCodec with default limits."""
    return RespCodec()


@pytest.fixture
def dispatcher(store: KVStore) -> Dispatcher:
    """Create a Dispatcher bound to the store fixture."""
    return Dispatcher(store)


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest_asyncio.fixture
async def server(server_port: int) -> AsyncGenerator[KVServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Creates a KVServer on a random free port
    2. Starts it in a background task
    3. Yields the server for testing
    4. Cleans up after the test
    """
    srv = KVServer(host='127.0.0.1', port=server_port)

    # Start server in background task
    server_task = asyncio.create_task(srv.start())

    # Wait for the listening socket
    await asyncio.wait_for(srv.wait_started(), timeout=5)

    yield srv

    # Cleanup
    await srv.stop()
    server_task.cancel()
    try:
        await server_task
    except asyncio.CancelledError:
        pass


# ============================================================================
# Client Fixtures
# ============================================================================

class AsyncClient:
    """
    Helper class for testing server interactions.

    Encodes commands as RESP arrays and returns each reply as the raw
    bytes the server sent, so tests can assert on the exact wire format.

    Usage:
        async with AsyncClient('127.0.0.1', 6379) as client:
            response = await client.send_command("SET", "key", "value")
            assert response == b"+OK\\r\\n"
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader = None
        self.writer = None
        self.codec = RespCodec()
        self._buffer = bytearray()

    async def connect(self) -> None:
        """Establish connection to server."""
        self.reader, self.writer = await asyncio.open_connection(
            self.host, self.port
        )

    async def disconnect(self) -> None:
        """Close connection to server."""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except OSError:
                pass

    async def send_raw(self, data: bytes) -> None:
        """Write bytes to the server without waiting for a reply."""
        self.writer.write(data)
        await self.writer.drain()

    async def read_reply(self, timeout: float = 5.0) -> bytes:
        """
        Read exactly one reply.

        Returns:
            The raw reply bytes, or b"" if the server closed the connection
        """
        while True:
            result = self.codec.decode_reply(self._buffer)
            if result is not None:
                _, consumed = result
                raw = bytes(self._buffer[:consumed])
                del self._buffer[:consumed]
                return raw

            chunk = await asyncio.wait_for(self.reader.read(4096), timeout)
            if not chunk:
                return b""
            self._buffer.extend(chunk)

    async def send_command(self, *args) -> bytes:
        """Send a command and return its raw reply."""
        await self.send_raw(self.codec.encode_command(*args))
        return await self.read_reply()

    async def call(self, *args):
        """Send a command and return its reply as Python values."""
        raw = await self.send_command(*args)
        reply, _ = self.codec.decode_reply(raw)
        return reply.to_python()

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


@pytest.fixture
def client_factory(server_port: int):
    """
    Factory fixture to create test clients.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as client:
                response = await client.send_command("GET", "key")
    """
    def factory() -> AsyncClient:
        return AsyncClient('127.0.0.1', server_port)
    return factory


@pytest_asyncio.fixture
async def client_reader_writer(
    server: KVServer,
    server_port: int
) -> AsyncGenerator[tuple, None]:
    """
    Create a raw reader/writer pair connected to the server.

    Useful for low-level protocol testing.
    """
    reader, writer = await asyncio.open_connection('127.0.0.1', server_port)

    yield reader, writer

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
