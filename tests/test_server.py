"""
Tests for the Async TCP Server

These tests verify the KVServer class:
- Server starts and accepts connections
- Handle multiple concurrent clients against one store
- Process commands correctly, byte for byte
- Handle disconnections, protocol errors and the connection cap

Run with: python -m pytest tests/test_server.py -v
"""

import asyncio
import logging
import socket
from contextlib import closing

import pytest

from respkv.errors import ServerStartupError
from respkv.network.tcp_server import KVServer
from respkv.server import main, parse_args


@pytest.mark.asyncio
class TestServerConnection:
    """Test server connection handling."""

    async def test_server_accepts_connection(self, server, client_factory):
        """Test that server accepts connections."""
        async with client_factory() as client:
            assert client.reader is not None
            assert client.writer is not None
        assert server.is_running()

    async def test_server_handles_disconnect(self, server, client_reader_writer, client_factory):
        """Test server handles client disconnect gracefully."""
        reader, writer = client_reader_writer

        writer.write(b"*3\r\n$3\r\nSET\r\n$3\r\nkey\r\n$5\r\nvalue\r\n")
        await writer.drain()
        assert await reader.readexactly(5) == b"+OK\r\n"

        writer.close()
        await writer.wait_closed()

        # Server should still accept new connections
        async with client_factory() as client:
            assert await client.send_command("GET", "key") == b"$5\r\nvalue\r\n"

    async def test_protocol_error_closes_only_that_connection(self, server, client_factory):
        async with client_factory() as good, client_factory() as bad:
            await good.send_command("SET", "k", "v")

            await bad.send_raw(b"*1\r\n$abc\r\n")
            assert await bad.read_reply() == b"-ERR Protocol error: invalid bulk length\r\n"
            assert await bad.read_reply() == b""

            assert await good.send_command("GET", "k") == b"$1\r\nv\r\n"

    async def test_bind_failure_is_startup_error(self, server, server_port):
        other = KVServer(host='127.0.0.1', port=server_port)
        with pytest.raises(ServerStartupError):
            await other.start()
        assert not other.is_running()

    async def test_port_zero_reports_bound_port(self):
        srv = KVServer(host='127.0.0.1', port=0)
        task = asyncio.create_task(srv.start())
        await asyncio.wait_for(srv.wait_started(), timeout=5)
        try:
            assert srv.bound_port > 0
        finally:
            await srv.stop()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


@pytest.mark.asyncio
class TestServerCommands:
    """Test command execution through server."""

    async def test_set_command(self, server, client_factory):
        async with client_factory() as client:
            assert await client.send_command("SET", "key1", "value1") == b"+OK\r\n"

    async def test_get_command_found(self, server, client_factory):
        async with client_factory() as client:
            await client.send_command("SET", "key1", "value1")
            assert await client.send_command("GET", "key1") == b"$6\r\nvalue1\r\n"

    async def test_get_command_not_found(self, server, client_factory):
        async with client_factory() as client:
            assert await client.send_command("GET", "nonexistent") == b"$-1\r\n"

    async def test_unknown_command_keeps_connection(self, server, client_factory):
        async with client_factory() as client:
            response = await client.send_command("FOO")
            assert response.startswith(b"-ERR unknown command 'FOO'")

            assert await client.send_command("SET", "k", "v") == b"+OK\r\n"

    async def test_wrong_arg_count_keeps_connection(self, server, client_factory):
        async with client_factory() as client:
            response = await client.send_command("SET", "onlykey")
            assert response == b"-ERR wrong number of arguments for 'set' command\r\n"

            assert await client.send_command("GET", "onlykey") == b"$-1\r\n"

    async def test_info_and_command(self, server, client_factory):
        async with client_factory() as client:
            info = await client.call("INFO")
            assert b"redis_mode:standalone" in info

            commands = await client.call("COMMAND")
            assert [b"get", 2] in commands

    async def test_case_insensitive_commands(self, server, client_factory):
        async with client_factory() as client:
            assert await client.send_command("set", "key1", "value1") == b"+OK\r\n"
            assert await client.send_command("Get", "key1") == b"$6\r\nvalue1\r\n"


@pytest.mark.asyncio
class TestServerConcurrency:
    """Test concurrent client handling."""

    async def test_two_clients(self, server, client_factory):
        async with client_factory() as client1, client_factory() as client2:
            await client1.send_command("SET", "key1", "value1")
            assert await client2.send_command("GET", "key1") == b"$6\r\nvalue1\r\n"

            await client2.send_command("SET", "key2", "value2")
            assert await client1.send_command("GET", "key2") == b"$6\r\nvalue2\r\n"

    async def test_many_concurrent_clients(self, server, client_factory):
        num_clients = 10

        async def client_task(client_id: int):
            async with client_factory() as client:
                key = f"key{client_id}"
                value = f"value{client_id}".encode()

                assert await client.send_command("SET", key, value) == b"+OK\r\n"
                assert await client.call("GET", key) == value

        await asyncio.gather(*(client_task(i) for i in range(num_clients)))
        assert server.store.size() == num_clients

    async def test_concurrent_writes_same_key(self, server, client_factory):
        value_a = b"A" * 50000
        value_b = b"B" * 50000

        async with client_factory() as client1, client_factory() as client2:
            await asyncio.gather(
                client1.send_command("SET", "shared", value_a),
                client2.send_command("SET", "shared", value_b),
            )

            # One value should win, intact
            assert await client1.call("GET", "shared") in (value_a, value_b)

    async def test_idle_client_does_not_block_others(self, server, client_factory):
        async with client_factory() as idle, client_factory() as active:
            # Half a frame, then nothing
            await idle.send_raw(b"*2\r\n$3\r\nGET")
            assert await active.send_command("SET", "k", "v") == b"+OK\r\n"

    async def test_stats(self, server, client_factory):
        async with client_factory() as client:
            await client.send_command("SET", "k", "v")
            await client.send_command("GET", "k")

            stats = server.get_stats()
            assert stats["active_connections"] == 1
            assert stats["total_requests"] == 2
            assert stats["store_stats"]["total_keys"] == 1


@pytest.mark.asyncio
class TestConnectionLimit:
    """Test the max_connections cap."""

    async def test_connections_over_limit_are_refused(self, server_port, client_factory):
        srv = KVServer(host='127.0.0.1', port=server_port, max_connections=1)
        task = asyncio.create_task(srv.start())
        await asyncio.wait_for(srv.wait_started(), timeout=5)
        try:
            async with client_factory() as first:
                assert await first.send_command("SET", "k", "v") == b"+OK\r\n"

                async with client_factory() as second:
                    assert await second.read_reply() == b"-ERR max number of clients reached\r\n"

                assert await first.send_command("GET", "k") == b"$1\r\nv\r\n"
            assert srv.get_stats()["rejected_connections"] == 1
        finally:
            await srv.stop()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass



class TestEntryPoint:
    """Test the respkv command line entry point."""

    def test_parse_args(self):
        args = parse_args(["--port", "7000", "--max-connections", "5", "--debug"])

        assert args.port == 7000
        assert args.max_connections == 5
        assert args.debug is True

    def test_bind_failure_exits_with_status_1(self, caplog):
        with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen()
            port = sock.getsockname()[1]

            try:
                with caplog.at_level(logging.INFO), pytest.raises(SystemExit) as exc_info:
                    main(["--host", "127.0.0.1", "--port", str(port)])
            finally:
                asyncio.set_event_loop(None)

        assert exc_info.value.code == 1
        assert f"127.0.0.1:{port}" in caplog.text
        assert "Startup failed" in caplog.text
