#!/usr/bin/env python3
"""
Interactive Test Client for RESP-KV

A simple command-line client for manually testing the RESP-KV server.
Input lines are split shell-style, so quoted values may contain spaces.

Usage (after `pip install -e .` from the repository root):
    python scripts/client.py                  # Connect to 127.0.0.1:6379
    python scripts/client.py --host 1.2.3.4   # Connect to specific host
    python scripts/client.py --port 7000      # Connect to specific port

Commands:
    SET <key> <value>         - Store a key-value pair
    GET <key>                 - Retrieve a value
    INFO                      - Show server metadata
    COMMAND                   - List supported commands
    MEMORY [USAGE <key>]      - Show memory usage
    SAVE                      - Persistence stub
    help                      - Show this help
    exit                      - Exit client
"""

import argparse
import shlex
import socket
import sys

from respkv.errors import ProtocolError
from respkv.protocol.codec import RespCodec
from respkv.protocol.replies import Reply, ReplyKind

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default


class RespClient:
    """Simple blocking TCP client speaking RESP."""

    def __init__(self, host: str, port: int, timeout: float = 5.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.socket = None
        self.codec = RespCodec()
        self._buffer = bytearray()

    def connect(self) -> bool:
        """Connect to the server."""
        try:
            self.socket = socket.create_connection((self.host, self.port), timeout=self.timeout)
            self._buffer.clear()
            return True
        except OSError as e:
            print(f"Connection error: {e}")
            return False

    def disconnect(self):
        """Disconnect from the server."""
        if self.socket:
            try:
                self.socket.close()
            except OSError:
                pass
            self.socket = None

    def execute(self, *args) -> Reply:
        """Send one command and wait for its reply."""
        if not self.socket:
            raise ConnectionError("not connected")

        self.socket.sendall(self.codec.encode_command(*args))
        while True:
            result = self.codec.decode_reply(self._buffer)
            if result is not None:
                reply, consumed = result
                del self._buffer[:consumed]
                return reply

            chunk = self.socket.recv(4096)
            if not chunk:
                raise ConnectionError("connection closed by server")
            self._buffer.extend(chunk)

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


def format_reply(reply: Reply, indent: int = 0) -> str:
    """Render a reply the way redis-cli does."""
    pad = " " * indent
    if reply.kind == ReplyKind.STATUS:
        return f"{pad}{reply.value}"
    if reply.kind == ReplyKind.ERROR:
        return f"{pad}(error) {reply.value}"
    if reply.kind == ReplyKind.INTEGER:
        return f"{pad}(integer) {reply.value}"
    if reply.kind == ReplyKind.NULL:
        return f"{pad}(nil)"
    if reply.kind == ReplyKind.BULK:
        text = reply.value.decode("utf-8", errors="backslashreplace")
        if "\n" in text:
            return "\n".join(pad + line for line in text.splitlines())
        return f'{pad}"{text}"'
    if not reply.value:
        return f"{pad}(empty array)"
    lines = []
    for index, item in enumerate(reply.value, start=1):
        rendered = format_reply(item, indent + 3).lstrip()
        lines.append(f"{pad}{index}) {rendered}")
    return "\n".join(lines)


def print_help():
    """Print help message."""
    print("""
RESP-KV Commands:
-----------------
  SET <key> <value>         Store a key-value pair
  GET <key>                 Retrieve the value for a key
  INFO                      Show server metadata
  COMMAND                   List supported commands and their arity
  MEMORY [USAGE <key>]      Show total or per-key memory usage
  SAVE                      Persistence stub (nothing is written)

Client Commands:
----------------
  help                      Show this help message
  exit                      Exit the client
  reconnect                 Reconnect to the server
  status                    Show connection status

Examples:
---------
  SET greeting "hello world"   Store a value containing a space
  GET greeting                 Get value for "greeting"
""")


def main():
    parser = argparse.ArgumentParser(
        description="Interactive test client for RESP-KV"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Server host (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=6379,
        help="Server port (default: 6379)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="Socket timeout in seconds (default: 5.0)"
    )

    args = parser.parse_args()

    print("RESP-KV Client")
    print("==============")
    print(f"Connecting to {args.host}:{args.port}...")

    client = RespClient(args.host, args.port, args.timeout)

    if not client.connect():
        print("Failed to connect. Is the server running?")
        print(f"  Try: python -m respkv.server --port {args.port}")
        sys.exit(1)

    print("Connected! Type 'help' for commands.\n")

    try:
        while True:
            try:
                line = input(f"{args.host}:{args.port}> ").strip()
                if not line:
                    continue

                lower_cmd = line.lower()

                if lower_cmd == "help":
                    print_help()
                    continue

                if lower_cmd in ("exit", "quit"):
                    print("Goodbye!")
                    break

                if lower_cmd == "reconnect":
                    client.disconnect()
                    print("Reconnected!" if client.connect() else "Reconnection failed.")
                    continue

                if lower_cmd == "status":
                    status = "Connected" if client.socket else "Disconnected"
                    print(f"Status: {status}")
                    print(f"Server: {args.host}:{args.port}")
                    continue

                try:
                    parts = shlex.split(line)
                except ValueError as e:
                    print(f"Invalid input: {e}")
                    continue

                try:
                    print(format_reply(client.execute(*parts)))
                except (OSError, ProtocolError) as e:
                    print(f"ERROR: {e}")
                    client.disconnect()

            except EOFError:
                print("\nGoodbye!")
                break

    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
    finally:
        client.disconnect()


if __name__ == "__main__":
    main()
