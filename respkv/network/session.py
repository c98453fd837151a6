"""
Connection Session Module

One ClientSession owns one client connection: it reads bytes, decodes
frames, dispatches them and writes the replies back, in order, until the
peer disconnects or sends something that cannot be parsed.

State machine:
    READING -> DISPATCHING -> WRITING -> READING ...
    READING -> CLOSED    (peer closed the connection, or I/O failed)
    READING -> ABORTED   (protocol error; RESP cannot resynchronise)
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from enum import Enum, auto

from ..commands.dispatcher import Dispatcher
from ..config.settings import settings
from ..errors import ProtocolError
from ..protocol.codec import DecodeState, RespCodec
from ..protocol.replies import Reply

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle states of a client session."""
    READING = auto()
    DISPATCHING = auto()
    WRITING = auto()
    CLOSED = auto()
    ABORTED = auto()


class ClientSession:
    """
    Per-connection request loop.

    The store lock is only taken inside dispatch(), which never awaits,
    so a session never holds it while waiting on the socket.

    Attributes:
        state: Current SessionState
        requests: Number of frames dispatched on this connection
    """

    def __init__(
            self,
            reader: StreamReader,
            writer: StreamWriter,
            dispatcher: Dispatcher,
            codec: RespCodec = None,
            read_size: int = None,
    ):
        self.reader = reader
        self.writer = writer
        self.dispatcher = dispatcher
        self.codec = codec if codec is not None else RespCodec()
        self.read_size = read_size if read_size is not None else settings.READ_BUFFER_SIZE
        self.peer = writer.get_extra_info('peername')
        self.state = SessionState.READING
        self.requests = 0
        self._buffer = bytearray()
        self._decode_state = DecodeState()

    @property
    def is_finished(self) -> bool:
        return self.state in (SessionState.CLOSED, SessionState.ABORTED)

    async def run(self) -> SessionState:
        """
        Serve the connection until it closes.

        Returns:
            The terminal state, CLOSED or ABORTED
        """
        logger.debug(f"Client connected: {self.peer}")
        try:
            while not self.is_finished:
                self.state = SessionState.READING
                data = await self.reader.read(self.read_size)
                if not data:
                    logger.debug(f"Client disconnected: {self.peer}")
                    self.state = SessionState.CLOSED
                    break

                self._buffer.extend(data)
                await self._process_buffer()

        except OSError as exc:
            logger.debug(f"Connection lost with {self.peer}: {exc}")
            self.state = SessionState.CLOSED
        except asyncio.CancelledError:
            self.state = SessionState.CLOSED
            raise
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {self.peer}: {exc}")
            self.state = SessionState.CLOSED
        finally:
            await self.close()

        return self.state

    async def _process_buffer(self) -> None:
        """Dispatch every complete frame currently buffered, in order."""
        while self._buffer:
            try:
                result = self.codec.decode(self._buffer, self._decode_state)
            except ProtocolError as exc:
                await self._abort(exc)
                return

            if result is None:
                # Incomplete frame, wait for more bytes
                return

            frame, consumed = result
            del self._buffer[:consumed]

            self.state = SessionState.DISPATCHING
            self.requests += 1
            reply = self.dispatcher.dispatch(frame)

            self.state = SessionState.WRITING
            await self._write(reply)

    async def _write(self, reply: Reply) -> None:
        self.writer.write(self.codec.encode(reply))
        await self.writer.drain()

    async def _abort(self, exc: ProtocolError) -> None:
        """Send a best-effort protocol error and give up on the stream."""
        logger.warning(f"Protocol error from {self.peer}: {exc}")
        self.state = SessionState.ABORTED
        self._buffer.clear()
        try:
            await self._write(Reply.error(f"ERR Protocol error: {exc}"))
        except (ConnectionError, OSError) as write_exc:
            logger.debug(f"Could not report protocol error to {self.peer}: {write_exc}")

    async def close(self) -> None:
        """Close the underlying transport."""
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass
