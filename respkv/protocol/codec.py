"""
RESP Wire Codec

This module turns raw socket bytes into request frames and typed replies
back into protocol bytes. It knows nothing about command semantics.

Request format (array of bulk strings):
    *<count>\\r\\n
    $<length>\\r\\n<payload>\\r\\n     (repeated <count> times)

Reply prefixes:
    +  simple status       -  error          :  integer
    $  bulk string         *  array          $-1 null bulk
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from ..config.settings import settings
from ..errors import ProtocolError
from .replies import Reply, ReplyKind

CRLF = b"\r\n"
NULL_BULK = b"$-1\r\n"

Frame = List[bytes]

_INTEGER_RE = re.compile(rb"-?[0-9]+")


@dataclass
class DecodeState:
    """
    Parse progress for the frame at the head of a session buffer.

    Attributes:
        count: Declared element count, None until the header is read
        elements: Elements decoded so far
        pos: Buffer offset where parsing resumes
        bulk_length: Length of the element whose header was read but whose
                     payload has not fully arrived, else None
    """
    count: Optional[int] = None
    elements: Frame = field(default_factory=list)
    pos: int = 0
    bulk_length: Optional[int] = None

    def reset(self) -> None:
        # A fresh list: the finished frame has been handed to the caller.
        self.count = None
        self.elements = []
        self.pos = 0
        self.bulk_length = None


class RespCodec:
    """
    Streaming codec for the RESP wire protocol.

    decode() never mutates the buffer it is given and reports how many
    bytes a complete frame used, so the caller can keep appending socket
    reads to one buffer and retry after a short read. A session passes one
    DecodeState along so each retry resumes instead of re-parsing.

    Usage:
        codec = RespCodec()
        state = DecodeState()
        result = codec.decode(buffer, state)
        if result is not None:
            frame, consumed = result
            del buffer[:consumed]
    """

    def __init__(
            self,
            max_bulk_length: int = None,
            max_multibulk_length: int = None,
            max_length_line: int = None,
    ):
        self.max_bulk_length = (
            max_bulk_length if max_bulk_length is not None else settings.MAX_BULK_LENGTH
        )
        self.max_multibulk_length = (
            max_multibulk_length if max_multibulk_length is not None
            else settings.MAX_MULTIBULK_LENGTH
        )
        self.max_length_line = (
            max_length_line if max_length_line is not None else settings.MAX_LENGTH_LINE
        )

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def decode(
            self,
            buffer: Union[bytes, bytearray],
            state: DecodeState = None,
    ) -> Optional[Tuple[Frame, int]]:
        """
        Decode one request frame from the start of the buffer.

        Args:
            buffer: Bytes accumulated from the socket so far
            state: Progress kept between calls on the same buffer. Without
                   it every call parses from byte 0; with it a call resumes
                   where the previous incomplete one stopped, so a frame
                   arriving in many reads is parsed once in total.

        Returns:
            (frame, bytes_consumed) when a whole frame is present,
            None when more bytes are needed (nothing is consumed).

        Raises:
            ProtocolError: If the bytes can never form a valid frame.
        """
        if state is None:
            state = DecodeState()
        result = self._decode_frame(buffer, state)
        if result is not None:
            state.reset()
        return result

    def _decode_frame(self, buffer, state: DecodeState) -> Optional[Tuple[Frame, int]]:
        if state.count is None:
            if not buffer:
                return None
            prefix = buffer[0:1]
            if prefix != b"*":
                raise ProtocolError(f"expected '*', got '{_printable(prefix)}'")

            line = self._read_length_line(buffer, 1)
            if line is None:
                return None
            count = self._parse_length(line[0], "multibulk")
            if count < 0 or count > self.max_multibulk_length:
                raise ProtocolError("invalid multibulk length")
            state.count, state.pos = count, line[1]

        pos = state.pos
        while len(state.elements) < state.count:
            if state.bulk_length is None:
                if pos >= len(buffer):
                    return None
                prefix = buffer[pos:pos + 1]
                if prefix != b"$":
                    raise ProtocolError(f"expected '$', got '{_printable(prefix)}'")

                line = self._read_length_line(buffer, pos + 1)
                if line is None:
                    return None
                length = self._parse_length(line[0], "bulk")
                if length < 0 or length > self.max_bulk_length:
                    raise ProtocolError("invalid bulk length")
                state.bulk_length, state.pos = length, line[1]
                pos = state.pos

            end = pos + state.bulk_length
            if len(buffer) < end + 2:
                return None
            if buffer[end:end + 2] != CRLF:
                raise ProtocolError("bulk length does not match payload")

            state.elements.append(bytes(buffer[pos:end]))
            state.bulk_length = None
            pos = state.pos = end + 2

        return state.elements, pos

    def encode_command(self, *args: Union[bytes, str, int]) -> bytes:
        """Build a request frame, as a client would send it."""
        parts = [b"*%d\r\n" % len(args)]
        for arg in args:
            data = _to_bytes(arg)
            parts.append(b"$%d\r\n" % len(data))
            parts.append(data)
            parts.append(CRLF)
        return b"".join(parts)

    # ------------------------------------------------------------------
    # Replies
    # ------------------------------------------------------------------

    def encode(self, reply: Reply) -> bytes:
        """
        Encode a reply into protocol bytes.

        Every well-formed Reply maps to exactly one byte sequence. Bulk
        payloads are copied verbatim; line breaks inside status and error
        text are replaced with spaces.
        """
        parts: List[bytes] = []
        self._encode_into(reply, parts)
        return b"".join(parts)

    def _encode_into(self, reply: Reply, parts: List[bytes]) -> None:
        kind = reply.kind
        if kind == ReplyKind.STATUS:
            parts.append(b"+" + _single_line(reply.value) + CRLF)
        elif kind == ReplyKind.ERROR:
            parts.append(b"-" + _single_line(reply.value) + CRLF)
        elif kind == ReplyKind.INTEGER:
            parts.append(b":%d\r\n" % reply.value)
        elif kind == ReplyKind.BULK:
            parts.append(b"$%d\r\n" % len(reply.value))
            parts.append(reply.value)
            parts.append(CRLF)
        elif kind == ReplyKind.ARRAY:
            parts.append(b"*%d\r\n" % len(reply.value))
            for item in reply.value:
                self._encode_into(item, parts)
        else:
            parts.append(NULL_BULK)

    def decode_reply(self, buffer: Union[bytes, bytearray]) -> Optional[Tuple[Reply, int]]:
        """
        Decode one server reply from the start of the buffer.

        Same contract as decode(): (reply, bytes_consumed), None when
        incomplete, ProtocolError when malformed.
        """
        if not buffer:
            return None
        return self._decode_reply_at(buffer, 0)

    def _decode_reply_at(self, buffer, pos: int) -> Optional[Tuple[Reply, int]]:
        if pos >= len(buffer):
            return None
        prefix = buffer[pos:pos + 1]

        if prefix in (b"+", b"-"):
            end = buffer.find(CRLF, pos + 1)
            if end == -1:
                return None
            text = bytes(buffer[pos + 1:end]).decode("utf-8", errors="replace")
            reply = Reply.status(text) if prefix == b"+" else Reply.error(text)
            return reply, end + 2

        if prefix not in (b":", b"$", b"*"):
            raise ProtocolError(f"unexpected reply type '{_printable(prefix)}'")

        line = self._read_length_line(buffer, pos + 1)
        if line is None:
            return None
        number, pos = self._parse_length(line[0], "reply"), line[1]

        if prefix == b":":
            return Reply.integer(number), pos

        if prefix == b"$":
            if number == -1:
                return Reply.null(), pos
            if number < 0:
                raise ProtocolError("invalid bulk length")
            end = pos + number
            if len(buffer) < end + 2:
                return None
            if buffer[end:end + 2] != CRLF:
                raise ProtocolError("bulk length does not match payload")
            return Reply.bulk(bytes(buffer[pos:end])), end + 2

        if number == -1:
            return Reply.null(), pos
        if number < 0:
            raise ProtocolError("invalid multibulk length")
        items = []
        for _ in range(number):
            result = self._decode_reply_at(buffer, pos)
            if result is None:
                return None
            item, pos = result
            items.append(item)
        return Reply.array(items), pos

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _read_length_line(self, buffer, start: int) -> Optional[Tuple[bytes, int]]:
        """Return (line, position after CRLF), or None if not terminated yet."""
        end = buffer.find(CRLF, start)
        if end == -1:
            if len(buffer) - start > self.max_length_line:
                raise ProtocolError("too big length line")
            return None
        if end - start > self.max_length_line:
            raise ProtocolError("too big length line")
        return bytes(buffer[start:end]), end + 2

    @staticmethod
    def _parse_length(line: bytes, what: str) -> int:
        if not _INTEGER_RE.fullmatch(line):
            raise ProtocolError(f"invalid {what} length")
        return int(line)


def _to_bytes(value: Union[bytes, bytearray, str, int]) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    return str(value).encode("utf-8")


def _single_line(text: str) -> bytes:
    return text.replace("\r", " ").replace("\n", " ").encode("utf-8")


def _printable(prefix: bytes) -> str:
    return prefix.decode("latin-1").encode("unicode_escape").decode("ascii")
