"""
Protocol Reply Definitions

This module defines the typed reply values produced by command handlers.
A reply is encoded to wire bytes by RespCodec and then discarded.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, List, Sequence, Union


class ReplyKind(Enum):
    """Enumeration of reply types, one per RESP reply prefix."""
    STATUS = auto()   # +
    ERROR = auto()    # -
    INTEGER = auto()  # :
    BULK = auto()     # $
    ARRAY = auto()    # *
    NULL = auto()     # $-1


@dataclass(frozen=True)
class Reply:
    """
    Represents a protocol reply.

    Attributes:
        kind: Which RESP type this reply encodes to
        value: str for STATUS/ERROR, int for INTEGER, bytes for BULK,
               a tuple of Reply for ARRAY, None for NULL
    """
    kind: ReplyKind
    value: Any = None

    @classmethod
    def status(cls, message: str) -> "Reply":
        """Create a simple status reply."""
        return cls(kind=ReplyKind.STATUS, value=message)

    @classmethod
    def ok(cls) -> "Reply":
        """Create the '+OK' status reply."""
        return cls.status("OK")

    @classmethod
    def error(cls, message: str) -> "Reply":
        """Create an error reply."""
        return cls(kind=ReplyKind.ERROR, value=message)

    @classmethod
    def integer(cls, number: int) -> "Reply":
        """Create an integer reply."""
        return cls(kind=ReplyKind.INTEGER, value=int(number))

    @classmethod
    def bulk(cls, data: Union[bytes, str]) -> "Reply":
        """Create a bulk string reply. Text is stored as UTF-8."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        return cls(kind=ReplyKind.BULK, value=bytes(data))

    @classmethod
    def array(cls, items: Sequence["Reply"]) -> "Reply":
        """Create an array reply."""
        return cls(kind=ReplyKind.ARRAY, value=tuple(items))

    @classmethod
    def null(cls) -> "Reply":
        """Create a null bulk reply."""
        return cls(kind=ReplyKind.NULL)

    @property
    def is_error(self) -> bool:
        return self.kind == ReplyKind.ERROR

    def to_python(self) -> Any:
        """
        Convert the reply into plain Python values.

        Arrays become lists, NULL becomes None, everything else is returned
        as stored. Handy for clients and assertions.
        """
        if self.kind == ReplyKind.ARRAY:
            items: List[Any] = [item.to_python() for item in self.value]
            return items
        return self.value
