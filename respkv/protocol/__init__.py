"""Protocol module for RESP-KV."""

from .codec import CRLF, DecodeState, Frame, RespCodec
from .replies import Reply, ReplyKind

__all__ = [
    "CRLF",
    "DecodeState",
    "Frame",
    "RespCodec",
    "Reply",
    "ReplyKind",
]
