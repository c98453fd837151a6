"""Network module for RESP-KV."""

from .session import ClientSession, SessionState
from .tcp_server import KVServer, run_server

__all__ = ["ClientSession", "KVServer", "SessionState", "run_server"]
