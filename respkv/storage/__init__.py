"""Storage module for RESP-KV."""

from .store import KVStore

__all__ = ["KVStore"]
