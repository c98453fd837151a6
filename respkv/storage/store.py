"""
Shared Key-Value Store Module

This module implements the in-memory mapping shared by every client
session. Keys and values are opaque byte strings.
"""

import threading
from typing import Any, Dict, Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]


class KVStore:
    """
    Thread-safe in-memory key-value store.

    All reads and writes go through a single internal lock, so a get()
    racing a set() on the same key sees either the old or the new value,
    never a mix. Values are stored as immutable bytes.

    There is no eviction, no TTL and no size cap: the map grows until the
    process runs out of memory.

    Internal Storage:
        Plain dict, key -> value.
        _used_memory tracks the sum of key and value lengths.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._store: Dict[bytes, bytes] = {}
        self._used_memory = 0

    def get(self, key: BytesLike) -> Optional[bytes]:
        """
        Retrieve the value for a given key.

        Args:
            key: The key to look up

        Returns:
            The stored value, or None if the key was never written
        """
        key = bytes(key)
        with self._lock:
            return self._store.get(key)

    def set(self, key: BytesLike, value: BytesLike) -> None:
        """
        Insert or overwrite a key-value pair.

        Once this returns, every later get() from any session observes
        the new value.

        Args:
            key: The key to store
            value: The value to associate with the key
        """
        key = bytes(key)
        value = bytes(value)
        with self._lock:
            previous = self._store.get(key)
            if previous is None:
                self._used_memory += len(key) + len(value)
            else:
                self._used_memory += len(value) - len(previous)
            self._store[key] = value

    def size(self) -> int:
        """Get the current number of keys in the store."""
        with self._lock:
            return len(self._store)

    def memory_usage(self) -> int:
        """Total bytes held by keys and values."""
        with self._lock:
            return self._used_memory

    def key_memory_usage(self, key: BytesLike) -> Optional[int]:
        """Bytes used by one key and its value, or None if absent."""
        key = bytes(key)
        with self._lock:
            value = self._store.get(key)
        if value is None:
            return None
        return len(key) + len(value)

    def snapshot(self) -> Dict[bytes, bytes]:
        """
        Return a point-in-time copy of the whole key space.

        Intended for a persistence or introspection layer; the copy is
        taken under the lock so it never contains a half-applied write.
        """
        with self._lock:
            return dict(self._store)

    def clear(self) -> None:
        """Remove all keys from the store."""
        with self._lock:
            self._store.clear()
            self._used_memory = 0

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the store.

        Returns:
            Dictionary containing:
            - total_keys: Number of keys stored
            - used_memory: Bytes held by keys and values
        """
        with self._lock:
            return {
                "total_keys": len(self._store),
                "used_memory": self._used_memory,
            }
