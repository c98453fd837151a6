"""
RESP-KV: In-Memory Key-Value Store

A minimal, Redis-protocol compatible in-memory key-value server built with
Python asyncio, communicating over raw TCP sockets.
"""

__version__ = "1.0.0"
