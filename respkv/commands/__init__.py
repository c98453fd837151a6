"""Command dispatch module for RESP-KV."""

from .dispatcher import COMMANDS, CommandSpec, Dispatcher, dispatch

__all__ = ["COMMANDS", "CommandSpec", "Dispatcher", "dispatch"]
