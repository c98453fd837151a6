"""
Command Dispatcher Module

This module maps decoded request frames to command handlers and runs them
against the shared store.

Commands:
    SET <key> <value>       -> +OK
    GET <key>               -> $<len> <value> | $-1
    INFO [section]          -> $<len> <server metadata>
    COMMAND [...]           -> *<n> [name, arity] pairs
    MEMORY [USAGE <key>]    -> :<bytes> | $-1
    SAVE                    -> +OK (persistence is a stub)

Arity follows the Redis convention and counts the command name itself:
a positive arity is an exact count, a negative arity is a minimum.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence

from .. import __version__
from ..config.settings import settings
from ..errors import ECHO_LIMIT, CommandError, UnknownCommandError, WrongArgCountError
from ..protocol.codec import Frame
from ..protocol.replies import Reply
from ..storage.store import KVStore

logger = logging.getLogger(__name__)

Handler = Callable[[KVStore, List[bytes]], Reply]

# Version reported to clients that check it (redis-cli, client libraries).
REDIS_COMPAT_VERSION = "7.0.0"


@dataclass(frozen=True)
class CommandSpec:
    """
    A registered command.

    Attributes:
        name: Lower-case command name
        arity: Redis style arity (negative means "at least")
        handler: Callable taking (store, args) where args excludes the name
        summary: One-line description
    """
    name: str
    arity: int
    handler: Handler
    summary: str = ""

    def accepts(self, argc: int) -> bool:
        """Check an argument count (including the command name)."""
        if self.arity >= 0:
            return argc == self.arity
        return argc >= -self.arity


# ----------------------------------------------------------------------
# Handlers
# ----------------------------------------------------------------------

def _cmd_set(store: KVStore, args: List[bytes]) -> Reply:
    key, value = args
    store.set(key, value)
    return Reply.ok()


def _cmd_get(store: KVStore, args: List[bytes]) -> Reply:
    value = store.get(args[0])
    return Reply.bulk(value) if value is not None else Reply.null()


def _cmd_info(store: KVStore, args: List[bytes]) -> Reply:
    stats = store.get_stats()
    lines = [
        "# Server",
        f"redis_version:{REDIS_COMPAT_VERSION}",
        f"respkv_version:{__version__}",
        "redis_mode:standalone",
        "",
        "# Memory",
        f"used_memory:{stats['used_memory']}",
        "",
        "# Persistence",
        f"persistence_enabled:{int(settings.PERSISTENCE_ENABLED)}",
        "",
        "# Keyspace",
        f"keys:{stats['total_keys']}",
    ]
    return Reply.bulk("\r\n".join(lines) + "\r\n")


def _cmd_command(store: KVStore, args: List[bytes]) -> Reply:
    return Reply.array([
        Reply.array([Reply.bulk(spec.name), Reply.integer(spec.arity)])
        for spec in COMMANDS.values()
    ])


def _cmd_memory(store: KVStore, args: List[bytes]) -> Reply:
    if not args:
        return Reply.integer(store.memory_usage())

    subcommand = args[0].decode("latin-1").upper()
    if subcommand == "USAGE":
        if len(args) != 2:
            raise WrongArgCountError("memory|usage")
        usage = store.key_memory_usage(args[1])
        return Reply.integer(usage) if usage is not None else Reply.null()

    raise CommandError(
        f"ERR unknown subcommand '{_text(args[0][:ECHO_LIMIT])}'. Try MEMORY USAGE <key>."
    )


def _cmd_save(store: KVStore, args: List[bytes]) -> Reply:
    # Nothing is written to disk; the command only exists for client compatibility.
    logger.warning(
        f"SAVE requested with persistence disabled; {store.size()} keys not persisted"
    )
    return Reply.ok()


COMMANDS: Dict[str, CommandSpec] = {
    spec.name: spec
    for spec in (
        CommandSpec("set", 3, _cmd_set, "Set the string value of a key"),
        CommandSpec("get", 2, _cmd_get, "Get the value of a key"),
        CommandSpec("info", -1, _cmd_info, "Get information about the server"),
        CommandSpec("command", -1, _cmd_command, "List supported commands"),
        CommandSpec("memory", -1, _cmd_memory, "Report memory usage"),
        CommandSpec("save", 1, _cmd_save, "Persistence stub"),
    )
}


# ----------------------------------------------------------------------
# Dispatcher
# ----------------------------------------------------------------------

class Dispatcher:
    """
    Routes request frames to command handlers.

    Dispatch is synchronous and never raises for input a network peer can
    send: lookup and arity failures, and any CommandError raised by a
    handler, come back as error replies.

    Usage:
        dispatcher = Dispatcher(store)
        reply = dispatcher.dispatch([b"SET", b"key", b"value"])
    """

    def __init__(self, store: KVStore, commands: Dict[str, CommandSpec] = None):
        self.store = store
        self.commands = commands if commands is not None else COMMANDS

    def dispatch(self, frame: Sequence[bytes]) -> Reply:
        """
        Execute one request frame.

        Args:
            frame: Command name followed by its arguments

        Returns:
            The handler's reply, or an error reply
        """
        if not frame:
            return Reply.error("ERR empty command")

        try:
            spec = self.lookup(frame)
            return spec.handler(self.store, list(frame[1:]))
        except CommandError as exc:
            logger.debug(f"Command failed: {exc.message}")
            return Reply.error(exc.message)

    def lookup(self, frame: Sequence[bytes]) -> CommandSpec:
        """
        Resolve and arity-check the command a frame names.

        Raises:
            UnknownCommandError: If the name is not registered
            WrongArgCountError: If the argument count does not match
        """
        name = frame[0].decode("latin-1").lower()
        spec = self.commands.get(name)
        if spec is None:
            raise UnknownCommandError(
                _text(frame[0][:ECHO_LIMIT]),
                [_text(arg[:ECHO_LIMIT]) for arg in frame[1:ECHO_LIMIT + 1]],
            )
        if not spec.accepts(len(frame)):
            raise WrongArgCountError(spec.name)
        return spec


def dispatch(frame: Frame, store: KVStore) -> Reply:
    """Dispatch a frame against a store without building a Dispatcher first."""
    return Dispatcher(store).dispatch(frame)


def _text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")
