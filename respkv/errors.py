"""
Exception hierarchy for RESP-KV.

Protocol errors end the offending session, command errors are turned into
error replies, and startup errors stop the process.
"""


# Longest piece of client input echoed back inside an error reply.
ECHO_LIMIT = 128


class RespKVError(Exception):
    """Base class for all RESP-KV errors."""


class ProtocolError(RespKVError):
    """Malformed wire input. The stream cannot be resynchronised."""


class CommandError(RespKVError):
    """
    A recoverable command failure.

    The message is sent back to the client verbatim as an error reply,
    so it should carry the Redis style error prefix (``ERR ...``).
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnknownCommandError(CommandError):
    """
    Raised when a frame names a command the dispatcher does not know.

    The command name and the argument preview are each cut to
    ECHO_LIMIT characters, as redis-server does.
    """

    def __init__(self, name: str, args=()):
        preview = ""
        for arg in args:
            if len(preview) >= ECHO_LIMIT:
                break
            preview += f"'{arg[:ECHO_LIMIT - len(preview)]}' "
        super().__init__(
            f"ERR unknown command '{name[:ECHO_LIMIT]}', "
            f"with args beginning with: {preview}".rstrip()
        )
        self.name = name


class WrongArgCountError(CommandError):
    """Raised when a command is called with the wrong number of arguments."""

    def __init__(self, name: str):
        super().__init__(f"ERR wrong number of arguments for '{name}' command")
        self.name = name


class ServerStartupError(RespKVError):
    """The listener could not bind its address."""
