from __future__ import annotations

from rediswire.typing import Optional


class RedisError(Exception):
    """
    Base exception from which all other exceptions in rediswire
    derive from.
    """


class ConnectionError(RedisError):
    """
    Raised when the stream to the server can't be established or fails
    while a command is being written or a reply is being read
    """


class TimeoutError(ConnectionError):
    pass


class ProtocolError(ConnectionError):
    """
    Raised on errors related to ser/deser protocol parsing
    """


class AuthenticationError(ConnectionError):
    """
    Raised when the server does not accept the credentials sent with ``AUTH``
    """


class InvalidCommandError(RedisError):
    """
    Raised when a command without any arguments is passed for encoding
    """


class TransactionInProgressError(RedisError):
    """
    Raised when a command is executed immediately on a connection that
    has commands queued for a transaction
    """


class ResponseTypeError(RedisError):
    """
    Raised when the reply to a command doesn't have the shape the
    command is expected to return
    """


class NoKeyError(RedisError):
    """
    Raised when a key provided in the command is missing
    """


class ServerError(RedisError):
    """
    Error reply sent by the server. The message is the server's
    error text verbatim (for example ``ERR wrong type``).
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> Optional[str]:
        """
        The leading error code of the reply (``ERR``, ``WRONGTYPE`` etc.) if
        the server sent one
        """
        prefix = self.message.split(" ", 1)[0]
        if prefix and prefix.isupper():
            return prefix
        return None


class UnknownCommandError(ServerError):
    """
    Raised when the server doesn't recognize the command or subcommand
    """


class WrongTypeError(ServerError):
    """
    Raised when an operation is performed on a key
    containing a datatype that doesn't support the operation
    """


class ExecAbortError(ServerError):
    pass


class NoScriptError(ServerError):
    pass


class ReadOnlyError(ServerError):
    pass


class BusyLoadingError(ServerError):
    pass


class AuthenticationRequiredError(ServerError):
    """
    Raised when a command is sent to a server that requires
    authentication before ``AUTH`` was sent
    """


class AuthenticationFailureError(ServerError):
    """
    Raised when the server rejects the username/password pair
    """
