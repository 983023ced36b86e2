from __future__ import annotations

import contextlib
import socket
from abc import ABC, abstractmethod
from collections import defaultdict
from types import TracebackType

from deprecated.sphinx import deprecated, versionadded

from rediswire._packer import Packer
from rediswire._utils import logger
from rediswire.config import Config
from rediswire.constants import SYM_EMPTY
from rediswire.exceptions import (
    AuthenticationError,
    ConnectionError,
    ProtocolError,
    ServerError,
    TimeoutError,
    TransactionInProgressError,
)
from rediswire.parser import Parser, read_response
from rediswire.response.types import Reply, SimpleString
from rediswire.typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    Iterator,
    List,
    Optional,
    Self,
    Tuple,
    Type,
    Union,
    ValueT,
)


class BaseConnection(ABC):
    """
    Base connection class which interacts with the underlying stream
    established with the redis server.

    A connection owns exactly one socket, the parser for the replies read from
    it and the queue of commands waiting to be sent as a transaction. It is
    not safe to share a connection between threads without external locking.
    """

    description: ClassVar[str] = "BaseConnection"

    def __init__(
        self,
        stream_timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        encoding: str = "utf-8",
        read_chunk_size: Optional[int] = None,
    ):
        self._stream_timeout = (
            stream_timeout if stream_timeout is not None else Config.stream_timeout
        )
        self._connect_timeout = (
            connect_timeout if connect_timeout is not None else Config.connect_timeout
        )
        self.username = username
        self.password = password
        self.encoding = encoding
        if read_chunk_size is not None and read_chunk_size <= 0:
            raise ValueError(f"read_chunk_size must be a positive integer, got {read_chunk_size}")
        self.read_chunk_size = read_chunk_size or Config.read_chunk_size
        self._description_args: Callable[..., Dict[str, Union[str, int, None]]] = lambda: dict()

        self._sock: Optional[socket.socket] = None
        self._parser = Parser(self.encoding)
        self.packer: Packer = Packer(self.encoding)
        self._queue: List[bytes] = []

    def __repr__(self) -> str:
        return self.description.format_map(defaultdict(lambda: None, self._description_args()))

    def __enter__(self) -> Self:
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.disconnect()

    def __del__(self) -> None:
        sock = getattr(self, "_sock", None)
        if sock is not None:
            sock.close()

    @property
    def is_connected(self) -> bool:
        """
        Whether the connection is established and the handshake was
        performed without error
        """
        return self._sock is not None

    @property
    def connection(self) -> socket.socket:
        if not self._sock:
            raise ConnectionError("Connection not initialized correctly!")
        return self._sock

    @property
    def pending(self) -> Tuple[bytes, ...]:
        """
        The encoded commands queued with :meth:`enqueue` that will be sent by
        the next call to :meth:`execute_transaction`
        """
        return tuple(self._queue)

    @abstractmethod
    def _connect(self) -> socket.socket: ...

    def connect(self) -> None:
        """
        Establish a connection to the redis server and authenticate
        if a password was provided. Does nothing if already connected.

        :raises ConnectionError: if the address can't be resolved or the
         connection is refused
        :raises TimeoutError: if the connection isn't established within the
         connect timeout
        :raises AuthenticationError: if the server rejects the credentials
        """
        if self.is_connected:
            return
        try:
            sock = self._connect()
        except socket.timeout as e:
            raise TimeoutError(f"Timed out connecting to {self!r}") from e
        except OSError as e:
            raise ConnectionError(f"Could not connect to {self!r}: {e}") from e
        sock.settimeout(self._stream_timeout)
        self._sock = sock
        logger.debug("Connected to %r", self)
        try:
            self.on_connect()
        except BaseException:
            self.disconnect()
            raise

    def on_connect(self) -> None:
        """Initialize the connection, authenticating if required"""
        if not self.password:
            return
        params: List[ValueT] = [self.password]
        if self.username:
            params.insert(0, self.username)
        try:
            response = self._execute(self.packer.pack_command(b"AUTH", *params))
        except ServerError as e:
            raise AuthenticationError(str(e)) from e
        if response != SimpleString("OK"):
            raise AuthenticationError(f"Unexpected reply to AUTH: {response!r}")

    def disconnect(self) -> None:
        """
        Disconnect from the Redis server. Safe to call when already
        disconnected. Commands queued for a transaction are kept.
        """
        self._parser.on_disconnect()
        if self._sock is None:
            return
        sock, self._sock = self._sock, None
        sock.close()
        logger.debug("Disconnected from %r", self)

    def reconnect(self) -> None:
        self.disconnect()
        self.connect()

    def execute_command(self, *args: ValueT) -> Reply:
        """
        Send a single command and wait for its reply

        :raises TransactionInProgressError: if commands are queued for a
         transaction. Nothing is written to the stream in that case.
        :raises InvalidCommandError: if no arguments were passed
        :raises ServerError: if the server replied with an error
        """
        if self._queue:
            raise TransactionInProgressError("Cannot run a single command during transaction")
        command = self.packer.pack_command(*args)
        self.connect()
        return self._execute(command)

    def enqueue(self, *args: ValueT) -> None:
        """
        Encode a command and queue it for the next :meth:`execute_transaction`.
        Nothing is written to the stream.

        :raises InvalidCommandError: if no arguments were passed
        """
        self._queue.append(self.packer.pack_command(*args))

    @versionadded(version="0.2.0")
    def discard_pending(self) -> None:
        """Drop all commands queued for a transaction"""
        self._queue.clear()

    def execute_transaction(self) -> List[Reply]:
        """
        Send all queued commands wrapped in ``MULTI`` / ``EXEC`` as a single
        write and read back one reply per command sent. The queue is cleared
        whether or not the transaction succeeds.

        :return: the replies in the order the commands were written: the reply
         to ``MULTI``, one ``QUEUED`` (or error) reply per queued command and
         finally the reply to ``EXEC``. Error replies are returned in place as
         :class:`~rediswire.response.types.Error`. An empty list is returned
         without any I/O if nothing was queued.
        """
        if not self._queue:
            return []
        commands, self._queue = self._queue, []
        payload = SYM_EMPTY.join(
            [self.packer.pack_command(b"MULTI"), *commands, self.packer.pack_command(b"EXEC")]
        )
        self.connect()
        logger.debug("Executing transaction with %d queued commands on %r", len(commands), self)
        with self._invalidate_on_failure("executing transaction on"):
            self.connection.sendall(payload)
            return [self._read_response(raise_errors=False) for _ in range(len(commands) + 2)]

    @deprecated(version="0.2.0", reason="Use execute_command or execute_transaction")
    def run(self, *args: ValueT) -> Union[Reply, List[Reply]]:
        """
        Execute :paramref:`args` as a single command, or, when called without
        arguments, send the queued transaction
        """
        if not args and self._queue:
            return self.execute_transaction()
        return self.execute_command(*args)

    def _execute(self, command: bytes) -> Reply:
        with self._invalidate_on_failure("executing command on"):
            self.connection.sendall(command)
            return self._read_response()

    def _read_response(self, raise_errors: bool = True) -> Reply:
        return read_response(
            self._parser, self.connection.recv, self.read_chunk_size, raise_errors
        )

    @contextlib.contextmanager
    def _invalidate_on_failure(self, action: str) -> Iterator[None]:
        try:
            yield
        except ProtocolError:
            logger.info("Dropping connection to %r", self, exc_info=True)
            self.disconnect()
            raise
        except socket.timeout as e:
            self.disconnect()
            raise TimeoutError(f"Timeout {action} {self!r}") from e
        except OSError as e:
            logger.info("Connection to %r closed unexpectedly!", self, exc_info=True)
            self.disconnect()
            raise ConnectionError(f"Error {action} {self!r}: {e}") from e


class Connection(BaseConnection):
    "Manages TCP communication to and from a Redis server"

    description: ClassVar[str] = "Connection<host={host},port={port}>"

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 6379,
        username: Optional[str] = None,
        password: Optional[str] = None,
        stream_timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        encoding: str = "utf-8",
        socket_keepalive: Optional[bool] = None,
        socket_keepalive_options: Optional[Dict[int, Union[int, bytes]]] = None,
        *,
        read_chunk_size: Optional[int] = None,
    ) -> None:
        super().__init__(
            stream_timeout,
            connect_timeout,
            username=username,
            password=password,
            encoding=encoding,
            read_chunk_size=read_chunk_size,
        )
        self.host = host
        self.port = port
        self._description_args = lambda: {"host": self.host, "port": self.port}
        self.socket_keepalive = socket_keepalive
        self.socket_keepalive_options: Dict[int, Union[int, bytes]] = (
            socket_keepalive_options or {}
        )

    def _connect(self) -> socket.socket:
        sock = socket.create_connection((self.host, self.port), timeout=self._connect_timeout)
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            if self.socket_keepalive:  # TCP_KEEPALIVE
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
                for k, v in self.socket_keepalive_options.items():
                    sock.setsockopt(socket.SOL_TCP, k, v)
        except (OSError, TypeError):
            sock.close()
            raise
        return sock


class UnixDomainSocketConnection(BaseConnection):
    description: ClassVar[str] = "UnixDomainSocketConnection<path={path}>"

    def __init__(
        self,
        path: str = "",
        username: Optional[str] = None,
        password: Optional[str] = None,
        stream_timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        encoding: str = "utf-8",
        *,
        read_chunk_size: Optional[int] = None,
        **_: Any,
    ) -> None:
        super().__init__(
            stream_timeout,
            connect_timeout,
            username=username,
            password=password,
            encoding=encoding,
            read_chunk_size=read_chunk_size,
        )
        self.path = path
        self._description_args = lambda: {"path": self.path}

    def _connect(self) -> socket.socket:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self._connect_timeout)
        try:
            sock.connect(self.path)
        except OSError:
            sock.close()
            raise
        return sock
