from __future__ import annotations

from types import TracebackType

from deprecated.sphinx import versionadded

from rediswire.connection import BaseConnection, Connection, UnixDomainSocketConnection
from rediswire.exceptions import NoKeyError, RedisError, ResponseTypeError
from rediswire.response.callbacks import (
    BoolCallback,
    DictCallback,
    IntCallback,
    ListCallback,
    NoopCallback,
    OptionalAnyStrCallback,
    ResponseCallback,
    ScanCallback,
    SimpleStringCallback,
)
from rediswire.response.types import Array, Error
from rediswire.typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    ResponsePrimitive,
    ResponseType,
    Self,
    Type,
    Union,
    ValueT,
)

AnyStr = Union[str, bytes]


class Redis:
    """
    Blocking redis client exposing a small set of commands on top of a
    single :class:`~rediswire.connection.Connection`.

    The connection is established lazily on the first command.

    :param host: hostname of the server
    :param port: port the server is listening on
    :param unix_socket_path: path to a unix domain socket. When provided
     :paramref:`host` and :paramref:`port` are ignored.
    :param username: username to authenticate with (``AUTH username password``)
    :param password: password to authenticate with right after connecting
    :param stream_timeout: read/write timeout in seconds once connected
    :param connect_timeout: time in seconds to wait for the connection
    :param encoding: encoding for :class:`str` arguments and decoded replies
    :param decode_responses: whether bulk string replies are decoded to
     :class:`str` using :paramref:`encoding`
    :param connection: an existing connection to use instead of creating one
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 6379,
        *,
        unix_socket_path: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        stream_timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        encoding: str = "utf-8",
        decode_responses: bool = False,
        connection: Optional[BaseConnection] = None,
    ) -> None:
        if connection is None:
            if unix_socket_path:
                connection = UnixDomainSocketConnection(
                    unix_socket_path,
                    username=username,
                    password=password,
                    stream_timeout=stream_timeout,
                    connect_timeout=connect_timeout,
                    encoding=encoding,
                )
            else:
                connection = Connection(
                    host,
                    port,
                    username=username,
                    password=password,
                    stream_timeout=stream_timeout,
                    connect_timeout=connect_timeout,
                    encoding=encoding,
                )
        self.connection = connection
        self.encoding = encoding
        self.decode_responses = decode_responses

    def __repr__(self) -> str:
        return f"{type(self).__name__}<{self.connection!r}>"

    def __enter__(self) -> Self:
        self.connection.connect()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.connection.disconnect()

    @property
    def _response_encoding(self) -> Optional[str]:
        return self.encoding if self.decode_responses else None

    def execute_command(
        self, *args: ValueT, callback: Optional[ResponseCallback[Any]] = None
    ) -> Any:
        """Executes a command and transforms the reply using :paramref:`callback`"""
        response = self.connection.execute_command(*args)
        return (callback or NoopCallback())(response, self._response_encoding)

    def ping(self) -> bool:
        return self.execute_command(b"PING", callback=SimpleStringCallback(ok_values={"PONG"}))

    def set(self, key: ValueT, value: ValueT, ex: Optional[int] = None) -> bool:
        """
        Set :paramref:`key` to :paramref:`value`, optionally expiring after
        :paramref:`ex` seconds

        :raises ResponseTypeError: if the server didn't acknowledge with ``OK``
        """
        args: List[ValueT] = [b"SET", key, value]
        if ex is not None:
            args.extend([b"EX", ex])
        return self.execute_command(
            *args, callback=SimpleStringCallback(raise_on_error=ResponseTypeError)
        )

    def get(self, key: ValueT) -> Optional[AnyStr]:
        return self.execute_command(b"GET", key, callback=OptionalAnyStrCallback())

    def mget(self, *keys: ValueT) -> List[ResponseType]:
        return self.execute_command(b"MGET", *keys, callback=ListCallback())

    def exists(self, key: ValueT) -> bool:
        return self.execute_command(b"EXISTS", key, callback=BoolCallback())

    def expire(self, key: ValueT, seconds: int) -> bool:
        return self.execute_command(b"EXPIRE", key, seconds, callback=BoolCallback())

    def expireat(self, key: ValueT, timestamp: int) -> bool:
        return self.execute_command(b"EXPIREAT", key, timestamp, callback=BoolCallback())

    def ttl(self, key: ValueT) -> Optional[int]:
        """
        :return: the remaining time to live in seconds or ``None`` if the
         key exists but has no associated expiry
        :raises NoKeyError: if the key does not exist
        """
        response = self.execute_command(b"TTL", key, callback=IntCallback())
        if response == -2:
            raise NoKeyError(f"Key {key!r} does not exist")
        if response == -1:
            return None
        return response

    def delete(self, *keys: ValueT) -> int:
        return self.execute_command(b"DEL", *keys, callback=IntCallback())

    @versionadded(version="0.2.0")
    def unlink(self, *keys: ValueT) -> int:
        return self.execute_command(b"UNLINK", *keys, callback=IntCallback())

    def scan(self, match: Optional[ValueT] = None, count: Optional[int] = None) -> List[ResponseType]:
        """
        Iterate the keyspace with ``SCAN`` until the cursor returns to ``0``

        :return: the keys found, without duplicates, in the order they were
         first returned
        """
        keys: Dict[ResponseType, None] = {}
        cursor = 0
        while True:
            args: List[ValueT] = [b"SCAN", cursor]
            if match is not None:
                args.extend([b"MATCH", match])
            if count is not None:
                args.extend([b"COUNT", count])
            cursor, found = self.execute_command(*args, callback=ScanCallback())
            keys.update(dict.fromkeys(found))  # type: ignore[arg-type]
            if cursor == 0:
                break
        return list(keys)

    def hset(self, key: ValueT, field_values: Mapping[ValueT, ValueT]) -> int:
        """
        :return: the number of fields that were added
        """
        args: List[ValueT] = [b"HSET", key]
        for field, value in field_values.items():
            args.extend([field, value])
        return self.execute_command(*args, callback=IntCallback())

    def hexists(self, key: ValueT, field: ValueT) -> bool:
        return self.execute_command(b"HEXISTS", key, field, callback=BoolCallback())

    def hget(self, key: ValueT, field: ValueT) -> Optional[AnyStr]:
        return self.execute_command(b"HGET", key, field, callback=OptionalAnyStrCallback())

    def hgetall(self, key: ValueT) -> Dict[ResponsePrimitive, ResponseType]:
        return self.execute_command(b"HGETALL", key, callback=DictCallback())

    def hlen(self, key: ValueT) -> int:
        return self.execute_command(b"HLEN", key, callback=IntCallback())

    def hdel(self, key: ValueT, *fields: ValueT) -> int:
        return self.execute_command(b"HDEL", key, *fields, callback=IntCallback())

    def hscan(
        self, key: ValueT, match: Optional[ValueT] = None
    ) -> Dict[ResponsePrimitive, ResponseType]:
        """
        Iterate the fields of the hash at :paramref:`key` with ``HSCAN`` until
        the cursor returns to ``0``
        """
        fields: Dict[ResponsePrimitive, ResponseType] = {}
        cursor = 0
        while True:
            args: List[ValueT] = [b"HSCAN", key, cursor]
            if match is not None:
                args.extend([b"MATCH", match])
            cursor, found = self.execute_command(*args, callback=ScanCallback())
            it = iter(found)
            fields.update(zip(it, it))  # type: ignore[arg-type]
            if cursor == 0:
                break
        return fields

    def multi(self, *args: ValueT) -> None:
        """
        Queue a command to be sent in the transaction executed by the next
        call to :meth:`execute`
        """
        self.connection.enqueue(*args)

    def execute(self, raise_on_error: bool = True) -> List[ResponseType]:
        """
        Execute all commands queued with :meth:`multi` inside ``MULTI`` /
        ``EXEC``

        :param raise_on_error: whether to raise the first error returned for
         any of the queued commands. When ``False`` the error is returned in
         place of the command's result.
        :return: the results of the queued commands
        """
        replies = self.connection.execute_transaction()
        if not replies:
            return []
        queued, result = replies[1:-1], replies[-1]
        errors: List[Error] = [reply for reply in replies[:-1] if isinstance(reply, Error)]
        if isinstance(result, Error):
            raise (errors[0] if errors else result).exception()
        if not isinstance(result, Array) or result.is_null or len(result) != len(queued):
            raise ResponseTypeError(f"Unexpected reply to EXEC: {result!r}")
        response = [item.unpack(self._response_encoding) for item in result.items or ()]
        if raise_on_error:
            for item in response:
                if isinstance(item, RedisError):
                    raise item
        return response
