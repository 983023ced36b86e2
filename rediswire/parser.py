from __future__ import annotations

import re
from io import BytesIO

from rediswire._utils import nativestr
from rediswire.constants import NULL_LENGTH, SYM_CRLF, DataType
from rediswire.exceptions import (
    AuthenticationFailureError,
    AuthenticationRequiredError,
    BusyLoadingError,
    ExecAbortError,
    NoScriptError,
    ProtocolError,
    ReadOnlyError,
    ServerError,
    UnknownCommandError,
    WrongTypeError,
)
from rediswire.response.types import (
    NULL_ARRAY,
    NULL_BULK_STRING,
    Array,
    BulkString,
    Error,
    Integer,
    Reply,
    SimpleString,
)
from rediswire.typing import ByteSource, Dict, Final, List, Type, Union


class NotEnoughData:
    pass


NOT_ENOUGH_DATA: Final[NotEnoughData] = NotEnoughData()

INTEGER_PATTERN: Final[re.Pattern[bytes]] = re.compile(rb"-?[0-9]+")
INT64_MIN: Final[int] = -(2**63)
INT64_MAX: Final[int] = 2**63 - 1


class ArrayNode:
    __slots__ = ("remaining", "items")

    def __init__(self, length: int) -> None:
        self.remaining = length
        self.items: List[Reply] = []

    def append(self, item: Reply) -> None:
        self.remaining -= 1
        self.items.append(item)


class Parser:
    """
    Incremental RESP2 parser. Bytes received from the stream are fed into the
    parser and complete replies are pulled out with :meth:`get_response`.
    """

    EXCEPTION_CLASSES: Dict[str, Union[Type[ServerError], Dict[str, Type[ServerError]]]] = {
        "ERR": {
            "unknown command": UnknownCommandError,
            "unknown subcommand": UnknownCommandError,
        },
        "EXECABORT": ExecAbortError,
        "LOADING": BusyLoadingError,
        "NOSCRIPT": NoScriptError,
        "NOAUTH": AuthenticationRequiredError,
        "READONLY": ReadOnlyError,
        "WRONGPASS": AuthenticationFailureError,
        "WRONGTYPE": WrongTypeError,
    }

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding
        self.localbuffer: BytesIO = BytesIO(b"")
        self.bytes_read: int = 0
        self.bytes_written: int = 0
        self.nodes: List[ArrayNode] = []

    def feed(self, data: bytes) -> None:
        self.localbuffer.seek(self.bytes_written)
        self.bytes_written += self.localbuffer.write(data)
        self.localbuffer.seek(self.bytes_read)

    def on_disconnect(self) -> None:
        """Called when the stream disconnects"""
        if not self.localbuffer.closed:
            self.localbuffer.seek(0)
            self.localbuffer.truncate()
            self.bytes_read = self.bytes_written = 0
        self.nodes.clear()

    def can_read(self) -> bool:
        return (self.bytes_written - self.bytes_read) > 0

    def get_response(self, raise_errors: bool = True) -> Union[NotEnoughData, Reply]:
        """
        :param raise_errors: Whether an error reply at the top level should be
         raised as a :exc:`~rediswire.exceptions.ServerError` instead of being
         returned as :class:`~rediswire.response.types.Error`
        :return: The next available parsed reply. If there is not enough data
         buffered for a complete reply a ``NotEnoughData`` instance will be
         returned.
        """
        response = self.parse()
        if raise_errors and isinstance(response, Error):
            raise self.parse_error(response.message)
        return response

    def parse(self) -> Union[NotEnoughData, Reply]:
        self.localbuffer.seek(self.bytes_read)

        while True:
            data = self.localbuffer.readline()
            if not data[-2::] == SYM_CRLF:
                if data.endswith(b"\n"):
                    raise ProtocolError(f"Protocol Error: line not terminated by CRLF {data!r}")
                return NOT_ENOUGH_DATA
            data_len = len(data)
            self.bytes_read += data_len
            marker, chunk = data[0], data[1:-2]
            response: Reply
            if marker == DataType.SIMPLE_STRING:
                response = SimpleString(nativestr(chunk, self.encoding).strip())
            elif marker == DataType.INT:
                response = Integer(self.parse_int(chunk))
            elif marker == DataType.ERROR:
                response = Error(nativestr(chunk, self.encoding))
            elif marker == DataType.BULK_STRING:
                length = self.parse_length(chunk)
                if length == NULL_LENGTH:
                    response = NULL_BULK_STRING
                else:
                    if (self.bytes_written - self.bytes_read) < length + 2:
                        self.bytes_read -= data_len
                        return NOT_ENOUGH_DATA
                    data = self.localbuffer.read(length + 2)
                    if data[-2:] != SYM_CRLF:
                        raise ProtocolError(
                            f"Protocol Error: bulk string of length {length} not terminated by CRLF"
                        )
                    self.bytes_read += length + 2
                    response = BulkString(data[:-2])
            elif marker == DataType.ARRAY:
                length = self.parse_length(chunk)
                if length == NULL_LENGTH:
                    response = NULL_ARRAY
                elif length == 0:
                    response = Array(())
                else:
                    self.nodes.append(ArrayNode(length))
                    continue
            else:
                raise ProtocolError(f"Protocol Error: {chr(marker)!r}, {bytes(chunk)!r}")

            # fold the reply into any open arrays, closing each array that
            # is now complete
            while self.nodes:
                node = self.nodes[-1]
                node.append(response)
                if node.remaining > 0:
                    break
                self.nodes.pop()
                response = Array(tuple(node.items))
            else:
                break

        if self.bytes_read == self.bytes_written:
            self.localbuffer.seek(0)
            self.localbuffer.truncate()
            self.bytes_read = self.bytes_written = 0
        return response

    @staticmethod
    def parse_int(chunk: bytes) -> int:
        """
        Parse a signed decimal integer line. Anything other than an optional
        ``-`` followed by ASCII digits, or a value outside the signed 64 bit
        range, is a :exc:`~rediswire.exceptions.ProtocolError`.
        """
        if not INTEGER_PATTERN.fullmatch(chunk):
            raise ProtocolError(f"Protocol Error: invalid integer {bytes(chunk)!r}")
        value = int(chunk)
        if not INT64_MIN <= value <= INT64_MAX:
            raise ProtocolError(f"Protocol Error: integer out of range {bytes(chunk)!r}")
        return value

    @classmethod
    def parse_length(cls, chunk: bytes) -> int:
        length = cls.parse_int(chunk)
        if length < NULL_LENGTH:
            raise ProtocolError(f"Protocol Error: invalid length {length}")
        return length

    @classmethod
    def parse_error(cls, response: str) -> ServerError:
        """
        Map an error reply to the matching exception. The message is kept
        verbatim.

        :meta private:
        """
        error_code = response.split(" ")[0]
        exception_class: Union[Type[ServerError], Dict[str, Type[ServerError]]] = ServerError
        if error_code in cls.EXCEPTION_CLASSES:
            exception_class = cls.EXCEPTION_CLASSES[error_code]
            if isinstance(exception_class, dict):
                detail = response[len(error_code) + 1 :].lower()
                options = exception_class.items()
                exception_class = ServerError
                for err, exc in options:
                    if detail.startswith(err):
                        exception_class = exc
                        break
        return exception_class(response)


def read_response(
    parser: Parser,
    read: ByteSource,
    chunk_size: int,
    raise_errors: bool = True,
) -> Reply:
    """
    Read exactly one reply, pulling bytes from :paramref:`read` until the
    parser has a complete reply. Any bytes read past the end of the reply stay
    buffered in :paramref:`parser` for the next call.

    :param parser: the parser holding the bytes already received from the stream
    :param read: blocking callable returning at most ``size`` bytes, and an empty
     bytestring once the stream is closed
    :param chunk_size: upper bound on the number of bytes requested per read
    :param raise_errors: see :meth:`Parser.get_response`
    :raises ProtocolError: if the stream closes before the reply is complete
     or the reply is malformed
    """
    while True:
        response = parser.get_response(raise_errors)
        if not isinstance(response, NotEnoughData):
            return response
        data = read(chunk_size)
        if not data:
            raise ProtocolError("Connection closed before a complete reply was received")
        parser.feed(data)


def decode(data: bytes, raise_errors: bool = True, encoding: str = "utf-8") -> Reply:
    """
    Decode a single reply from a buffer that is expected to contain all of it

    :raises ProtocolError: if the buffer ends before the reply is complete
    """
    parser = Parser(encoding)
    parser.feed(data)
    response = parser.get_response(raise_errors)
    if isinstance(response, NotEnoughData):
        raise ProtocolError(f"Incomplete reply {bytes(data[:64])!r}")
    return response
