"""
rediswire.response.types
------------------------

Typed representation of a single RESP reply. Each reply type tag sent by
the server maps to exactly one of the variants below; the null (``-1``
length) bulk string and array are represented by a ``None`` payload and are
distinct from the empty bulk string and the empty array.
"""

from __future__ import annotations

import dataclasses

from rediswire.exceptions import ServerError
from rediswire.typing import Final, Optional, ResponseType, Union


@dataclasses.dataclass(frozen=True)
class SimpleString:
    """Status reply (``+OK``)"""

    value: str

    @property
    def is_null(self) -> bool:
        return False

    def unpack(self, encoding: Optional[str] = None) -> ResponseType:
        return self.value


@dataclasses.dataclass(frozen=True)
class Integer:
    """Integer reply (``:1``)"""

    value: int

    @property
    def is_null(self) -> bool:
        return False

    def unpack(self, encoding: Optional[str] = None) -> ResponseType:
        return self.value


@dataclasses.dataclass(frozen=True)
class BulkString:
    """Binary safe string reply. ``value`` is ``None`` for the null bulk string"""

    value: Optional[bytes]

    @property
    def is_null(self) -> bool:
        return self.value is None

    def unpack(self, encoding: Optional[str] = None) -> ResponseType:
        if self.value is None or not encoding:
            return self.value
        try:
            return self.value.decode(encoding)
        except ValueError:
            return self.value


@dataclasses.dataclass(frozen=True)
class Array:
    """Multi bulk reply. ``items`` is ``None`` for the null array"""

    items: Optional[tuple[Reply, ...]]

    @property
    def is_null(self) -> bool:
        return self.items is None

    def __len__(self) -> int:
        return len(self.items) if self.items is not None else 0

    def __getitem__(self, index: int) -> Reply:
        if self.items is None:
            raise IndexError("null array has no elements")
        return self.items[index]

    def unpack(self, encoding: Optional[str] = None) -> ResponseType:
        if self.items is None:
            return None
        return [item.unpack(encoding) for item in self.items]


@dataclasses.dataclass(frozen=True)
class Error:
    """
    Error reply kept as a value. Only produced where an error must not
    interrupt decoding of the surrounding replies (elements of an array and
    replies of a transaction).
    """

    message: str

    @property
    def is_null(self) -> bool:
        return False

    def exception(self) -> ServerError:
        """The :class:`~rediswire.exceptions.ServerError` this reply stands for"""
        from rediswire.parser import Parser

        return Parser.parse_error(self.message)

    def unpack(self, encoding: Optional[str] = None) -> ResponseType:
        return self.exception()


Reply = Union[SimpleString, Integer, BulkString, Array, Error]

NULL_BULK_STRING: Final[BulkString] = BulkString(None)
NULL_ARRAY: Final[Array] = Array(None)
