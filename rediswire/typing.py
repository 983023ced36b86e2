from __future__ import annotations

from collections.abc import (
    Callable,
    Iterable,
    Iterator,
    Mapping,
    Sequence,
)
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Dict,
    Final,
    Generic,
    List,
    Optional,
    Protocol,
    Set,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from typing_extensions import Self, TypeAlias

#: Values that can be sent as a single command argument
ValueT: TypeAlias = Union[str, bytes, bytearray, memoryview, int, float]
#: Command name and arguments before they are packed
CommandT: TypeAlias = Sequence[ValueT]
#: Plain python value a reply unpacks to
ResponsePrimitive: TypeAlias = Union[str, bytes, int, None]
ResponseType: TypeAlias = Union[ResponsePrimitive, list["ResponseType"], BaseException]

R = TypeVar("R")


class ByteSource(Protocol):
    """
    Blocking source of bytes. A call may return fewer bytes than requested and
    returns an empty bytestring once the stream is closed.
    """

    def __call__(self, size: int) -> bytes: ...


__all__ = [
    "TYPE_CHECKING",
    "Any",
    "ByteSource",
    "Callable",
    "ClassVar",
    "Dict",
    "CommandT",
    "Final",
    "Generic",
    "Iterable",
    "Iterator",
    "List",
    "Mapping",
    "Optional",
    "Protocol",
    "R",
    "ResponsePrimitive",
    "ResponseType",
    "Self",
    "Sequence",
    "Set",
    "Tuple",
    "Type",
    "TypeVar",
    "Union",
    "ValueT",
]
