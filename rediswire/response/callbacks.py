"""
rediswire.response.callbacks
----------------------------

Transform decoded :class:`~rediswire.response.types.Reply` values into the
python types returned by :class:`~rediswire.client.Redis`
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rediswire._utils import nativestr
from rediswire.exceptions import ResponseTypeError
from rediswire.response.types import Array, BulkString, Error, Integer, Reply, SimpleString
from rediswire.typing import (
    Dict,
    Generic,
    List,
    Optional,
    R,
    ResponsePrimitive,
    ResponseType,
    Set,
    Tuple,
    Type,
    Union,
)


class ResponseCallback(ABC, Generic[R]):
    def __call__(self, response: Reply, encoding: Optional[str] = None) -> R:
        if isinstance(response, Error):
            raise response.exception()
        return self.transform(response, encoding)

    @abstractmethod
    def transform(self, response: Reply, encoding: Optional[str] = None) -> R:
        pass

    def unexpected(self, response: Reply) -> ResponseTypeError:
        return ResponseTypeError(f"{type(self).__name__} unable to map {response!r}")


class NoopCallback(ResponseCallback[ResponseType]):
    def transform(self, response: Reply, encoding: Optional[str] = None) -> ResponseType:
        return response.unpack(encoding)


class SimpleStringCallback(ResponseCallback[bool]):
    def __init__(
        self,
        raise_on_error: Optional[Type[Exception]] = None,
        ok_values: Set[str] = {"OK"},
    ):
        self.raise_on_error = raise_on_error
        self.ok_values = ok_values

    def transform(self, response: Reply, encoding: Optional[str] = None) -> bool:
        success = isinstance(response, SimpleString) and response.value in self.ok_values
        if not success and self.raise_on_error:
            raise self.raise_on_error(response)
        return success


class IntCallback(ResponseCallback[int]):
    def transform(self, response: Reply, encoding: Optional[str] = None) -> int:
        if isinstance(response, Integer):
            return response.value
        raise self.unexpected(response)


class BoolCallback(ResponseCallback[bool]):
    def transform(self, response: Reply, encoding: Optional[str] = None) -> bool:
        if isinstance(response, Integer):
            return bool(response.value)
        raise self.unexpected(response)


class OptionalAnyStrCallback(ResponseCallback[Optional[Union[str, bytes]]]):
    def transform(
        self, response: Reply, encoding: Optional[str] = None
    ) -> Optional[Union[str, bytes]]:
        if isinstance(response, BulkString):
            return response.unpack(encoding)  # type: ignore[return-value]
        raise self.unexpected(response)


class ListCallback(ResponseCallback[List[ResponseType]]):
    def transform(self, response: Reply, encoding: Optional[str] = None) -> List[ResponseType]:
        if isinstance(response, Array) and not response.is_null:
            return [item.unpack(encoding) for item in response.items or ()]
        raise self.unexpected(response)


class DictCallback(ResponseCallback[Dict[ResponsePrimitive, ResponseType]]):
    """Maps a flat ``[field, value, field, value, ...]`` array to a dict"""

    def transform(
        self, response: Reply, encoding: Optional[str] = None
    ) -> Dict[ResponsePrimitive, ResponseType]:
        items = ListCallback().transform(response, encoding)
        if len(items) % 2:
            raise self.unexpected(response)
        it = iter(items)
        return dict(zip(it, it))  # type: ignore[arg-type]


class ScanCallback(ResponseCallback[Tuple[int, List[ResponseType]]]):
    """Maps a ``[cursor, [element, ...]]`` reply of the ``SCAN`` family"""

    def transform(
        self, response: Reply, encoding: Optional[str] = None
    ) -> Tuple[int, List[ResponseType]]:
        if isinstance(response, Array) and len(response) == 2:
            cursor, elements = response[0], response[1]
            if isinstance(cursor, BulkString) and cursor.value is not None:
                return int(nativestr(cursor.value)), ListCallback().transform(
                    elements, encoding
                )
        raise self.unexpected(response)
