from __future__ import annotations

import os

from rediswire.typing import Callable, Optional, TypeVar, Union

N = TypeVar("N", int, float)

DEFAULT_READ_CHUNK_SIZE = 8192
DEFAULT_STREAM_TIMEOUT = 30.0
DEFAULT_CONNECT_TIMEOUT = 3.0


def _from_env(name: str, cast: Callable[[str], N], default: N) -> N:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        return default
    return value if value > 0 else default


class __Config:
    def __init__(self) -> None:
        self.__read_chunk_size: Optional[int] = None
        self.__stream_timeout: Optional[float] = None
        self.__connect_timeout: Optional[float] = None

    @property
    def read_chunk_size(self) -> int:
        """
        Upper bound on the number of bytes requested from the socket in a single
        read while assembling a reply.
        Can be set with the environment variable ``REDISWIRE_READ_CHUNK_SIZE``
        """
        if self.__read_chunk_size is not None:
            return self.__read_chunk_size
        return _from_env("REDISWIRE_READ_CHUNK_SIZE", int, DEFAULT_READ_CHUNK_SIZE)

    @read_chunk_size.setter
    def read_chunk_size(self, value: Optional[int]) -> None:
        if value is not None and value <= 0:
            raise ValueError(f"read_chunk_size must be a positive integer, got {value}")
        self.__read_chunk_size = value

    @property
    def stream_timeout(self) -> float:
        """
        Default read/write timeout (in seconds) applied to a socket once it
        is connected.
        Can be set with the environment variable ``REDISWIRE_STREAM_TIMEOUT``
        """
        if self.__stream_timeout is not None:
            return self.__stream_timeout
        return _from_env("REDISWIRE_STREAM_TIMEOUT", float, DEFAULT_STREAM_TIMEOUT)

    @stream_timeout.setter
    def stream_timeout(self, value: Optional[Union[int, float]]) -> None:
        self.__stream_timeout = None if value is None else float(value)

    @property
    def connect_timeout(self) -> float:
        """
        Default time (in seconds) to wait for a connection to be established.
        Can be set with the environment variable ``REDISWIRE_CONNECT_TIMEOUT``
        """
        if self.__connect_timeout is not None:
            return self.__connect_timeout
        return _from_env("REDISWIRE_CONNECT_TIMEOUT", float, DEFAULT_CONNECT_TIMEOUT)

    @connect_timeout.setter
    def connect_timeout(self, value: Optional[Union[int, float]]) -> None:
        self.__connect_timeout = None if value is None else float(value)


#: Used to configure global behaviors of the rediswire library
Config = __Config()
