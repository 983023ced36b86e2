from __future__ import annotations

import logging

from rediswire.typing import Optional, Union

logger = logging.getLogger("rediswire")


def b(x: Union[str, bytes, int, float], encoding: Optional[str] = None) -> bytes:
    if isinstance(x, bytes):
        return x
    if not isinstance(x, str):
        _v = str(x)
    else:
        _v = x
    return _v.encode(encoding) if encoding else _v.encode()


def nativestr(x: Union[str, bytes, int, float], encoding: str = "utf-8") -> str:
    if isinstance(x, (str, bytes)):
        return x if isinstance(x, str) else x.decode(encoding, "replace")
    elif isinstance(x, (int, float, bool)):
        return str(x)
    raise ValueError(f"Unable to cast {x} to string")
