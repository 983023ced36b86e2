"""
rediswire
---------

rediswire is a blocking redis client built around a small RESP2 codec
and a single connection transport with ``MULTI``/``EXEC`` support.
"""

from __future__ import annotations

import logging

from rediswire._packer import Packer, encode_command
from rediswire.client import Redis
from rediswire.config import Config
from rediswire.connection import (
    BaseConnection,
    Connection,
    UnixDomainSocketConnection,
)
from rediswire.parser import Parser, decode, read_response
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

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = [
    "Config",
    "Redis",
    "BaseConnection",
    "Connection",
    "UnixDomainSocketConnection",
    "Packer",
    "Parser",
    "encode_command",
    "decode",
    "read_response",
    "Reply",
    "SimpleString",
    "Integer",
    "BulkString",
    "Array",
    "Error",
    "NULL_BULK_STRING",
    "NULL_ARRAY",
]

__version__ = "0.2.0"
