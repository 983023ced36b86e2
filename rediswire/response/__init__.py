from __future__ import annotations

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

__all__ = [
    "Array",
    "BulkString",
    "Error",
    "Integer",
    "NULL_ARRAY",
    "NULL_BULK_STRING",
    "Reply",
    "SimpleString",
]
