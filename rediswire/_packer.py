from __future__ import annotations

from rediswire.constants import SYM_CRLF, SYM_DOLLAR, SYM_EMPTY, SYM_STAR
from rediswire.exceptions import InvalidCommandError
from rediswire.typing import CommandT, Iterable, List, ValueT


class Packer:
    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def encode(self, value: ValueT) -> bytes:
        """Returns a bytestring representation of the value"""
        if isinstance(value, bytes):
            return value
        elif isinstance(value, (bytearray, memoryview)):
            return bytes(value)
        elif isinstance(value, str):
            return value.encode(self.encoding)
        elif isinstance(value, int):
            return b"%d" % value
        elif isinstance(value, float):
            return b"%.15g" % value
        return str(value).encode(self.encoding)

    def pack_command(self, *args: ValueT) -> bytes:
        "Pack a series of arguments into the Redis protocol"
        if not args:
            raise InvalidCommandError("Too few arguments passed")

        output: List[bytes] = [SYM_STAR, b"%d" % len(args), SYM_CRLF]
        for arg in args:
            encoded = self.encode(arg)
            output.extend((SYM_DOLLAR, b"%d" % len(encoded), SYM_CRLF, encoded, SYM_CRLF))
        return SYM_EMPTY.join(output)

    def pack_commands(self, commands: Iterable[CommandT]) -> bytes:
        return SYM_EMPTY.join(self.pack_command(*cmd) for cmd in commands)


def encode_command(*args: ValueT, encoding: str = "utf-8") -> bytes:
    """
    Encode a single command as a RESP array of bulk strings

    :param args: the command name followed by its arguments
    :param encoding: encoding used for :class:`str` arguments
    :raises InvalidCommandError: if no arguments were passed
    """
    return Packer(encoding).pack_command(*args)
