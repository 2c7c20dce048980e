"""
RESP reply model

RawReply keeps the kind of every reply so that status and bulk strings, nil
and server errors stay distinguishable after parsing. The parser classes plug
into redis-py connections through their ``parser_class`` argument and produce
RawReply trees instead of plain Python values.

A RawReply is a scoped resource: it is entered with ``with`` and released
when the outermost scope exits. A released reply drops its payload and cannot
be entered again.
"""

from enum import Enum
from typing import Any, Iterable, Optional

from redis._parsers import _AsyncRESP2Parser, _RESP2Parser
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import InvalidResponse

from .exceptions import ProtocolError

SERVER_CLOSED_CONNECTION_ERROR = "Connection closed by server."


class ReplyKind(Enum):
    """Closed set of RESP reply kinds"""
    STATUS = "status"
    BULK = "bulk"
    INTEGER = "integer"
    ARRAY = "array"
    NIL = "nil"
    ERROR = "error"


class RawReply:
    """One reply as read from the wire, tagged with its kind"""

    __slots__ = ("kind", "value", "elements", "_holds", "_released")

    def __init__(self, kind: ReplyKind, value: Any = None, elements: Iterable["RawReply"] = ()):
        self.kind = kind
        self.value = value
        self.elements = tuple(elements)
        self._holds = 0
        self._released = False

    @classmethod
    def status(cls, value: bytes) -> "RawReply":
        return cls(ReplyKind.STATUS, value)

    @classmethod
    def bulk(cls, value: bytes) -> "RawReply":
        return cls(ReplyKind.BULK, value)

    @classmethod
    def integer(cls, value: int) -> "RawReply":
        return cls(ReplyKind.INTEGER, value)

    @classmethod
    def array(cls, elements: Iterable["RawReply"]) -> "RawReply":
        return cls(ReplyKind.ARRAY, elements=elements)

    @classmethod
    def nil(cls) -> "RawReply":
        return cls(ReplyKind.NIL)

    @classmethod
    def error(cls, message: str) -> "RawReply":
        return cls(ReplyKind.ERROR, message)

    @property
    def released(self) -> bool:
        return self._released

    def __enter__(self) -> "RawReply":
        if self._released:
            raise ProtocolError(f"{self.kind.value} reply already released")
        self._holds += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        self._holds -= 1
        if self._holds == 0:
            self._release()
        return False

    def _release(self):
        for element in self.elements:
            element._release()
        self.value = None
        self.elements = ()
        self._released = True

    def __len__(self):
        return len(self.elements)

    def __repr__(self):
        if self._released:
            return f"<RawReply {self.kind.value} (released)>"
        if self.kind is ReplyKind.ARRAY:
            return f"<RawReply array {list(self.elements)!r}>"
        return f"<RawReply {self.kind.value} {self.value!r}>"


def _simple_reply(parser, raw: bytes) -> Optional[RawReply]:
    """
    Build the reply for a single-line RESP header.

    Returns None for bulk and array headers, whose bodies must still be read.
    """
    if not raw:
        raise RedisConnectionError(SERVER_CLOSED_CONNECTION_ERROR)
    byte, response = raw[:1], raw[1:]
    if byte == b"-":
        message = response.decode("utf-8", errors="replace")
        error = parser.parse_error(message)
        # Errors such as LOADING invalidate the connection itself
        if isinstance(error, RedisConnectionError):
            raise error
        return RawReply.error(message)
    if byte == b"+":
        return RawReply.status(response)
    if byte == b":":
        return RawReply.integer(int(response))
    if byte in (b"$", b"*"):
        if int(response) == -1:
            return RawReply.nil()
        return None
    raise InvalidResponse(f"Protocol Error: {raw!r}")


class RawReplyParser(_RESP2Parser):
    """RESP2 parser for redis.Connection producing RawReply"""

    def _read_response(self, disable_decoding=False, **kwargs):
        # Newer redis-py releases pass a read timeout through to the buffer
        raw = self._buffer.readline(**kwargs)
        reply = _simple_reply(self, raw)
        if reply is not None:
            return reply
        length = int(raw[1:])
        if raw[:1] == b"$":
            return RawReply.bulk(self._buffer.read(length))
        return RawReply.array([self._read_response(disable_decoding, **kwargs) for _ in range(length)])


class AsyncRawReplyParser(_AsyncRESP2Parser):
    """RESP2 parser for redis.asyncio.Connection producing RawReply"""

    async def _read_response(self, disable_decoding: bool = False, **kwargs):
        raw = await self._readline()
        reply = _simple_reply(self, raw)
        if reply is not None:
            return reply
        length = int(raw[1:])
        if raw[:1] == b"$":
            return RawReply.bulk(await self._read(length))
        return RawReply.array([await self._read_response(disable_decoding, **kwargs) for _ in range(length)])
