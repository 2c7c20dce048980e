"""
Typed command wrappers

Each wrapper builds the argument list, runs it through ``execute`` and
decodes the reply with the kind the protocol documents for that command.
Every wrapper returns ``(value, ok)``; on failure the value is the zero value
of its type (empty string, -1, empty list or empty dict).

See https://redis.io/commands/ for the reply of each command.
"""

from typing import Dict, List, Optional, Tuple, Union

from .logs import get_logger
from .reply import ReplyKind

logger = get_logger("Commands")

STATUS = ReplyKind.STATUS
BULK = ReplyKind.BULK
INTEGER = ReplyKind.INTEGER
ARRAY = ReplyKind.ARRAY

Key = Union[str, bytes]
Value = Union[str, bytes, int, float]
StrResult = Tuple[Union[str, bytes], bool]
IntResult = Tuple[int, bool]
ListResult = Tuple[List, bool]


class RedisCommands:
    """Mixin expecting ``execute``, ``_decode`` and ``_decode_mapping``"""

    # ==================== GENERIC / STRINGS ====================

    def append(self, key: Key, value: Value) -> IntResult:
        """Append to a string; replies the new length"""
        return self._decode(self.execute("APPEND", key, value), INTEGER)

    def auth(self, password: str, username: Optional[str] = None) -> StrResult:
        """Authenticate the connection; username requires Redis 6 ACLs"""
        args = (username, password) if username else (password,)
        return self._decode(self.execute("AUTH", *args), STATUS)

    def client_getname(self) -> StrResult:
        return self._decode(self.execute("CLIENT GETNAME"), BULK)

    def client_setname(self, name: str) -> StrResult:
        """Name the connection as shown by CLIENT LIST; no spaces allowed"""
        return self._decode(self.execute("CLIENT SETNAME", name), STATUS)

    def decr(self, key: Key) -> IntResult:
        return self._decode(self.execute("DECR", key), INTEGER)

    def delete(self, *keys: Key) -> IntResult:
        """Remove keys; replies the number of keys removed"""
        return self._decode(self.execute("DEL", *keys), INTEGER)

    def exists(self, key: Key) -> IntResult:
        return self._decode(self.execute("EXISTS", key), INTEGER)

    def expire(self, key: Key, seconds: int) -> IntResult:
        """
        Set a timeout on key.

        Replies 1 if the timeout was set, 0 if it was not (for example the key
        does not exist).
        """
        return self._decode(self.execute("EXPIRE", key, seconds), INTEGER)

    def get(self, key: Key) -> StrResult:
        """Nil reply for a missing key decodes as a failure"""
        return self._decode(self.execute("GET", key), BULK)

    def incr(self, key: Key) -> IntResult:
        return self._decode(self.execute("INCR", key), INTEGER)

    def keys(self, pattern: Key = "*") -> ListResult:
        return self._decode(self.execute("KEYS", pattern), ARRAY)

    def ping(self, message: Optional[Value] = None) -> StrResult:
        """
        Ping the server.

        A bare PING replies with the status PONG, while PING with an argument
        echoes it back as a bulk string.
        """
        if message is None or message == "" or message == b"":
            return self._decode(self.execute("PING"), STATUS)
        return self._decode(self.execute("PING", message), BULK)

    def rename(self, key: Key, new_key: Key) -> StrResult:
        return self._decode(self.execute("RENAME", key, new_key), STATUS)

    def select(self, db_index: int) -> StrResult:
        """Select a logical database, 0..15 on a default server"""
        return self._decode(self.execute("SELECT", db_index), STATUS)

    def set(self, key: Key, value: Value, ttl: int = 0) -> StrResult:
        """
        Set key to hold value, overwriting any existing value and type.

        Args:
            ttl: Expiry in seconds, 0 means no expiry
        """
        if ttl > 0:
            return self._decode(self.execute("SETEX", key, ttl, value), STATUS)
        return self._decode(self.execute("SET", key, value), STATUS)

    def strlen(self, key: Key) -> IntResult:
        return self._decode(self.execute("STRLEN", key), INTEGER)

    def ttl(self, key: Key) -> IntResult:
        """Remaining seconds; -1 without expiry, -2 when the key does not exist"""
        return self._decode(self.execute("TTL", key), INTEGER)

    def type(self, key: Key) -> StrResult:
        """
        Type name of the value at key, or "none".

        Documented as a simple string reply; bulk replies are accepted too
        since some servers and proxies answer that way.
        """
        raw = self.execute("TYPE", key)
        if raw is not None and raw.kind is BULK:
            logger.debug("TYPE answered with a bulk reply instead of a status reply")
        return self._decode(raw, (STATUS, BULK))

    # ==================== HASHES ====================

    def hdel(self, key: Key, field: Key) -> IntResult:
        return self._decode(self.execute("HDEL", key, field), INTEGER)

    def hexists(self, key: Key, field: Key) -> IntResult:
        return self._decode(self.execute("HEXISTS", key, field), INTEGER)

    def hget(self, key: Key, field: Key) -> StrResult:
        return self._decode(self.execute("HGET", key, field), BULK)

    def hgetall(self, key: Key) -> Tuple[Dict, bool]:
        """Fields and values of a hash as a dict; empty when the key does not exist"""
        return self._decode_mapping(self.execute("HGETALL", key))

    def hkeys(self, key: Key) -> ListResult:
        return self._decode(self.execute("HKEYS", key), ARRAY)

    def hlen(self, key: Key) -> IntResult:
        return self._decode(self.execute("HLEN", key), INTEGER)

    def hset(self, key: Key, field: Key, value: Value) -> IntResult:
        """Replies the number of fields that were added"""
        return self._decode(self.execute("HSET", key, field, value), INTEGER)

    def hvals(self, key: Key) -> ListResult:
        return self._decode(self.execute("HVALS", key), ARRAY)

    # ==================== LISTS ====================

    def lindex(self, key: Key, index: int) -> StrResult:
        """Element at index, negative indexes count from the tail"""
        return self._decode(self.execute("LINDEX", key, index), BULK)

    def linsert_after(self, key: Key, pivot: Value, element: Value) -> IntResult:
        return self._decode(self.execute("LINSERT", key, "AFTER", pivot, element), INTEGER)

    def linsert_before(self, key: Key, pivot: Value, element: Value) -> IntResult:
        """List length after the insert, 0 without the key, -1 when pivot is missing"""
        return self._decode(self.execute("LINSERT", key, "BEFORE", pivot, element), INTEGER)

    def llen(self, key: Key) -> IntResult:
        return self._decode(self.execute("LLEN", key), INTEGER)

    def lpop(self, key: Key) -> StrResult:
        return self._decode(self.execute("LPOP", key), BULK)

    def lpush(self, key: Key, element: Value) -> IntResult:
        return self._decode(self.execute("LPUSH", key, element), INTEGER)

    def lrem(self, key: Key, count: int, element: Value) -> IntResult:
        """
        Remove occurrences of element.

        count > 0 removes from head to tail, count < 0 from tail to head and
        count = 0 removes all of them.
        """
        return self._decode(self.execute("LREM", key, count, element), INTEGER)

    def lset(self, key: Key, index: int, element: Value) -> StrResult:
        return self._decode(self.execute("LSET", key, index, element), STATUS)

    # ==================== SETS ====================

    def sadd(self, key: Key, member: Value) -> IntResult:
        return self._decode(self.execute("SADD", key, member), INTEGER)

    def scard(self, key: Key) -> IntResult:
        return self._decode(self.execute("SCARD", key), INTEGER)

    def sismember(self, key: Key, member: Value) -> IntResult:
        return self._decode(self.execute("SISMEMBER", key, member), INTEGER)

    def smembers(self, key: Key) -> ListResult:
        return self._decode(self.execute("SMEMBERS", key), ARRAY)

    def srem(self, key: Key, member: Value) -> IntResult:
        return self._decode(self.execute("SREM", key, member), INTEGER)

