"""
MiniRedis - Synchronous Redis command client

One blocking connection per client. Every command goes through ``execute``,
which returns the RawReply untouched; typed wrappers hand it to the reply
decoder with the kind the protocol mandates for that command.

Transport failures never raise out of the public methods: they are logged,
stored in ``last_error`` and reported as a failed result.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import redis
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import DataError, InvalidResponse, RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from .commands import RedisCommands
from .config import ConnectionConfig
from .decoder import Expected, decode, decode_mapping
from .exceptions import (ConnectionError, MiniRedisError, NotConnectedError,
                         ProtocolError, TimeoutError)
from .logs import get_logger
from .reply import RawReply, RawReplyParser

logger = get_logger("Client")


def default_connection(config: ConnectionConfig) -> redis.Connection:
    """Blocking redis-py connection reading replies as RawReply"""
    return redis.Connection(
        host=config.host,
        port=config.port,
        socket_timeout=config.timeout or None,
        socket_connect_timeout=config.timeout or None,
        # RawReply parsers speak RESP2; newer redis-py defaults to RESP3
        protocol=2,
        parser_class=RawReplyParser,
        retry=Retry(NoBackoff(), 0),
    )


def command_args(command: str, args: Sequence[Any]) -> List[Any]:
    """Split a possibly multi-word verb and append the arguments"""
    return command.split() + list(args)


class MiniRedisClient(RedisCommands):
    """
    Blocking Redis client with typed reply decoding.

    Not safe for concurrent use: the client holds one connection and one
    in-flight request at a time.
    """

    def __init__(self, host: Optional[str] = None, port: Optional[int] = None,
                 timeout: Optional[float] = None, decode_responses: Optional[bool] = None,
                 connection_factory=None):
        """
        Initialize the client without connecting

        Args:
            host: Redis server host, defaults to REDIS_HOST
            port: Redis server port, defaults to REDIS_PORT
            timeout: Connect and reply timeout in seconds, defaults to REDIS_TIMEOUT
            decode_responses: Return str instead of bytes
            connection_factory: Callable building a transport from a ConnectionConfig
        """
        self.config = ConnectionConfig(host, port, timeout, decode_responses)
        self._connection_factory = connection_factory or default_connection
        self._connection = None
        self.last_error: Optional[MiniRedisError] = None

    # ==================== CONFIGURATION ====================

    @property
    def host(self) -> str:
        return self.config.host

    @host.setter
    def host(self, value: str):
        self.config.host = value

    @property
    def port(self) -> int:
        return self.config.port

    @port.setter
    def port(self, value: int):
        self.config.port = value

    @property
    def timeout(self) -> float:
        return self.config.timeout

    @timeout.setter
    def timeout(self, value: float):
        self.config.timeout = value

    # ==================== CONNECTION ====================

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def connect(self, host: Optional[str] = None, port: Optional[int] = None,
                timeout: Optional[float] = None) -> bool:
        """
        Connect to the Redis server, discarding any previous connection

        Args:
            host: New host, keeps the configured one if None
            port: New port, keeps the configured one if None
            timeout: New timeout, keeps the configured one if None

        Returns:
            True if connected; on failure the partial transport is released
            and the client can retry
        """
        self.config.update(host=host, port=port, timeout=timeout)
        self.close()

        connection = self._connection_factory(self.config)
        try:
            connection.connect()
        except (RedisError, OSError) as e:
            self._release(connection)
            self._fail(ConnectionError(f"Failed to connect to Redis server {self.config.address}: {e}"))
            return False

        self._connection = connection
        self.last_error = None
        logger.info(f"Connected to Redis at {self.config.address}")
        return True

    def close(self):
        """Release the connection; a no-op when not connected"""
        connection, self._connection = self._connection, None
        if connection is not None:
            self._release(connection)
            logger.debug(f"Closed connection to {self.config.address}")

    def take_connection(self):
        """
        Hand the underlying redis-py connection to the caller.

        The client forgets the connection; the caller becomes responsible for
        disconnecting it.
        """
        connection, self._connection = self._connection, None
        return connection

    def _release(self, connection):
        try:
            connection.disconnect()
        except (RedisError, OSError) as e:
            logger.error(f"Error closing Redis connection: {e}")

    def _fail(self, error: MiniRedisError):
        self.last_error = error
        logger.error(str(error))

    # ==================== RAW COMMANDS ====================

    def execute(self, command: str, *args: Any) -> Optional[RawReply]:
        """
        Send one command and block for its reply.

        Args:
            command: Command verb, multi-word verbs such as "CLIENT SETNAME" allowed
            *args: Binary-safe arguments (bytes, str, int or float)

        Returns:
            The reply, or None if the transport failed or timed out
        """
        argv = command_args(command, args)
        if self._connection is None:
            self._fail(NotConnectedError(f"Cannot execute {command}: not connected"))
            return None
        try:
            self._connection.send_command(*argv, check_health=False)
            return self._connection.read_response()
        except (RedisError, OSError) as e:
            self._translate(command, e)
            return None

    def pipeline(self, commands: Sequence[Sequence[Any]]) -> List[Optional[RawReply]]:
        """
        Send a batch of commands in one write and read every reply in order.

        Args:
            commands: Sequences of verb followed by arguments

        Returns:
            One reply per command; None for every reply not received
        """
        replies: List[Optional[RawReply]] = []
        if not commands:
            return replies
        if self._connection is None:
            self._fail(NotConnectedError("Cannot execute pipeline: not connected"))
            return [None] * len(commands)
        try:
            packed = self._connection.pack_commands(
                [command_args(command[0], command[1:]) for command in commands])
            self._connection.send_packed_command(packed, check_health=False)
            for _ in commands:
                replies.append(self._connection.read_response())
        except (RedisError, OSError) as e:
            self._translate("pipeline", e)
        return replies + [None] * (len(commands) - len(replies))

    def _translate(self, command: str, error: Exception):
        """Record a redis-py or socket exception as one of the library errors"""
        if isinstance(error, RedisTimeoutError):
            self._fail(TimeoutError(f"{command} timed out after {self.config.timeout}s: {error}"))
        elif isinstance(error, (InvalidResponse, DataError)):
            self._fail(ProtocolError(f"{command} failed: {error}"))
        elif isinstance(error, (RedisConnectionError, OSError)):
            self._fail(ConnectionError(f"{command} failed, connection lost: {error}"))
        else:
            self._fail(ProtocolError(f"{command} failed: {error}"))

    # ==================== DECODING ====================

    def _record_error(self, error: ProtocolError):
        self.last_error = error

    def _decode(self, raw: Optional[RawReply], expected: Expected) -> Tuple[Any, bool]:
        return decode(raw, expected, self.config.encoding, on_error=self._record_error)

    def _decode_mapping(self, raw: Optional[RawReply]) -> Tuple[Dict, bool]:
        return decode_mapping(raw, self.config.encoding, on_error=self._record_error)

    def __enter__(self) -> "MiniRedisClient":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
