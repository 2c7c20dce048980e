"""
MiniRedis - Asynchronous publish/subscribe connection

Each connect/disconnect cycle owns a session: one redis-py asyncio connection
pumped by a dedicated event loop thread. Public methods may be called from any
thread; they only hand commands to the loop. The loop thread alone writes to
and reads from the transport, and alone invokes callbacks:

- command callbacks receive the reply (None when the command failed),
- connect/disconnect callbacks receive ``(ok, error)``,
- the subscription sink receives ``(channel, payload)`` for every message.
"""

import asyncio
import concurrent.futures
import threading
from collections import deque
from typing import Any, Callable, Optional

import redis.asyncio
from redis.asyncio.retry import Retry as AsyncRetry
from redis.backoff import NoBackoff
from redis.exceptions import DataError, RedisError

from .config import ConnectionConfig
from .eventloop import EventLoopThread
from .exceptions import (ConnectionError, MiniRedisError, NotConnectedError,
                         ProtocolError)
from .logs import get_logger
from .reply import AsyncRawReplyParser, RawReply
from .router import ACK_FRAMES, FRAME_TYPES, MessageRouter, frame_type
from .state import ConnectionState, ConnectionStateMachine, SubscriptionState

logger = get_logger("PubSub")

# Replies to these arrive as pub/sub ACK frames, not through command callbacks
PUBSUB_VERBS = (b"SUBSCRIBE", b"UNSUBSCRIBE")

ReplyCallback = Callable[[Optional[RawReply]], None]
StatusCallback = Callable[[bool, Optional[MiniRedisError]], None]


def default_transport(config: ConnectionConfig) -> redis.asyncio.Connection:
    """Non-blocking redis-py connection reading replies as RawReply"""
    return redis.asyncio.Connection(
        host=config.host,
        port=config.port,
        socket_connect_timeout=config.timeout or None,
        protocol=2,
        parser_class=AsyncRawReplyParser,
        retry=AsyncRetry(NoBackoff(), 0),
    )


def _verb(arg: Any) -> bytes:
    if isinstance(arg, (bytes, bytearray, memoryview)):
        return bytes(arg).upper()
    return str(arg).encode('utf-8').upper()


def _name(callback) -> str:
    return getattr(callback, '__name__', repr(callback))


class _Session:
    """State of one connect/disconnect cycle, mutated on the loop thread"""

    def __init__(self, runner: EventLoopThread):
        self.runner = runner
        self.transport = None
        self.outbound = asyncio.Queue()
        self.pending = deque()      # callbacks awaiting replies, in send order
        self.acks_pending = 0       # subscribe/unsubscribe ACKs not yet received
        self.tasks = []
        self.closed = False
        self.settled = threading.Event()


class MiniRedisPubSub:
    """
    Asynchronous Redis connection for publishing and subscribing.

    Usage:
        pubsub = MiniRedisPubSub(sink=lambda channel, payload: print(channel, payload))
        pubsub.connect("127.0.0.1", 6379)
        pubsub.subscribe("news")
        ...
        pubsub.disconnect()
    """

    def __init__(self, host: Optional[str] = None, port: Optional[int] = None,
                 sink=None, on_connect: Optional[StatusCallback] = None,
                 on_disconnect: Optional[StatusCallback] = None,
                 decode_responses: Optional[bool] = None, transport_factory=None):
        """
        Initialize without connecting

        Args:
            host: Redis server host, defaults to REDIS_HOST
            port: Redis server port, defaults to REDIS_PORT
            sink: SubscriptionSink or callable(channel, payload) for messages
            on_connect: Called with (ok, error) when a connect attempt completes
            on_disconnect: Called with (ok, error) when a connected session ends
            decode_responses: Deliver str instead of bytes
            transport_factory: Callable building an async transport from a ConnectionConfig
        """
        self.config = ConnectionConfig(host, port, decode_responses=decode_responses)
        self.subscriptions = SubscriptionState()
        self.router = MessageRouter(self.subscriptions, sink, self.config.encoding)
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect
        self._transport_factory = transport_factory or default_transport
        self._state = ConnectionStateMachine(name="pubsub")
        self._lock = threading.Lock()
        self._session: Optional[_Session] = None
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

    def set_subscribe_callback(self, sink):
        """Register the SubscriptionSink or callable(channel, payload) for messages"""
        self.router.set_sink(sink)

    @property
    def state(self) -> ConnectionState:
        return self._state.current

    @property
    def is_connected(self) -> bool:
        return self._state.current is ConnectionState.CONNECTED

    # ==================== LIFECYCLE ====================

    def connect(self, host: Optional[str] = None, port: Optional[int] = None) -> bool:
        """
        Start connecting and return without waiting.

        Any previous session is disconnected first. The outcome is reported
        through ``on_connect`` from the event loop thread.

        Returns:
            False if the event loop thread could not be started
        """
        self.config.update(host=host, port=port)
        self.disconnect()
        self.router.encoding = self.config.encoding

        self._state.transition(ConnectionState.CONNECTING)
        runner = EventLoopThread(name=f"MiniRedis-{self.config.address}")
        try:
            runner.start()
        except ConnectionError as e:
            self._state.transition(ConnectionState.DISCONNECTED)
            self._fail(e)
            return False

        session = _Session(runner)
        with self._lock:
            self._session = session
        try:
            runner.submit(self._open(session))
        except NotConnectedError as e:
            with self._lock:
                self._session = None
            runner.stop()
            self._state.transition(ConnectionState.DISCONNECTED)
            self._fail(e)
            return False

        logger.debug(f"Connecting to Redis at {self.config.address}")
        return True

    def wait_connected(self, timeout: Optional[float] = None) -> bool:
        """Block until the pending connect attempt completes; True if connected"""
        session = self._session
        if session is None:
            return False
        session.settled.wait(timeout)
        return self.is_connected

    def disconnect(self) -> bool:
        """
        Tear down the current session.

        Outstanding command callbacks are called with None, the transport is
        released and the event loop thread is stopped and joined. Safe to call
        when already disconnected.

        Returns:
            False if there was nothing to disconnect
        """
        with self._lock:
            session, self._session = self._session, None
        if session is None:
            return False

        runner = session.runner
        if runner.in_loop_thread():
            # Called from a callback: the loop cannot be joined from inside itself
            runner.loop.create_task(self._close_then_stop(session))
        else:
            try:
                runner.submit(self._close(session)).result(timeout=runner.join_timeout)
            except (concurrent.futures.TimeoutError, concurrent.futures.CancelledError,
                    NotConnectedError) as e:
                logger.warning(f"Graceful close of {self.config.address} did not complete: {e!r}")
            runner.stop()

        was_connected = self._state.current is ConnectionState.CONNECTED
        self._state.transition(ConnectionState.DISCONNECTED)
        self.subscriptions.clear()
        session.settled.set()
        logger.info(f"Redis disconnected from {self.config.address}")
        if was_connected:
            self._notify(self.on_disconnect, True, None)
        return True

    def __enter__(self) -> "MiniRedisPubSub":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()

    # ==================== SUBMISSION ====================

    def publish(self, channel, payload, callback: Optional[ReplyCallback] = None) -> bool:
        """Queue PUBLISH; the optional callback receives the receiver count reply"""
        if not channel or not payload:
            logger.error("Publish requires a channel and a non-empty payload")
            return False
        return self._submit(("PUBLISH", channel, payload), callback)

    def subscribe(self, channel) -> bool:
        """Queue SUBSCRIBE; the channel is recorded when the server ACKs it"""
        if not channel:
            logger.error("Subscribe requires a channel")
            return False
        return self._submit(("SUBSCRIBE", channel), None)

    def unsubscribe(self, channel) -> bool:
        if not channel:
            logger.error("Unsubscribe requires a channel")
            return False
        return self._submit(("UNSUBSCRIBE", channel), None)

    def command(self, *args: Any, callback: Optional[ReplyCallback] = None) -> bool:
        """Queue an arbitrary command; the callback receives its reply"""
        if not args:
            logger.error("Command requires at least a verb")
            return False
        return self._submit(tuple(args), callback)

    def _submit(self, args, callback) -> bool:
        session = self._session
        if session is None or self._state.current is ConnectionState.DISCONNECTED:
            self._fail(NotConnectedError(f"Cannot send {args[0]}: not connected"))
            return False
        try:
            session.runner.call_soon(session.outbound.put_nowait, (args, callback))
        except NotConnectedError as e:
            self._fail(e)
            return False
        return True

    # ==================== EVENT LOOP SIDE ====================

    async def _open(self, session: _Session):
        session.tasks.append(asyncio.current_task())
        try:
            session.transport = self._transport_factory(self.config)
            await session.transport.connect()
        except (RedisError, OSError) as e:
            await self._abort(session, ConnectionError(
                f"Failed to connect to Redis server {self.config.address}: {e}"))
            return
        if session.closed or self._session is not session:
            return

        self._state.transition(ConnectionState.CONNECTED)
        logger.info(f"Redis async connected to {self.config.address}")
        loop = asyncio.get_running_loop()
        session.tasks.append(loop.create_task(self._write_loop(session)))
        session.tasks.append(loop.create_task(self._read_loop(session)))
        session.settled.set()
        self._notify(self.on_connect, True, None)

    async def _write_loop(self, session: _Session):
        """Sole writer: sends queued commands in order"""
        while True:
            args, callback = await session.outbound.get()
            try:
                packed = session.transport.pack_command(*args)
            except DataError as e:
                self._fail(ProtocolError(f"Cannot encode {args[0]}: {e}"))
                self._complete(callback, None)
                continue

            if _verb(args[0]) in PUBSUB_VERBS:
                session.acks_pending += 1
            else:
                session.pending.append(callback)
            try:
                await session.transport.send_packed_command(packed, check_health=False)
            except (RedisError, OSError) as e:
                await self._abort(session, ConnectionError(f"Lost connection while sending {args[0]}: {e}"))
                return
            except Exception as e:
                await self._abort(session, ProtocolError(f"Writer failed while sending {args[0]}: {e!r}"))
                return

    async def _read_loop(self, session: _Session):
        """Sole reader: dispatches every inbound frame"""
        while True:
            try:
                reply = await session.transport.read_response()
            except (RedisError, OSError) as e:
                await self._abort(session, ConnectionError(f"Redis disconnected abnormally: {e}"))
                return
            except Exception as e:
                await self._abort(session, ProtocolError(f"Reader failed: {e!r}"))
                return
            try:
                self._dispatch(session, reply)
            except Exception as e:
                # A session never outlives its reader
                await self._abort(session, ProtocolError(f"Cannot dispatch reply {reply!r}: {e!r}"))
                return

    def _dispatch(self, session: _Session, reply: RawReply):
        kind = frame_type(reply)
        subscribed = session.acks_pending > 0 or len(self.subscriptions) > 0
        if (subscribed and kind in FRAME_TYPES) or not session.pending:
            handled = self.router.route(reply)
            if handled in ACK_FRAMES and session.acks_pending:
                session.acks_pending -= 1
            return

        callback = session.pending.popleft()
        with reply:
            self._complete(callback, reply)

    async def _close(self, session: _Session):
        if not session.closed:
            await self._shutdown(session)

    async def _close_then_stop(self, session: _Session):
        await self._close(session)
        session.runner.stop()

    async def _abort(self, session: _Session, error: MiniRedisError):
        """End a session the transport gave up on, unless disconnect() owns it"""
        # Give up ownership and state together so a concurrent connect starts clean
        with self._lock:
            if self._session is not session:
                return
            self._session = None
            was_connected = self._state.current is ConnectionState.CONNECTED
            self._state.transition(ConnectionState.DISCONNECTED)
            self.subscriptions.clear()

        self._fail(error)
        await self._shutdown(session)
        session.settled.set()
        if was_connected:
            self._notify(self.on_disconnect, False, error)
        else:
            self._notify(self.on_connect, False, error)
        session.runner.stop()

    async def _shutdown(self, session: _Session):
        session.closed = True
        current = asyncio.current_task()
        tasks = [task for task in session.tasks if task is not current and not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._fail_outstanding(session)
        await self._release(session)

    def _fail_outstanding(self, session: _Session):
        callbacks = list(session.pending)
        session.pending.clear()
        session.acks_pending = 0
        while not session.outbound.empty():
            _, callback = session.outbound.get_nowait()
            callbacks.append(callback)
        for callback in callbacks:
            self._complete(callback, None)

    async def _release(self, session: _Session):
        transport, session.transport = session.transport, None
        if transport is None:
            return
        try:
            await transport.disconnect()
        except (RedisError, OSError) as e:
            logger.error(f"Error closing Redis connection: {e}")

    # ==================== CALLBACKS ====================

    def _complete(self, callback: Optional[ReplyCallback], reply: Optional[RawReply]):
        if callback is None:
            return
        try:
            callback(reply)
        except Exception as e:
            logger.error(f"Error in command callback {_name(callback)}: {e}")

    def _notify(self, callback: Optional[StatusCallback], ok: bool, error: Optional[MiniRedisError]):
        if callback is None:
            return
        try:
            callback(ok, error)
        except Exception as e:
            logger.error(f"Error in connection callback {_name(callback)}: {e}")

    def _fail(self, error: MiniRedisError):
        self.last_error = error
        logger.error(str(error))
