"""
MiniRedis - Small Redis client library

A synchronous command client with typed reply decoding, and an asynchronous
publish/subscribe connection driven by a background event loop thread.

Key Features:
- Typed command wrappers returning (value, ok) instead of raising
- Status, bulk, integer, array, nil and error replies kept distinct
- Pub/sub messages dispatched to a subscription sink on the loop thread
- Thread-safe submission from any thread

Usage:
    from MiniRedis import MiniRedisClient, MiniRedisPubSub

    client = MiniRedisClient()
    client.connect("127.0.0.1", 6379)
    client.set("key", "value")
    value, ok = client.get("key")

    sub = MiniRedisPubSub(sink=lambda channel, payload: print(channel, payload))
    sub.connect()
    sub.subscribe("news")
"""

from .client import MiniRedisClient
from .pubsub import MiniRedisPubSub
from .reply import RawReply, ReplyKind
from .decoder import decode, decode_mapping
from .router import SubscriptionSink
from .state import ConnectionState
from .exceptions import (MiniRedisError, ConnectionError, TimeoutError, ProtocolError,
                         NotConnectedError, ValidationError, InvalidStateTransitionError)
from . import config

__version__ = "1.0.0"
__all__ = ["MiniRedisClient", "MiniRedisPubSub", "RawReply", "ReplyKind", "decode", "decode_mapping",
           "SubscriptionSink", "ConnectionState", "config", "MiniRedisError", "ConnectionError",
           "TimeoutError", "ProtocolError", "NotConnectedError", "ValidationError",
           "InvalidStateTransitionError"]
