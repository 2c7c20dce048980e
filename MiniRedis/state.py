"""MiniRedis State Management - Thread-safe connection and subscription state"""

import threading
from collections import deque
from enum import Enum
from typing import FrozenSet, List, Optional, Union

from .exceptions import InvalidStateTransitionError
from .logs import get_logger

logger = get_logger("StateManager")


class ConnectionState(Enum):
    """Lifecycle of an asynchronous connection"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"    # Connect requested, completion not yet reported
    CONNECTED = "connected"


VALID_TRANSITIONS = {
    ConnectionState.DISCONNECTED: [ConnectionState.CONNECTING],
    ConnectionState.CONNECTING: [ConnectionState.CONNECTED, ConnectionState.DISCONNECTED],
    ConnectionState.CONNECTED: [ConnectionState.DISCONNECTED],
}


class ConnectionStateMachine:
    """Thread-safe holder of the current ConnectionState"""

    def __init__(self, name: str = "connection", max_history: int = 1000):
        self.name = name
        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._history: deque = deque([self._state], maxlen=max_history)

    @property
    def current(self) -> ConnectionState:
        with self._lock:
            return self._state

    def transition(self, state: ConnectionState) -> ConnectionState:
        """
        Move to a new state.

        Re-entering the current state is accepted and leaves it unchanged.

        Returns:
            The previous state

        Raises:
            InvalidStateTransitionError: If the table forbids the transition
        """
        with self._lock:
            previous = self._state
            if previous == state:
                return previous
            if state not in VALID_TRANSITIONS.get(previous, []):
                raise InvalidStateTransitionError(
                    f"Invalid state transition from {previous.value} to {state.value} "
                    f"on {self.name}"
                )
            self._state = state
            self._history.append(state)
        logger.debug(f"State transition: {previous.value} -> {state.value} ({self.name})")
        return previous

    def history(self, limit: Optional[int] = None) -> List[ConnectionState]:
        with self._lock:
            history = list(self._history)
            return history[-limit:] if limit else history


Channel = Union[str, bytes]


def _channel_key(channel: Channel) -> bytes:
    if isinstance(channel, str):
        return channel.encode('utf-8')
    return bytes(channel)


class SubscriptionState:
    """
    Channels currently subscribed on one connection.

    Written by the event loop thread when ACK frames arrive, read from any
    thread. Channel names are kept as bytes; lookups accept str or bytes.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._channels = set()

    def add(self, channel: Channel):
        with self._lock:
            self._channels.add(_channel_key(channel))

    def discard(self, channel: Channel):
        with self._lock:
            self._channels.discard(_channel_key(channel))

    def clear(self):
        with self._lock:
            self._channels.clear()

    def channels(self) -> FrozenSet[bytes]:
        with self._lock:
            return frozenset(self._channels)

    def __contains__(self, channel: Channel) -> bool:
        with self._lock:
            return _channel_key(channel) in self._channels

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def __repr__(self):
        return f"SubscriptionState({sorted(self.channels())!r})"
