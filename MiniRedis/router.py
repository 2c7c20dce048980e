"""
Pub/Sub Message Router

Interprets the array frames arriving on a subscribed connection:

    [b"subscribe",   channel, count]    ACK, channel enters the subscription state
    [b"unsubscribe", channel, count]    ACK, channel leaves the subscription state
    [b"message",     channel, payload]  delivered to the subscription sink

Frames of any other shape are logged and dropped without disturbing the
connection. Routing runs on the event loop thread, so sinks must return
quickly: every channel on the connection waits for them.
"""

from typing import Callable, Optional, Union

from .exceptions import ProtocolError
from .logs import get_logger
from .reply import RawReply, ReplyKind
from .state import SubscriptionState

logger = get_logger("Router")

FRAME_SUBSCRIBE = "subscribe"
FRAME_UNSUBSCRIBE = "unsubscribe"
FRAME_MESSAGE = "message"
ACK_FRAMES = (FRAME_SUBSCRIBE, FRAME_UNSUBSCRIBE)
FRAME_TYPES = ACK_FRAMES + (FRAME_MESSAGE,)

Text = Union[str, bytes]


class SubscriptionSink:
    """Receives messages published on subscribed channels"""

    def on_message(self, channel: Text, payload: Text):
        raise NotImplementedError


class CallbackSink(SubscriptionSink):
    """Adapts a plain ``callback(channel, payload)`` function"""

    def __init__(self, callback: Callable[[Text, Text], None]):
        self.callback = callback

    def on_message(self, channel: Text, payload: Text):
        self.callback(channel, payload)

    def __repr__(self):
        return f"CallbackSink({getattr(self.callback, '__name__', self.callback)!r})"


def as_sink(target) -> Optional[SubscriptionSink]:
    """Accept a sink, anything with on_message, or a plain callable"""
    if target is None or hasattr(target, "on_message"):
        return target
    if callable(target):
        return CallbackSink(target)
    raise TypeError(f"Subscription sink must be callable or provide on_message, got {target!r}")


def frame_type(frame: RawReply) -> Optional[str]:
    """Lower-case type of a 3-element pub/sub frame, None for any other reply"""
    if frame.kind is not ReplyKind.ARRAY or len(frame.elements) != 3:
        return None
    head = frame.elements[0]
    if head.kind not in (ReplyKind.BULK, ReplyKind.STATUS):
        return None
    return head.value.decode('ascii', errors='replace').lower()


class MessageRouter:
    """Routes pub/sub frames to the subscription state or to the sink"""

    def __init__(self, subscriptions: SubscriptionState, sink=None, encoding: Optional[str] = None):
        self.subscriptions = subscriptions
        self.sink = as_sink(sink)
        self.encoding = encoding
        self.delivered = 0
        self.dropped = 0

    def set_sink(self, sink):
        self.sink = as_sink(sink)

    def route(self, frame: RawReply) -> Optional[str]:
        """
        Handle one inbound frame and release it.

        Returns:
            The frame type that was handled, or None if the frame was dropped
        """
        try:
            with frame:
                return self._route(frame)
        except ProtocolError as e:
            self.dropped += 1
            logger.error(f"Dropping pub/sub frame: {e}")
            return None

    def _route(self, frame: RawReply) -> str:
        if frame.kind is not ReplyKind.ARRAY:
            raise ProtocolError(f"Expecting array while receiving {frame.kind.value}")
        if len(frame.elements) != 3:
            raise ProtocolError(f"Expecting 3 elements in array while receiving {len(frame.elements)}")

        kind = frame_type(frame)
        if kind is None:
            raise ProtocolError(f"Frame type must be a string, got {frame.elements[0].kind.value}")
        channel = frame.elements[1]

        if kind in ACK_FRAMES:
            # Unsubscribing with nothing subscribed acknowledges a nil channel
            if channel.kind is ReplyKind.NIL:
                logger.debug(f"{kind.capitalize()} ACK without channel")
                return kind
            name = self._text(channel, "channel")
            if kind == FRAME_SUBSCRIBE:
                self.subscriptions.add(channel.value)
            else:
                self.subscriptions.discard(channel.value)
            logger.debug(f"{kind.capitalize()} ACK for {name!r}")
            return kind

        name = self._text(channel, "channel")
        payload = self._text(frame.elements[2], "payload")
        self.delivered += 1
        if self.sink is None:
            logger.info(f"Subscribe channel: {name!r}, content: {payload!r}")
            return kind
        try:
            self.sink.on_message(name, payload)
        except Exception as e:
            logger.error(f"Error in subscription callback {self.sink!r}: {e}")
        return kind

    def _text(self, element: RawReply, what: str) -> Text:
        if element.kind not in (ReplyKind.BULK, ReplyKind.STATUS):
            raise ProtocolError(f"Expecting string {what}, got {element.kind.value}")
        if not self.encoding:
            return element.value
        try:
            return element.value.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise ProtocolError(f"{what} is not valid {self.encoding}: {e}")
