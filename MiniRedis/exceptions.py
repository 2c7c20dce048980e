"""
MiniRedis Exceptions - Simple and essential error handling

The runtime kinds (ConnectionError, TimeoutError, ProtocolError,
NotConnectedError) are raised inside the library and recovered at the public
API, where they become a failed result and ``last_error``.
"""


class MiniRedisError(Exception):
    """Base exception for MiniRedis errors."""
    pass


class ConnectionError(MiniRedisError):
    """Redis connection could not be established or was lost."""
    pass


class TimeoutError(MiniRedisError):
    """Synchronous call exceeded the configured timeout."""
    pass


class ProtocolError(MiniRedisError):
    """Reply kind mismatch, malformed frame or odd-length mapping."""
    pass


class NotConnectedError(MiniRedisError):
    """Command submitted while no connection is held."""
    pass


class ValidationError(MiniRedisError):
    """Configuration value validation failed."""
    pass


class InvalidStateTransitionError(MiniRedisError):
    """Invalid connection state transition attempted."""
    pass
