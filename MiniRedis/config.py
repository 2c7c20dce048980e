"""
MiniRedis Configuration

Connection defaults with environment variable overrides, and the per
connection settings object used by both clients.
"""

import os
from typing import Optional

from .exceptions import ValidationError

# Server defaults
DEFAULT_HOST = os.getenv('REDIS_HOST', '127.0.0.1')
DEFAULT_PORT = int(os.getenv('REDIS_PORT', '6379'))
DEFAULT_TIMEOUT = float(os.getenv('REDIS_TIMEOUT', '3'))
DECODE_RESPONSES = os.getenv('REDIS_DECODE_RESPONSES', '0').lower() in ('1', 'true', 'yes')

# Seconds to wait for the event loop thread when stopping it
JOIN_TIMEOUT = float(os.getenv('MINIREDIS_JOIN_TIMEOUT', '2'))

LOG_LEVEL = os.getenv('MINIREDIS_LOG_LEVEL', 'INFO')

# Text encoding used when decode_responses is enabled
ENCODING = 'utf-8'


class ConnectionConfig:
    """
    Host, port and timeout of one connection.

    Values may be changed at any time; they take effect on the next connect.
    The timeout only applies to the synchronous client.
    """

    def __init__(self, host: Optional[str] = None, port: Optional[int] = None,
                 timeout: Optional[float] = None, decode_responses: Optional[bool] = None):
        self.host = host or DEFAULT_HOST
        self.port = port or DEFAULT_PORT
        self.timeout = DEFAULT_TIMEOUT if timeout is None else timeout
        self.decode_responses = DECODE_RESPONSES if decode_responses is None else decode_responses

    @property
    def host(self) -> str:
        return self._host

    @host.setter
    def host(self, value: str):
        if not value or not isinstance(value, str):
            raise ValidationError("host must be a non-empty string")
        self._host = value

    @property
    def port(self) -> int:
        return self._port

    @port.setter
    def port(self, value: int):
        if isinstance(value, bool) or not isinstance(value, int) or not 0 < value < 65536:
            raise ValidationError(f"port must be an integer in 1..65535, got {value!r}")
        self._port = value

    @property
    def timeout(self) -> float:
        return self._timeout

    @timeout.setter
    def timeout(self, value: float):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ValidationError(f"timeout must be a non-negative number, got {value!r}")
        self._timeout = value

    @property
    def encoding(self) -> Optional[str]:
        """Encoding applied to decoded strings, None for raw bytes"""
        return ENCODING if self.decode_responses else None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def update(self, host: Optional[str] = None, port: Optional[int] = None,
               timeout: Optional[float] = None):
        """Apply the values that were supplied, keep the others"""
        if host is not None:
            self.host = host
        if port is not None:
            self.port = port
        if timeout is not None:
            self.timeout = timeout

    def __repr__(self):
        return f"ConnectionConfig(host={self.host!r}, port={self.port}, timeout={self.timeout})"
