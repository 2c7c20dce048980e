"""
Tests for connection state, subscription state, configuration and logging
"""

import logging
import threading

import pytest

from MiniRedis import logs
from MiniRedis.config import ConnectionConfig
from MiniRedis.exceptions import InvalidStateTransitionError, ValidationError
from MiniRedis.state import ConnectionState, ConnectionStateMachine, SubscriptionState


class TestConnectionStateMachine:
    """Test the connection lifecycle table."""

    def test_initial_state(self):
        """Test a new machine is disconnected."""
        assert ConnectionStateMachine().current is ConnectionState.DISCONNECTED

    def test_full_cycle(self):
        """Test connecting, connected, disconnected and connecting again."""
        machine = ConnectionStateMachine()
        assert machine.transition(ConnectionState.CONNECTING) is ConnectionState.DISCONNECTED
        machine.transition(ConnectionState.CONNECTED)
        machine.transition(ConnectionState.DISCONNECTED)
        machine.transition(ConnectionState.CONNECTING)
        assert machine.history() == [
            ConnectionState.DISCONNECTED, ConnectionState.CONNECTING, ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTED, ConnectionState.CONNECTING]
        assert machine.history(limit=2) == [ConnectionState.DISCONNECTED, ConnectionState.CONNECTING]

    def test_failed_connect(self):
        """Test connecting may fall back to disconnected."""
        machine = ConnectionStateMachine()
        machine.transition(ConnectionState.CONNECTING)
        machine.transition(ConnectionState.DISCONNECTED)
        assert machine.current is ConnectionState.DISCONNECTED

    def test_same_state_accepted(self):
        """Test re-entering the current state is a no-op."""
        machine = ConnectionStateMachine()
        machine.transition(ConnectionState.DISCONNECTED)
        assert machine.history() == [ConnectionState.DISCONNECTED]

    def test_invalid_transition(self):
        """Test skipping CONNECTING is rejected."""
        machine = ConnectionStateMachine()
        with pytest.raises(InvalidStateTransitionError):
            machine.transition(ConnectionState.CONNECTED)
        assert machine.current is ConnectionState.DISCONNECTED

    def test_history_is_bounded(self):
        """Test only the most recent max_history states are kept across many reconnects."""
        machine = ConnectionStateMachine(max_history=5)
        for _ in range(100):
            machine.transition(ConnectionState.CONNECTING)
            machine.transition(ConnectionState.CONNECTED)
            machine.transition(ConnectionState.DISCONNECTED)
        assert machine.history() == [
            ConnectionState.CONNECTED, ConnectionState.DISCONNECTED, ConnectionState.CONNECTING,
            ConnectionState.CONNECTED, ConnectionState.DISCONNECTED]
        assert machine.current is ConnectionState.DISCONNECTED


class TestSubscriptionState:
    """Test the channel set."""

    def test_add_and_discard(self, subscriptions):
        """Test str and bytes name the same channel."""
        subscriptions.add("news")
        assert b"news" in subscriptions
        assert "news" in subscriptions
        subscriptions.discard(b"news")
        assert "news" not in subscriptions

    def test_discard_unknown(self, subscriptions):
        """Test discarding an unknown channel is safe."""
        subscriptions.discard("missing")
        assert len(subscriptions) == 0

    def test_channels_snapshot(self, subscriptions):
        """Test channels returns an immutable snapshot."""
        subscriptions.add("a")
        snapshot = subscriptions.channels()
        subscriptions.add("b")
        assert snapshot == frozenset({b"a"})
        subscriptions.clear()
        assert len(subscriptions) == 0

    def test_concurrent_updates(self):
        """Test updates from several threads are not lost."""
        state = SubscriptionState()

        def worker(prefix):
            for i in range(200):
                state.add(f"{prefix}:{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(state) == 800


class TestConnectionConfig:
    """Test configuration validation."""

    def test_values(self):
        """Test explicit values and the derived address."""
        config = ConnectionConfig("redis.local", 6380, 1.5)
        assert config.address == "redis.local:6380"
        assert config.timeout == 1.5
        assert config.encoding is None

    def test_decode_responses(self):
        """Test the encoding follows decode_responses."""
        assert ConnectionConfig(decode_responses=True).encoding == "utf-8"

    @pytest.mark.parametrize("port", [0, 65536, -1, "6379", True])
    def test_invalid_port(self, port):
        """Test out of range or non-integer ports are rejected."""
        config = ConnectionConfig()
        with pytest.raises(ValidationError):
            config.port = port

    def test_invalid_timeout(self):
        """Test negative timeouts are rejected."""
        with pytest.raises(ValidationError):
            ConnectionConfig(timeout=-1)

    def test_invalid_host(self):
        """Test the host must be a non-empty string."""
        config = ConnectionConfig()
        with pytest.raises(ValidationError):
            config.host = ""

    def test_update_keeps_unset_values(self):
        """Test update only changes supplied values."""
        config = ConnectionConfig("a", 1, 2)
        config.update(port=2)
        assert (config.host, config.port, config.timeout) == ("a", 2, 2)


class TestLogging:
    """Test logger setup."""

    def test_logger_hierarchy(self):
        """Test module loggers live under the package logger."""
        assert logs.get_logger("Client").name == "MiniRedis.Client"

    def test_setup_is_idempotent(self):
        """Test calling setup twice installs one handler."""
        logger = logs.get_logger()
        saved = list(logger.handlers), logger.level, logger.propagate
        logger.handlers.clear()
        try:
            logs.setup_logging("DEBUG")
            logs.setup_logging("WARNING")
            assert len(logger.handlers) == 1
            assert logger.level == logging.WARNING
        finally:
            logger.handlers[:] = saved[0]
            logger.setLevel(saved[1])
            logger.propagate = saved[2]
