"""
Pytest Configuration and Fixtures

Shared fixtures for the client and pub/sub tests. Both clients run against
in-memory transports from tests/fakes.py, or against the same in-memory
server on a loopback socket, so no Redis server is required.
"""

import pytest

from MiniRedis.client import MiniRedisClient
from MiniRedis.pubsub import MiniRedisPubSub
from MiniRedis.state import SubscriptionState
from tests.fakes import FakeBroker, FakeConnectionFactory, FakeRedisServer, LoopbackRedis


# ============================================================================
# Synchronous Client Fixtures
# ============================================================================

@pytest.fixture
def server() -> FakeRedisServer:
    """Empty in-memory server."""
    return FakeRedisServer()


@pytest.fixture
def factory(server) -> FakeConnectionFactory:
    """Connection factory bound to the in-memory server."""
    return FakeConnectionFactory(server)


@pytest.fixture
def client(factory):
    """Connected client returning bytes."""
    client = MiniRedisClient("127.0.0.1", 6379, timeout=1, connection_factory=factory)
    assert client.connect()
    yield client
    client.close()


@pytest.fixture
def text_client(factory):
    """Connected client decoding replies as UTF-8 text."""
    client = MiniRedisClient("127.0.0.1", 6379, timeout=1, decode_responses=True,
                             connection_factory=factory)
    assert client.connect()
    yield client
    client.close()


# ============================================================================
# Pub/Sub Fixtures
# ============================================================================

@pytest.fixture
def broker() -> FakeBroker:
    """Pub/sub broker shared by every async connection of a test."""
    return FakeBroker()


@pytest.fixture
def make_pubsub(broker):
    """Build MiniRedisPubSub instances on the broker; all are disconnected on teardown."""
    created = []

    def _make(**kwargs) -> MiniRedisPubSub:
        pubsub = MiniRedisPubSub("127.0.0.1", 6379, transport_factory=broker.transport_factory, **kwargs)
        created.append(pubsub)
        return pubsub

    yield _make
    for pubsub in created:
        pubsub.disconnect()


@pytest.fixture
def subscriptions() -> SubscriptionState:
    """Empty subscription state."""
    return SubscriptionState()


# ============================================================================
# Socket Fixtures
# ============================================================================

@pytest.fixture
def loopback(server):
    """In-memory server listening on a loopback port for the default transports."""
    redis_server = LoopbackRedis(server)
    redis_server.start()
    yield redis_server
    redis_server.stop()
