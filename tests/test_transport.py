"""
Tests over a real socket

MiniRedisClient and MiniRedisPubSub keep their default redis-py transports
here and speak RESP to the in-memory server on a loopback port, so the
connect handshake and the reply parsers run exactly as against Redis.
"""

import threading

import pytest

from MiniRedis.client import MiniRedisClient
from MiniRedis.decoder import decode
from MiniRedis.pubsub import MiniRedisPubSub
from MiniRedis.reply import ReplyKind
from tests.fakes import wait_for


@pytest.fixture
def socket_client(loopback):
    client = MiniRedisClient("127.0.0.1", loopback.port, timeout=2)
    assert client.connect()
    yield client
    client.close()


def verbs_sent(server):
    return {argv[0].upper() for argv in server.commands}


class TestBlockingTransport:
    """Test the blocking client on redis.Connection."""

    def test_handshake_stays_on_resp2(self, socket_client, server):
        """Test connecting never negotiates RESP3 with HELLO."""
        assert socket_client.ping() == (b"PONG", True)
        assert b"HELLO" not in verbs_sent(server)

    def test_reply_kinds(self, socket_client):
        """Test status, bulk, integer, nil and array replies decode over the wire."""
        assert socket_client.ping("hi") == (b"hi", True)
        assert socket_client.set("k", "v") == (b"OK", True)
        assert socket_client.get("k") == (b"v", True)
        assert socket_client.get("missing") == (b"", False)
        assert socket_client.expire("missing", 10) == (0, True)
        assert socket_client.keys("*") == ([b"k"], True)

    def test_mapping_and_server_error(self, socket_client):
        """Test a hash round trip and an error reply on the same connection."""
        socket_client.hset("h", "f", "v")
        assert socket_client.hgetall("h") == ({b"f": b"v"}, True)
        assert socket_client.get("h") == (b"", False)
        assert "WRONGTYPE" in str(socket_client.last_error)
        assert socket_client.ping() == (b"PONG", True)

    def test_pipeline(self, socket_client):
        """Test pipelined replies come back in order."""
        replies = socket_client.pipeline([("SET", "a", "1"), ("INCR", "a"), ("GET", "a")])
        assert [reply.kind for reply in replies] == [ReplyKind.STATUS, ReplyKind.INTEGER, ReplyKind.BULK]
        assert decode(replies[2], ReplyKind.BULK) == (b"2", True)

    def test_text_client(self, loopback):
        """Test decode_responses over the wire."""
        with MiniRedisClient("127.0.0.1", loopback.port, timeout=2, decode_responses=True) as client:
            assert client.connect()
            client.set("k", "héllo")
            assert client.get("k") == ("héllo", True)


class TestAsyncTransport:
    """Test pub/sub on redis.asyncio.Connection."""

    def test_publish_reaches_subscriber(self, loopback, server):
        """Test a message published on one connection is delivered on another."""
        received = []
        delivered = threading.Event()

        def on_message(channel, payload):
            received.append((channel, payload))
            delivered.set()

        counts = []
        subscriber = MiniRedisPubSub("127.0.0.1", loopback.port, sink=on_message)
        publisher = MiniRedisPubSub("127.0.0.1", loopback.port)
        try:
            assert subscriber.connect() and subscriber.wait_connected(2)
            assert publisher.connect() and publisher.wait_connected(2)
            subscriber.subscribe("ch")
            assert wait_for(lambda: "ch" in subscriber.subscriptions)
            publisher.publish("ch", "hello",
                              callback=lambda reply: counts.append(decode(reply, ReplyKind.INTEGER)))
            assert delivered.wait(2)
            assert received == [(b"ch", b"hello")]
            assert wait_for(lambda: counts == [(1, True)])
            assert b"HELLO" not in verbs_sent(server)
        finally:
            subscriber.disconnect()
            publisher.disconnect()

    def test_command_reply(self, loopback):
        """Test a plain command completes its callback with the parsed reply."""
        replies = []
        pubsub = MiniRedisPubSub("127.0.0.1", loopback.port)
        try:
            assert pubsub.connect() and pubsub.wait_connected(2)
            pubsub.command("PING", "there", callback=lambda reply: replies.append(decode(reply, ReplyKind.BULK)))
            assert wait_for(lambda: replies == [(b"there", True)])
        finally:
            pubsub.disconnect()
