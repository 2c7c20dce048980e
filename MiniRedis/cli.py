#!/usr/bin/env python3
"""
MiniRedis smoke-test utility

Runs a command sequence against a live server, or listens / publishes on
pub/sub channels.

Usage:
    python -m MiniRedis client
    python -m MiniRedis subscribe channel1 channel2 --duration 60
    python -m MiniRedis publish channelFromPython "Content" --count 60
"""

import argparse
import sys
import time

from . import config
from .client import MiniRedisClient
from .logs import setup_logging
from .pubsub import MiniRedisPubSub


def run_client(args) -> int:
    """Exercise the typed wrappers the way an application would"""
    client = MiniRedisClient(args.host, args.port, args.timeout, decode_responses=True)
    if not client.connect():
        print(f"✗ Cannot connect to {client.config.address}: {client.last_error}")
        return 1

    # (wrapper, arguments, expected ok)
    steps = [
        ("client_setname", ("MiniRedisPython",), True),
        ("client_getname", (), True),
        ("ping", (), True),
        ("ping", ("Hello Redis",), True),
        ("set", ("key 1", "value 1", 3600), True),
        ("set", ("key 2", 1001), True),
        ("get", ("key 1",), True),
        ("get", ("invalid",), False),
        ("expire", ("key 2", 60), True),
        ("ttl", ("key 2",), True),
        ("append", ("key 2", "2345678"), True),
        ("strlen", ("key 2",), True),
        ("hset", ("domains", "example", "example.com"), True),
        ("hset", ("domains", "abc", "abc.com"), True),
        ("hgetall", ("domains",), True),
        ("hkeys", ("domains",), True),
        ("type", ("domains",), True),
        ("incr", ("counter",), True),
        ("lpush", ("List123", "item 1"), True),
        ("lpush", ("List123", "item 2"), True),
        ("lindex", ("List123", -1), True),
        ("sadd", ("set123", "ele 1"), True),
        ("smembers", ("set123",), True),
        ("delete", ("key 1", "key 2", "domains", "counter", "List123", "set123"), True),
    ]
    failures = 0
    with client:
        for name, call_args, expected in steps:
            value, ok = getattr(client, name)(*call_args)
            mark = "✓" if ok else "✗"
            note = ""
            if ok != expected:
                failures += 1
                note = "  (unexpected)"
            elif not ok:
                note = "  (expected miss)"
            print(f"  {mark} {name}{call_args!r} -> {value!r}{note}")
    print(f"\n{len(steps) - failures}/{len(steps)} commands behaved as expected")
    return 0 if failures == 0 else 1


def run_subscribe(args) -> int:
    def on_message(channel, payload):
        print(f"Subscriber CB receives channel: {channel}, data: {payload}")

    sub = MiniRedisPubSub(args.host, args.port, sink=on_message, decode_responses=True)
    if not sub.connect():
        return 1
    with sub:
        if not sub.wait_connected(args.timeout):
            print(f"✗ Cannot connect to {sub.config.address}: {sub.last_error}")
            return 1
        for channel in args.channels:
            sub.subscribe(channel)
        time.sleep(args.duration)
    print("Subscribing done")
    return 0


def run_publish(args) -> int:
    pub = MiniRedisPubSub(args.host, args.port)
    if not pub.connect():
        return 1
    with pub:
        if not pub.wait_connected(args.timeout):
            print(f"✗ Cannot connect to {pub.config.address}: {pub.last_error}")
            return 1
        for _ in range(args.count):
            pub.publish(args.channel, args.content)
            time.sleep(args.interval)
    print("Publishing done")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="miniredis", description="MiniRedis smoke-test utility")
    parser.add_argument("--host", default=config.DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=config.DEFAULT_PORT)
    parser.add_argument("--timeout", type=float, default=config.DEFAULT_TIMEOUT)
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    sub = parser.add_subparsers(dest="mode", required=True)

    sub.add_parser("client", help="run a command sequence").set_defaults(func=run_client)

    listen = sub.add_parser("subscribe", help="print messages from channels")
    listen.add_argument("channels", nargs="+")
    listen.add_argument("--duration", type=float, default=60)
    listen.set_defaults(func=run_subscribe)

    send = sub.add_parser("publish", help="publish a message periodically")
    send.add_argument("channel")
    send.add_argument("content")
    send.add_argument("--count", type=int, default=60)
    send.add_argument("--interval", type=float, default=1.0)
    send.set_defaults(func=run_publish)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
