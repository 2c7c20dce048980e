"""
Event Loop Runner

One asyncio event loop driven by one dedicated daemon thread. The thread only
runs the loop; when the loop is stopped it cancels leftover tasks, closes the
loop and exits. ``stop`` signals the loop and joins the thread, so shutdown is
deterministic.
"""

import asyncio
import concurrent.futures
import threading
from typing import Any, Callable, Coroutine, Optional

from . import config
from .exceptions import ConnectionError, NotConnectedError
from .logs import get_logger

logger = get_logger("EventLoop")


class EventLoopThread:
    """Owns an asyncio loop and the thread pumping it"""

    def __init__(self, name: str = "MiniRedis-loop", join_timeout: Optional[float] = None):
        self.name = name
        self.join_timeout = config.JOIN_TIMEOUT if join_timeout is None else join_timeout
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def in_loop_thread(self) -> bool:
        thread = self._thread
        return thread is not None and thread is threading.current_thread()

    def start(self) -> asyncio.AbstractEventLoop:
        """
        Create the loop and spawn its thread; reuses a running loop.

        Raises:
            ConnectionError: If the thread cannot be started
        """
        with self._lock:
            if self.is_running:
                return self._loop
            loop = asyncio.new_event_loop()
            thread = threading.Thread(target=self._run, args=(loop,), daemon=True, name=self.name)
            try:
                thread.start()
            except RuntimeError as e:
                loop.close()
                raise ConnectionError(f"Cannot start event loop thread: {e}") from e
            self._loop, self._thread = loop, thread
            logger.debug(f"Event loop thread {self.name} started")
            return loop

    def _run(self, loop: asyncio.AbstractEventLoop):
        """Background worker: run the loop until stopped, then release it"""
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            logger.debug(f"Event loop thread {self.name} ended")

    def submit(self, coro: Coroutine) -> concurrent.futures.Future:
        """
        Schedule a coroutine on the loop from any thread.

        Raises:
            NotConnectedError: If the loop is not running
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            coro.close()
            raise NotConnectedError("Event loop is not running")
        try:
            return asyncio.run_coroutine_threadsafe(coro, loop)
        except RuntimeError as e:
            coro.close()
            raise NotConnectedError(f"Event loop is not running: {e}") from e

    def call_soon(self, callback: Callable[..., Any], *args: Any):
        """
        Hand a callback to the loop thread from any thread.

        Raises:
            NotConnectedError: If the loop is not running
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            raise NotConnectedError("Event loop is not running")
        try:
            loop.call_soon_threadsafe(callback, *args)
        except RuntimeError as e:
            raise NotConnectedError(f"Event loop is not running: {e}") from e

    def stop(self) -> bool:
        """
        Signal the loop to break, then wait for its thread to release it.

        Idempotent. When called from the loop thread itself the loop is only
        signalled; the thread closes it once the current callback returns.

        Returns:
            False if nothing was running
        """
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
        if loop is None:
            return False

        try:
            loop.call_soon_threadsafe(loop.stop)
        except RuntimeError:
            # Loop already closed by its thread
            pass

        if thread is not threading.current_thread():
            thread.join(self.join_timeout)
            if thread.is_alive():
                logger.warning(f"Event loop thread {self.name} did not shutdown cleanly")
        return True
