"""Fire-and-forget dispatch of sync attempts.

Trigger sites (clock construction, the suppression setter, network
changes) are synchronous and must not wait for the network.  They hand
a coroutine *factory* to a dispatcher, which starts it in the
background and returns immediately.  Completion is observable only
through clock state and the synchronisation event.

:class:`BackgroundDispatcher` picks the execution context at call time:

- inside a running event loop → ``loop.create_task``; a strong
  reference is kept until the task finishes so it is not
  garbage-collected mid-flight;
- otherwise → ``asyncio.run`` on a daemon thread.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)

AttemptFactory = Callable[[], Coroutine[Any, Any, None]]
"""Zero-argument callable returning the coroutine to run."""

Dispatcher = Callable[[AttemptFactory], None]
"""Anything that starts an :data:`AttemptFactory` without blocking."""


class BackgroundDispatcher:
    """Default :data:`Dispatcher` for production use."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()
        self._threads: set[threading.Thread] = set()
        self._lock = threading.Lock()

    def __call__(self, factory: AttemptFactory) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._start_thread(factory)
            return
        task = loop.create_task(factory())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        """Number of dispatched attempts that have not finished."""
        with self._lock:
            threads = sum(1 for t in self._threads if t.is_alive())
        return len(self._tasks) + threads

    async def drain(self) -> None:
        """Wait for every task dispatched on the current loop."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def join(self, timeout: float | None = None) -> None:
        """Wait for background threads started outside an event loop."""
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)

    def _start_thread(self, factory: AttemptFactory) -> None:
        thread = threading.Thread(
            target=self._run_in_thread,
            args=(factory,),
            name="millitime-sync",
            daemon=True,
        )
        with self._lock:
            self._threads.add(thread)
        thread.start()

    def _run_in_thread(self, factory: AttemptFactory) -> None:
        try:
            asyncio.run(factory())
        except Exception:
            logger.exception("Background sync attempt crashed")
        finally:
            with self._lock:
                self._threads.discard(threading.current_thread())
