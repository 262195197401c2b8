"""
Bridge from dramatiq actors to async services.

Actors are synchronous and run on worker threads. Each thread gets one event
loop for its whole life: asyncpg connections and Redis clients are bound to
the loop that created them, so a fresh loop per message would break them.
"""

import asyncio
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

from loguru import logger

T = TypeVar("T")

_loops = threading.local()


def _thread_loop() -> asyncio.AbstractEventLoop:
    loop = getattr(_loops, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _loops.loop = loop
        logger.debug(f"Event loop created for worker thread {threading.current_thread().name}")
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run a task coroutine to completion on this thread's loop.

    Exceptions are logged with the coroutine name and re-raised so dramatiq
    can apply the actor's retry policy.
    """
    name = getattr(coro, "__qualname__", repr(coro))
    try:
        return _thread_loop().run_until_complete(coro)
    except Exception:
        logger.exception(f"Task coroutine {name} failed")
        raise
