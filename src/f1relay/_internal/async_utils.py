"""Asyncio utilities."""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run an async coroutine from synchronous (Click) code.

    Uses :class:`asyncio.Runner`, which turns Ctrl-C into cancellation of
    *coro* so its ``finally`` blocks run before ``KeyboardInterrupt`` is
    re-raised.  When a loop is already running in this thread (tests), the
    coroutine runs on a fresh loop in a worker thread.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        import concurrent.futures

        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()

    with asyncio.Runner() as runner:
        return runner.run(coro)
