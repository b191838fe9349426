"""Bridge from synchronous callers (Celery tasks, the CLI) into async code."""

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")

_worker_loop: asyncio.AbstractEventLoop | None = None


def _loop() -> asyncio.AbstractEventLoop:
    global _worker_loop
    if _worker_loop is None or _worker_loop.is_closed():
        _worker_loop = asyncio.new_event_loop()
    return _worker_loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` to completion on this process's long-lived loop.

    The loop is never closed between calls: httpx clients and SDKs keep
    state bound to the loop they were first used on.

    Raises:
        RuntimeError: If called while an event loop is already running in
            this thread; use ``await`` there instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return _loop().run_until_complete(coro)
    coro.close()
    raise RuntimeError("run_async() cannot be called from a running event loop")
