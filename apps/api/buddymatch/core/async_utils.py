"""Bridge from sync endpoints and the CLI into async provider code."""

from __future__ import annotations

import asyncio
from typing import Coroutine, TypeVar

import anyio

T = TypeVar("T")


def _in_event_loop_thread() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def run_async(coro: Coroutine[object, object, T], *, timeout: float | None = None) -> T:
    """Run ``coro`` to completion from synchronous code and return its result.

    Sync FastAPI endpoints execute in AnyIO worker threads, so the coroutine is
    handed back to the server's event loop. The CLI and sync tests have no loop
    and get a private one through ``anyio.run``. ``timeout`` bounds the await
    and surfaces as TimeoutError.
    """
    if _in_event_loop_thread():
        coro.close()
        raise RuntimeError("run_async called from async context; use await instead")

    started = False

    async def bounded() -> T:
        nonlocal started
        started = True
        if timeout is None:
            return await coro
        with anyio.fail_after(timeout):
            return await coro

    try:
        return anyio.from_thread.run(bounded)
    except RuntimeError:
        # Raised by the coroutine itself, not by a missing worker thread.
        if started:
            raise
    return anyio.run(bounded)
