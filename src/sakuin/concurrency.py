"""Fail-fast fan-out over sibling coroutines."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any


def _first_leaf(group: BaseExceptionGroup[Any]) -> BaseException:
    first = group.exceptions[0]
    if isinstance(first, BaseExceptionGroup):
        return _first_leaf(first)
    return first


async def gather_first_error(*coros: Coroutine[Any, Any, Any]) -> list[Any]:
    """Run coroutines as sibling tasks and join them with a fail-fast barrier.

    The first task to fail cancels its siblings and that first error is
    raised as-is (not wrapped in an ExceptionGroup). If every task succeeds
    the results are returned in argument order. Cancelling the caller
    cancels every task.
    """
    first_error: BaseException | None = None
    tasks: list[asyncio.Task[Any]] = []

    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except BaseExceptionGroup as eg:
        first_error = _first_leaf(eg)

    if first_error is not None:
        raise first_error

    return [task.result() for task in tasks]
