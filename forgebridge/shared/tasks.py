"""Concurrent sub-fetches that fail as a unit.

A failing request cancels its siblings and the caller sees that request's
own exception rather than an ExceptionGroup.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any


def _first_error(group: BaseExceptionGroup) -> BaseException:
    error: BaseException = group
    while isinstance(error, BaseExceptionGroup):
        error = error.exceptions[0]
    return error


async def gather_all(*coros: Coroutine[Any, Any, Any]) -> list[Any]:
    """Run coroutines concurrently, cancelling the rest when one fails.

    Returns:
        Results in argument order
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except ExceptionGroup as eg:
        raise _first_error(eg) from None
    return [task.result() for task in tasks]


async def gather_fields(**coros: Coroutine[Any, Any, Any]) -> dict[str, Any]:
    """Run independent requests concurrently and key results by field name.

    Example:
        >>> results = await gather_fields(pr=get_pr(), files=get_files())
        >>> results["files"]
    """
    values = await gather_all(*coros.values())
    return dict(zip(coros.keys(), values, strict=True))
