"""Promise-style combinators over awaitables.

Each helper schedules a task on the running event loop and returns it, so the
result can be awaited or chained further. Handlers may be plain callables or
coroutine functions.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional


async def _settle(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _then(awaitable: Awaitable, on_fulfilled: Optional[Callable], on_rejected: Optional[Callable]) -> Any:
    try:
        result = await awaitable
    except Exception as error:
        if on_rejected is None:
            raise
        return await _settle(on_rejected(error))
    if on_fulfilled is None:
        return result
    return await _settle(on_fulfilled(result))


async def _finally(awaitable: Awaitable, on_finally: Optional[Callable]) -> Any:
    try:
        return await awaitable
    finally:
        if on_finally is not None:
            await _settle(on_finally())


def then(awaitable: Awaitable, on_fulfilled: Optional[Callable] = None, on_rejected: Optional[Callable] = None) -> asyncio.Task:
    """Resolve with ``on_fulfilled(result)``, or ``on_rejected(error)`` on failure."""
    return asyncio.get_running_loop().create_task(_then(awaitable, on_fulfilled, on_rejected))


def catch(awaitable: Awaitable, on_rejected: Optional[Callable] = None) -> asyncio.Task:
    """Resolve with the result, or with ``on_rejected(error)`` on failure."""
    return then(awaitable, None, on_rejected)


def finally_(awaitable: Awaitable, on_finally: Optional[Callable] = None) -> asyncio.Task:
    """Run ``on_finally()`` once settled, then pass the original outcome through."""
    return asyncio.get_running_loop().create_task(_finally(awaitable, on_finally))
