"""
Suspended asynchronous computations that resolve to a ``Result``.

A ``ResultTask`` is a zero-argument coroutine function. Nothing runs until it
is awaited, so the same task can be handed to a ``RetryPolicy`` and invoked
several times.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Tuple, TypeVar

from .errors import ErrorHandler, OperatorError
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

ResultTask = Callable[[], Awaitable[Result]]

_error_handler = ErrorHandler(logger)


def attempt(fn: Callable[[], Awaitable[T]], context: str) -> ResultTask:
    """
    Wrap a raising coroutine function into a ``ResultTask``.

    Args:
        fn: Coroutine function performing the I/O
        context: Description used as the error message prefix

    Returns:
        Task resolving to ``Ok(value)`` or ``Err(OperatorError)``
    """

    async def _run() -> Result:
        try:
            return Ok(await fn())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return Err(_error_handler.to_operator_error(e, context))

    return _run


def succeed(value: Any) -> ResultTask:
    """Task that immediately resolves to ``Ok(value)``."""

    async def _run() -> Result:
        return Ok(value)

    return _run


def fail(error: OperatorError) -> ResultTask:
    """Task that immediately resolves to ``Err(error)``."""

    async def _run() -> Result:
        return Err(error)

    return _run


def map_task(task: ResultTask, fn: Callable[[Any], Any]) -> ResultTask:
    """Apply ``fn`` to the success value of ``task``."""

    async def _run() -> Result:
        result = await task()
        return result.map(fn)

    return _run


def chain_task(task: ResultTask, fn: Callable[[Any], ResultTask]) -> ResultTask:
    """Run ``task`` then the task produced by ``fn`` from its success value."""

    async def _run() -> Result:
        result = await task()
        if isinstance(result, Err):
            return result
        return await fn(result.value)()

    return _run


async def gather(*tasks: ResultTask) -> Result:
    """
    Run tasks concurrently.

    Returns:
        ``Ok(tuple)`` of the values in task order, or the first ``Err``
        in task order.
    """
    results: Tuple[Result, ...] = tuple(await asyncio.gather(*(task() for task in tasks)))
    for result in results:
        if isinstance(result, Err):
            return result
    return Ok(tuple(result.value for result in results))
