"""Helpers for calling user functions that may be sync or async."""

import inspect
from collections.abc import Callable
from typing import Any


async def maybe_await(value: Any) -> Any:
    """Await value if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


async def call(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Call fn and await the result when fn is a coroutine function."""
    return await maybe_await(fn(*args, **kwargs))
