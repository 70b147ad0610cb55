"""Various utilities that are needed by the disposer implementation."""

from inspect import isawaitable
from typing import Awaitable, TypeVar, Union, cast

__all__ = ("maybe_await",)

T = TypeVar("T")


async def maybe_await(value: Union[T, Awaitable[T]]) -> T:
    """Awaits the given value if it is awaitable and returns the result;
    returns the value itself otherwise.

    This allows user-supplied callbacks to be either regular functions or
    coroutine functions.
    """
    if isawaitable(value):
        return await cast(Awaitable[T], value)
    else:
        return cast(T, value)
