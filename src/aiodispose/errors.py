from inspect import iscoroutinefunction
from typing import Any

__all__ = ("SynchronousCleanupRequired", "ensure_callable", "ensure_synchronous")


class SynchronousCleanupRequired(TypeError):
    """Error thrown when an asynchronous function is supplied in a place where
    only synchronous cleanup is safe, such as the emergency cleanup that runs
    from a signal handler.
    """

    pass


def ensure_callable(value: Any, name: str) -> None:
    """Ensures that the given value is callable.

    Parameters:
        value: the value to check
        name: the name of the argument that held the value; used in the
            error message

    Raises:
        TypeError: if the value is not callable
    """
    if not callable(value):
        raise TypeError(f"{name} must be callable, got {value!r}")


def ensure_synchronous(value: Any, name: str) -> None:
    """Ensures that the given value is a callable that is not a coroutine
    function.

    Raises:
        TypeError: if the value is not callable
        SynchronousCleanupRequired: if the value is a coroutine function
    """
    ensure_callable(value, name)
    if iscoroutinefunction(value):
        raise SynchronousCleanupRequired(
            f"{name} must be synchronous; it may be invoked from a signal handler"
        )
