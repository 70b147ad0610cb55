"""Disposers that wrap the usage of a resource and guarantee that the
resource is cleaned up exactly once, even if the process is terminated while
the resource is in use.
"""

from anyio import CancelScope
from contextlib import asynccontextmanager
from functools import partial
from logging import getLogger
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Generic,
    Optional,
    TypeVar,
    Union,
)

from .errors import ensure_callable, ensure_synchronous
from .registry import ExitRegistry, RegistrationToken, exit_registry
from .signals import install_exit_hooks
from .utils import maybe_await

__all__ = ("Disposer", "create_disposer")

log = getLogger(__name__)

R = TypeVar("R")
T = TypeVar("T")

#: Type specification for the cleanup function used on the normal path
DisposeFunction = Callable[[R], Union[Awaitable[Any], Any]]

#: Type specification for the cleanup function used when the process exits
DisposeOnExitFunction = Callable[[R], Any]

#: Type specification for functions that make use of a resource
UseFunction = Callable[[R], Union[Awaitable[T], T]]


class Disposer(Generic[R]):
    """Object that wraps the usage of resources identified by references of
    type R and that ensures that each resource is disposed of when it is not
    used any more.

    A disposer is configured with two cleanup functions. ``dispose`` is the
    normal cleanup path; it is invoked with the reference when the usage of
    the resource ends, and it may be asynchronous. ``dispose_on_exit`` is the
    emergency cleanup path; it is invoked with the reference if the process
    terminates while the resource is still in use, and it must be
    synchronous. Exactly one of the two is invoked for each usage.
    """

    _dispose: DisposeFunction[R]
    _dispose_on_exit: DisposeOnExitFunction[R]
    _registry: ExitRegistry

    def __init__(
        self,
        dispose: DisposeFunction[R],
        dispose_on_exit: DisposeOnExitFunction[R],
        *,
        registry: Optional[ExitRegistry] = None,
    ):
        """Constructor.

        Parameters:
            dispose: function to call with the reference when the usage of a
                resource has finished, successfully or not
            dispose_on_exit: synchronous function to call with the reference
                when the process terminates while the resource is in use
            registry: the exit registry to register the emergency cleanups
                in. `None` means the process-wide registry; in this case the
                process-wide termination listeners are also attached if they
                were not attached yet. Custom registries are not connected to
                any termination listeners; it is the responsibility of the
                caller to drain them.

        Raises:
            TypeError: if one of the cleanup functions is not callable
            SynchronousCleanupRequired: if ``dispose_on_exit`` is a coroutine
                function
        """
        ensure_callable(dispose, "dispose")
        ensure_synchronous(dispose_on_exit, "dispose_on_exit")

        self._dispose = dispose
        self._dispose_on_exit = dispose_on_exit

        if registry is None:
            self._registry = exit_registry
            install_exit_hooks()
        else:
            self._registry = registry

    async def __call__(self, reference: R, use: UseFunction[R, T]) -> T:
        """Invokes the given function with the given reference and disposes of
        the resource identified by the reference afterwards.

        Parameters:
            reference: the reference identifying the resource
            use: function to call with the reference; it may be a regular
                function or a coroutine function

        Returns:
            the value returned by ``use``

        Raises:
            Exception: the exception raised by ``use`` (after the resource was
                disposed of) or by ``dispose``
        """
        token = self._register(reference)
        try:
            return await maybe_await(use(reference))
        finally:
            await self._release(token, reference)

    @property
    def dispose(self) -> DisposeFunction[R]:
        """The normal-path cleanup function of the disposer."""
        return self._dispose

    @property
    def dispose_on_exit(self) -> DisposeOnExitFunction[R]:
        """The emergency cleanup function of the disposer."""
        return self._dispose_on_exit

    @property
    def registry(self) -> ExitRegistry:
        """The exit registry that the disposer registers its emergency
        cleanups in.
        """
        return self._registry

    @asynccontextmanager
    async def hold(self, reference: R) -> AsyncIterator[R]:
        """Async context manager that yields the given reference and disposes
        of the resource identified by the reference when the context is
        exited.

        Parameters:
            reference: the reference identifying the resource
        """
        token = self._register(reference)
        try:
            yield reference
        finally:
            await self._release(token, reference)

    def _register(self, reference: R) -> RegistrationToken:
        return self._registry.register(partial(self._dispose_on_exit, reference))

    async def _release(self, token: RegistrationToken, reference: R) -> None:
        if not self._registry.deregister(token):
            # The registry was drained while the resource was in use
            log.debug("%r was already disposed of on exit", reference)
            return

        with CancelScope(shield=True):
            await maybe_await(self._dispose(reference))


def create_disposer(
    dispose: DisposeFunction[R],
    dispose_on_exit: DisposeOnExitFunction[R],
    *,
    registry: Optional[ExitRegistry] = None,
) -> Disposer[R]:
    """Creates a disposer from the given pair of cleanup functions.

    See Disposer for the details.
    """
    return Disposer(dispose, dispose_on_exit, registry=registry)
