"""Process-wide registry of emergency cleanup callbacks that must run before
the process terminates.
"""

from itertools import count
from logging import getLogger
from outcome import Error, capture
from threading import RLock
from typing import Callable, Dict

from .errors import ensure_callable

__all__ = ("ExitCallback", "ExitRegistry", "RegistrationToken", "exit_registry")

log = getLogger(__name__)

#: Type specification for the callbacks stored in the registry
ExitCallback = Callable[[], None]

_serials = count(1)


class RegistrationToken:
    """Opaque token identifying a single entry in an ExitRegistry.

    Tokens are compared and hashed by identity; the serial number is used only
    to make the representation of the token readable.
    """

    __slots__ = ("_serial",)

    def __init__(self):
        self._serial = next(_serials)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} #{self._serial}>"


class ExitRegistry:
    """Registry that maps unique registration tokens to synchronous cleanup
    callbacks that need to be invoked if the process terminates while the
    callback is registered.

    The registry can be drained only once. Draining removes all the entries
    that were pending at that point, so deregistering them afterwards reports
    that the emergency cleanup has already taken place. Callbacks registered
    after the drain are kept until they are deregistered.
    """

    _callbacks: Dict[RegistrationToken, ExitCallback]
    _drained: bool

    def __init__(self):
        """Constructor.

        Creates an empty registry.
        """
        self._callbacks = {}
        self._drained = False

        # Re-entrant; signal handlers may run on the main thread while it is
        # inside one of the methods below
        self._lock = RLock()

    def __contains__(self, token: RegistrationToken) -> bool:
        with self._lock:
            return token in self._callbacks

    def __len__(self) -> int:
        with self._lock:
            return len(self._callbacks)

    @property
    def drained(self) -> bool:
        """Returns whether the registry has been drained already."""
        return self._drained

    def register(self, callback: ExitCallback) -> RegistrationToken:
        """Registers a new emergency cleanup callback.

        Parameters:
            callback: the callback to register; it will be called with no
                arguments if the registry is drained while it is registered

        Returns:
            a new, unique token that can be used to deregister the callback
        """
        ensure_callable(callback, "callback")
        token = RegistrationToken()
        with self._lock:
            self._callbacks[token] = callback
        return token

    def deregister(self, token: RegistrationToken) -> bool:
        """Removes the callback associated to the given token from the
        registry. Deregistering a token that is not in the registry is a
        no-op.

        Parameters:
            token: the token returned from register()

        Returns:
            whether the callback was still pending; ``False`` if the token was
            unknown or if its callback was already invoked by a drain, in
            which case the caller must not clean up again
        """
        with self._lock:
            return self._callbacks.pop(token, None) is not None

    def drain_and_run(self) -> int:
        """Invokes all the registered callbacks synchronously, in the order
        they were registered.

        A failure in one callback does not prevent the remaining callbacks
        from being invoked; failures are logged instead. Only the first call
        to this method does anything; subsequent calls return immediately.

        Returns:
            the number of callbacks that were invoked
        """
        with self._lock:
            if self._drained:
                return 0
            self._drained = True
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        if callbacks:
            log.debug("Running %d pending emergency cleanup(s)", len(callbacks))

        for callback in callbacks:
            result = capture(callback)
            if isinstance(result, Error):
                log.error(
                    "Emergency cleanup %r failed",
                    callback,
                    exc_info=result.error,
                )

        return len(callbacks)


#: Process-wide registry shared by all disposers that are not bound to a
#: custom registry
exit_registry = ExitRegistry()
