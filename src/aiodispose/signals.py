"""Process-level listeners that drain an exit registry when the process is
about to terminate, either due to a termination signal or because the
interpreter is exiting normally.

All the disposers bound to the shared registry share a single set of
listeners; the listeners are attached when the first such disposer is
created and they are never re-attached once the process started shutting
down.
"""

import atexit
import signal

from enum import Enum
from logging import getLogger
from os import getpid, kill
from threading import RLock, current_thread, main_thread
from types import FrameType
from typing import Any, Dict, Iterable, Optional, Set, Tuple

from .registry import ExitRegistry, exit_registry

__all__ = (
    "DEFAULT_EXIT_SIGNALS",
    "ExitHookState",
    "ExitSignalHandler",
    "install_exit_hooks",
)

log = getLogger(__name__)

#: Signals that terminate the process and that trigger a drain of the
#: registry by default; signals not supported by the platform are omitted
DEFAULT_EXIT_SIGNALS: Tuple[signal.Signals, ...] = tuple(
    getattr(signal, name)
    for name in ("SIGINT", "SIGTERM", "SIGUSR2", "SIGHUP")
    if hasattr(signal, name)
)


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


class ExitHookState(Enum):
    """Enum representing the lifecycle of an ExitSignalHandler."""

    DETACHED = "detached"
    ATTACHED = "attached"
    SHUTTING_DOWN = "shutting_down"


class ExitSignalHandler:
    """Object that watches the process for termination signals and for the
    normal exit of the interpreter, and drains an exit registry when either
    of them happens.

    When a watched signal is received, the handler ignores further watched
    signals, drains the registry, restores the signal handlers that were in
    place before it was attached and then forwards the signal. Forwarding
    means calling the previous handler if it was a custom Python function;
    otherwise the default disposition of the signal is restored and the
    signal is sent to the process again so it terminates the same way it
    would have terminated without the handler.
    """

    _previous: Dict[int, Any]
    _unwatched: Set[int]

    def __init__(
        self, registry: ExitRegistry, signals: Optional[Iterable[int]] = None
    ):
        """Constructor.

        Parameters:
            registry: the registry to drain when the process terminates
            signals: the signals to watch; `None` means to watch the signals
                in DEFAULT_EXIT_SIGNALS
        """
        self._registry = registry
        self._signals = (
            tuple(signals) if signals is not None else DEFAULT_EXIT_SIGNALS
        )
        self._previous = {}
        self._unwatched = set()
        self._state = ExitHookState.DETACHED
        self._lock = RLock()

    @property
    def registry(self) -> ExitRegistry:
        """The registry that this handler drains."""
        return self._registry

    @property
    def signals(self) -> Tuple[int, ...]:
        """The signals that this handler was configured to watch."""
        return self._signals

    @property
    def state(self) -> ExitHookState:
        """The current state of the handler."""
        return self._state

    def attach(self) -> bool:
        """Attaches the handler to the watched signals and to the normal exit
        of the interpreter. No-op if the process has started shutting down.

        Signals that are ignored by the process when the handler is attached
        are not watched. Signal handlers can be installed only from the main
        thread; when called from another thread, only the normal exit of the
        interpreter is watched until attach() is called again from the main
        thread.

        Returns:
            whether this call attached the handler or installed a signal
            handler that was missing
        """
        with self._lock:
            if self._state is ExitHookState.SHUTTING_DOWN:
                return False

            installed = self._install_signal_handlers()

            if self._state is ExitHookState.DETACHED:
                atexit.register(self._handle_exit)
                self._state = ExitHookState.ATTACHED
                return True

            return installed

    def detach(self) -> None:
        """Detaches the handler from the watched signals and from the normal
        exit of the interpreter, restoring the signal handlers that were in
        place when the handler was attached.
        """
        with self._lock:
            self._restore_signal_handlers()
            self._unwatched.clear()
            atexit.unregister(self._handle_exit)
            if self._state is ExitHookState.ATTACHED:
                self._state = ExitHookState.DETACHED

    def _install_signal_handlers(self) -> bool:
        """Installs the signal handler for the watched signals that are not
        handled yet.

        Returns:
            whether at least one signal handler was installed
        """
        missing = [
            signum
            for signum in self._signals
            if signum not in self._previous and signum not in self._unwatched
        ]
        if not missing:
            return False

        if current_thread() is not main_thread():
            if self._state is ExitHookState.DETACHED:
                log.warning(
                    "Not on the main thread, cannot watch %s yet",
                    ", ".join(_signal_name(signum) for signum in missing),
                )
            return False

        installed = False
        for signum in missing:
            try:
                previous = signal.getsignal(signum)
                if previous == signal.SIG_IGN:
                    log.debug(
                        "%s is ignored by the process, not watching it",
                        _signal_name(signum),
                    )
                    self._unwatched.add(signum)
                    continue
                signal.signal(signum, self._handle_signal)
            except ValueError as ex:
                log.warning("Cannot watch %s: %s", _signal_name(signum), ex)
                self._unwatched.add(signum)
            else:
                self._previous[signum] = previous
                installed = True

        return installed

    def _begin_shutdown(self) -> bool:
        """Moves the handler into the shutting down state.

        Returns:
            whether this call started the shutdown; `False` if the shutdown
            was started earlier
        """
        with self._lock:
            if self._state is ExitHookState.SHUTTING_DOWN:
                return False
            self._state = ExitHookState.SHUTTING_DOWN
            return True

    def _handle_exit(self) -> None:
        if not self._begin_shutdown():
            return

        self._restore_signal_handlers()
        self._registry.drain_and_run()

    def _handle_signal(self, signum: int, frame: Optional[FrameType]) -> None:
        if not self._begin_shutdown():
            return

        log.debug("Received %s, draining exit registry", _signal_name(signum))

        for watched in self._previous:
            signal.signal(watched, signal.SIG_IGN)

        previous = self._previous.get(signum)
        try:
            self._registry.drain_and_run()
        finally:
            self._restore_signal_handlers()
            atexit.unregister(self._handle_exit)

        self._forward_signal(signum, frame, previous)

    def _restore_signal_handlers(self) -> None:
        previous, self._previous = self._previous, {}
        for signum, handler in previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)

    @staticmethod
    def _forward_signal(signum: int, frame: Optional[FrameType], previous: Any) -> None:
        # default_int_handler raises KeyboardInterrupt instead of terminating
        if callable(previous) and previous is not signal.default_int_handler:
            previous(signum, frame)
        else:
            signal.signal(signum, signal.SIG_DFL)
            kill(getpid(), signum)


#: Handler that drains the process-wide exit registry
_exit_hooks = ExitSignalHandler(exit_registry)


def install_exit_hooks() -> bool:
    """Attaches the process-wide termination listeners that drain the shared
    exit registry, unless they are attached already. Signal handlers that
    could not be installed earlier because the listeners were attached from a
    thread other than the main thread are installed when this function is
    called from the main thread.

    Returns:
        whether the listeners or a missing signal handler were attached by
        this call
    """
    return _exit_hooks.attach()
