"""Disposers that guarantee the cleanup of resources, even when the process
is terminated while the resources are in use.
"""

from .disposer import Disposer, create_disposer
from .errors import SynchronousCleanupRequired
from .registry import ExitRegistry, RegistrationToken, exit_registry
from .signals import (
    DEFAULT_EXIT_SIGNALS,
    ExitHookState,
    ExitSignalHandler,
    install_exit_hooks,
)
from .version import __version__, __version_info__

__all__ = (
    "create_disposer",
    "install_exit_hooks",
    "exit_registry",
    "DEFAULT_EXIT_SIGNALS",
    "Disposer",
    "ExitHookState",
    "ExitRegistry",
    "ExitSignalHandler",
    "RegistrationToken",
    "SynchronousCleanupRequired",
    "__version__",
    "__version_info__",
)
