"""Disposers for filesystem paths."""

import os

from anyio import Path, to_thread
from shutil import rmtree
from tempfile import mkdtemp, mkstemp
from typing import Awaitable, Callable, Optional, TypeVar, Union

from .disposer import Disposer
from .registry import ExitRegistry

__all__ = (
    "create_path_disposer",
    "remove_path",
    "remove_path_sync",
    "use_temporary_path",
)

T = TypeVar("T")

PathLike = Union[str, "os.PathLike[str]"]


async def remove_path(path: PathLike) -> None:
    """Removes the file or directory at the given path asynchronously.

    Directories are removed recursively. Paths that do not exist are
    ignored.
    """
    target = Path(path)
    if await target.is_dir() and not await target.is_symlink():
        await to_thread.run_sync(rmtree, str(target))
    else:
        await target.unlink(missing_ok=True)


def remove_path_sync(path: PathLike) -> None:
    """Removes the file or directory at the given path synchronously.

    This is the emergency counterpart of remove_path(); it can be called from
    a signal handler.
    """
    if os.path.isdir(path) and not os.path.islink(path):
        rmtree(path)
    else:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


def create_path_disposer(
    *, registry: Optional[ExitRegistry] = None
) -> Disposer[PathLike]:
    """Creates a disposer that removes the file or directory identified by
    the reference it is invoked with.

    Parameters:
        registry: the exit registry to use; `None` means the process-wide
            registry
    """
    return Disposer(remove_path, remove_path_sync, registry=registry)


async def use_temporary_path(
    use: Callable[[str], Union[Awaitable[T], T]],
    *,
    suffix: str = "",
    prefix: str = "aiodispose-",
    dir: Optional[PathLike] = None,
    directory: bool = False,
    registry: Optional[ExitRegistry] = None,
) -> T:
    """Creates a temporary empty file or directory, calls the given function
    with its path and removes the file or directory afterwards.

    Parameters:
        use: the function to call with the path; it may be a regular function
            or a coroutine function
        suffix: suffix of the name of the temporary file or directory
        prefix: prefix of the name of the temporary file or directory
        dir: the directory to create the temporary file or directory in;
            `None` means the default temporary directory of the platform
        directory: whether to create a directory instead of a file
        registry: the exit registry to use; `None` means the process-wide
            registry

    Returns:
        the value returned by the function
    """
    if directory:
        path = await to_thread.run_sync(mkdtemp, suffix, prefix, dir)
    else:
        fd, path = await to_thread.run_sync(mkstemp, suffix, prefix, dir)
        os.close(fd)

    return await create_path_disposer(registry=registry)(path, use)
