"""Folder sweeping for tempsweep."""

import logging
import os
import stat
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Sequence

from tempsweep.models import ItemOutcome, ProgressEvent
from tempsweep.progress import ProgressSink, emit
from tempsweep.scanner import default_workers, walk_tree
from tempsweep.sync import ByteCounter, CancellationSignal, is_cancelled

logger = logging.getLogger(__name__)


def _reason(error: OSError) -> str:
    return error.strerror or error.__class__.__name__


def clear_readonly(path: str | Path, mode: int | None = None) -> bool:
    """
    Make a file writable by its owner, best effort.

    Args:
        path: File to unlock
        mode: Current st_mode if already known

    Returns:
        True if the mode was changed
    """
    try:
        if mode is None:
            mode = os.lstat(path).st_mode
        if mode & stat.S_IWUSR:
            return False
        os.chmod(path, stat.S_IMODE(mode) | stat.S_IWUSR)
        return True
    except OSError as e:
        logger.debug("Could not clear read-only flag on %s: %s", path, e)
        return False


def delete_file(path: str | Path) -> ItemOutcome:
    """
    Delete one file or symlink.

    Args:
        path: File to delete

    Returns:
        ItemOutcome with the pre-deletion size, or the reason it was skipped
    """
    try:
        st = os.lstat(path)
    except OSError as e:
        return ItemOutcome.skipped(_reason(e))

    if not stat.S_ISLNK(st.st_mode):
        clear_readonly(path, st.st_mode)

    try:
        os.remove(path)
    except OSError as e:
        return ItemOutcome.skipped(_reason(e))

    return ItemOutcome.done(st.st_size)


def remove_empty_dir(path: str | Path) -> ItemOutcome | None:
    """
    Remove a directory if it exists and has no entries.

    Args:
        path: Directory to remove

    Returns:
        ItemOutcome for an attempted removal, None if the directory is
        missing or not empty
    """
    try:
        with os.scandir(path) as entries:
            if next(entries, None) is not None:
                return None
    except FileNotFoundError:
        return None
    except OSError as e:
        return ItemOutcome.skipped(_reason(e))

    try:
        os.rmdir(path)
    except OSError as e:
        return ItemOutcome.skipped(_reason(e))
    return ItemOutcome.done()


def _depth(path: str) -> int:
    return len(Path(path).parts)


def sweep_directory(
    path: str,
    cancel: CancellationSignal | None = None,
    sink: ProgressSink | None = None,
) -> int:
    """
    Delete everything beneath a target directory.

    Files go first; then directories that ended up empty are removed,
    deepest first; finally the target itself is removed if it is empty.
    A file or directory that cannot be deleted produces a warning event and
    the sweep moves on.

    Args:
        path: Target directory
        cancel: Optional signal, checked before each file
        sink: Optional progress sink

    Returns:
        Bytes of files deleted under this target
    """
    if not os.path.isdir(path):
        return 0

    deleted = 0
    files = []
    for entry in walk_tree(path):
        try:
            if not entry.is_dir(follow_symlinks=False):
                files.append(entry.path)
        except OSError:
            continue

    for file_path in files:
        if is_cancelled(cancel):
            logger.debug("Cancelled while sweeping %s", path)
            return deleted

        outcome = delete_file(file_path)
        if outcome.ok:
            deleted += outcome.size
            emit(sink, ProgressEvent.deleted(file_path, outcome.size))
        else:
            logger.debug("Skipped %s: %s", file_path, outcome.reason)
            emit(sink, ProgressEvent.warning(file_path, outcome.reason))

    directories = []
    for entry in walk_tree(path):
        try:
            if entry.is_dir(follow_symlinks=False):
                directories.append(entry.path)
        except OSError:
            continue
    directories.sort(key=_depth, reverse=True)

    for dir_path in directories:
        if is_cancelled(cancel):
            return deleted

        outcome = remove_empty_dir(dir_path)
        if outcome is None:
            continue
        if outcome.ok:
            emit(sink, ProgressEvent.deleted_empty_dir(dir_path))
        else:
            emit(sink, ProgressEvent.warning(dir_path, outcome.reason))

    # Some targets are meant to disappear entirely, not just be emptied
    outcome = remove_empty_dir(path)
    if outcome is not None:
        if outcome.ok:
            emit(sink, ProgressEvent.deleted_empty_dir(path))
        else:
            logger.debug("Left target %s in place: %s", path, outcome.reason)

    return deleted


def sweep_paths(
    paths: Sequence[str],
    cancel: CancellationSignal | None = None,
    sink: ProgressSink | None = None,
    max_workers: int | None = None,
) -> int:
    """
    Sweep several target directories in parallel.

    Args:
        paths: Target directories
        cancel: Optional cancellation signal; targets not yet started are skipped
        sink: Optional progress sink
        max_workers: Parallelism, defaults to the CPU count

    Returns:
        Total bytes of files deleted
    """
    counter = ByteCounter()

    def _sweep_one(path: str) -> None:
        if is_cancelled(cancel):
            return
        counter.add(sweep_directory(path, cancel, sink))

    with ThreadPoolExecutor(max_workers=max_workers or default_workers()) as executor:
        futures = [executor.submit(_sweep_one, path) for path in paths]
        for future in futures:
            future.result()

    return counter.value
