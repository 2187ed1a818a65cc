"""Directory size measurement for tempsweep."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator, Sequence

from tempsweep.models import ProgressEvent
from tempsweep.progress import ProgressSink, emit
from tempsweep.sync import ByteCounter, CancellationSignal, is_cancelled

logger = logging.getLogger(__name__)


def default_workers() -> int:
    """Worker count used when the caller does not pick one."""
    return os.cpu_count() or 1


def walk_tree(root: str | Path) -> Iterator[os.DirEntry]:
    """
    Yield every entry beneath ``root``, parents before children.

    Uses os.scandir and never follows symlinks, so a link to a directory is
    yielded as a leaf entry. Directories that cannot be listed are skipped
    along with their subtree. Pending directories are kept on an explicit
    stack, so tree depth is limited only by the filesystem.

    Args:
        root: Directory to walk

    Yields:
        os.DirEntry for each file, link and directory found
    """
    pending = [os.fspath(root)]
    while pending:
        directory = pending.pop()
        try:
            with os.scandir(directory) as entries:
                children = list(entries)
        except OSError as e:
            logger.debug("Cannot list %s: %s", directory, e)
            continue

        subdirs = []
        for entry in children:
            yield entry
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.path)
            except OSError:
                continue
        # Reversed so the first subdirectory listed is walked first
        pending.extend(reversed(subdirs))


def entry_size(entry: os.DirEntry) -> int:
    """Size of a non-directory entry, or 0 if it cannot be stat'ed."""
    try:
        return entry.stat(follow_symlinks=False).st_size
    except OSError:
        return 0


def measure_directory(path: str | Path, cancel: CancellationSignal | None = None) -> int:
    """
    Sum the sizes of all files beneath a directory.

    Unreadable files count as 0 and unreadable subdirectories are skipped.
    A missing path measures 0.

    Args:
        path: Directory to measure
        cancel: Optional signal; when set, the partial sum is returned

    Returns:
        Total size in bytes
    """
    if not os.path.isdir(path):
        return 0

    total = 0
    for entry in walk_tree(path):
        if is_cancelled(cancel):
            break
        try:
            if entry.is_dir(follow_symlinks=False):
                continue
        except OSError:
            continue
        total += entry_size(entry)
    return total


def measure_paths(
    paths: Sequence[str],
    cancel: CancellationSignal | None = None,
    sink: ProgressSink | None = None,
    max_workers: int | None = None,
) -> int:
    """
    Measure several target directories in parallel.

    Emits one info event per existing target once it has been fully
    measured. Targets not yet started when cancellation is requested are
    skipped.

    Args:
        paths: Target directories
        cancel: Optional cancellation signal
        sink: Optional progress sink
        max_workers: Parallelism, defaults to the CPU count

    Returns:
        Total size in bytes across all targets
    """
    counter = ByteCounter()

    def _measure_one(path: str) -> None:
        if is_cancelled(cancel) or not os.path.isdir(path):
            return
        size = measure_directory(path, cancel)
        counter.add(size)
        if is_cancelled(cancel):
            # Partial sum; only fully measured targets are reported
            logger.debug("Measurement of %s cancelled after %d bytes", path, size)
            return
        emit(sink, ProgressEvent.info(path, size))

    with ThreadPoolExecutor(max_workers=max_workers or default_workers()) as executor:
        futures = [executor.submit(_measure_one, path) for path in paths]
        for future in futures:
            future.result()

    logger.debug("Measured %d targets: %d bytes", len(paths), counter.value)
    return counter.value
