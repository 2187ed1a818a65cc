"""Sweep orchestration: measure, delete, measure again."""

import logging
import os
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Sequence

from tempsweep.cleaner import sweep_paths
from tempsweep.errors import EngineBusyError, InvalidTargetsError
from tempsweep.models import SweepResult, SweepState
from tempsweep.progress import ProgressSink
from tempsweep.scanner import default_workers, measure_paths
from tempsweep.sync import CancellationSignal

logger = logging.getLogger(__name__)

# Template tokens such as %USERPROFILE% must be expanded before paths get here
PLACEHOLDER_RE = re.compile(r"%[A-Za-z_][A-Za-z0-9_]*%")


def validate_targets(paths: Sequence[str] | None) -> tuple[str, ...]:
    """
    Check a target list before any work starts.

    Args:
        paths: Absolute directory paths

    Returns:
        The targets as an immutable tuple of strings

    Raises:
        InvalidTargetsError: if the list is missing, or a path is relative or
            still contains an unexpanded placeholder
    """
    if paths is None:
        raise InvalidTargetsError("Target list is required")
    if isinstance(paths, (str, bytes)):
        raise InvalidTargetsError("Target list must be a sequence of paths, not a single string")

    targets = []
    for path in paths:
        try:
            path = os.fspath(path)
        except TypeError:
            raise InvalidTargetsError(f"Invalid target path: {path!r}") from None
        if not isinstance(path, str) or not path:
            raise InvalidTargetsError(f"Invalid target path: {path!r}")
        if PLACEHOLDER_RE.search(path):
            raise InvalidTargetsError(f"Unexpanded placeholder in target path: {path}")
        if not os.path.isabs(path):
            raise InvalidTargetsError(f"Target path must be absolute: {path}")
        targets.append(path)
    return tuple(targets)


class SweepEngine:
    """
    Runs sweeps and measurements, one at a time.

    ``run`` and ``measure`` block the calling thread; ``start_sweep`` and
    ``start_measure_all`` hand the same work to a background driver thread
    and return a Future right away. Either way a second operation requested
    while one is running is rejected with EngineBusyError.
    """

    def __init__(self, max_workers: int | None = None):
        self.max_workers = max_workers or default_workers()
        self._lock = threading.Lock()
        self._state = SweepState.IDLE
        self._cancel: CancellationSignal | None = None
        self._driver: ThreadPoolExecutor | None = None
        self.last_result: SweepResult | None = None

    @property
    def state(self) -> SweepState:
        with self._lock:
            return self._state

    def is_busy(self) -> bool:
        """True while an operation is in flight."""
        return self.state is SweepState.RUNNING

    def request_cancel(self) -> bool:
        """
        Ask the running operation to stop.

        Returns:
            True if an operation was running and has been signalled
        """
        with self._lock:
            if self._state is not SweepState.RUNNING or self._cancel is None:
                return False
            self._cancel.cancel()
        logger.info("Cancellation requested")
        return True

    def _begin(
        self,
        paths: Sequence[str] | None,
        cancel: CancellationSignal | None,
    ) -> tuple[tuple[str, ...], CancellationSignal]:
        targets = validate_targets(paths)
        with self._lock:
            if self._state is SweepState.RUNNING:
                raise EngineBusyError("Cleaning is already in progress")
            self._state = SweepState.RUNNING
            self._cancel = cancel or CancellationSignal()
            return targets, self._cancel

    def _finish(self, state: SweepState) -> None:
        with self._lock:
            self._state = state
            self._cancel = None

    def _execute_sweep(
        self,
        group: str,
        targets: tuple[str, ...],
        cancel: CancellationSignal,
        sink: ProgressSink | None,
    ) -> SweepResult:
        logger.info("Sweep %r started over %d targets", group, len(targets))
        try:
            size_before = measure_paths(targets, cancel, sink, self.max_workers)
            if cancel.cancelled:
                result = SweepResult(
                    group=group,
                    size_before=size_before,
                    size_after=size_before,
                    cancelled=True,
                )
            else:
                deleted = sweep_paths(targets, cancel, sink, self.max_workers)
                # Always re-measured in full so a cancelled run still reports a coherent figure
                size_after = measure_paths(targets, None, sink, self.max_workers)
                result = SweepResult(
                    group=group,
                    size_before=size_before,
                    size_after=size_after,
                    deleted_bytes=deleted,
                    cancelled=cancel.cancelled,
                )
        except BaseException:
            self._finish(SweepState.IDLE)
            raise

        self.last_result = result
        self._finish(SweepState.CANCELLED if result.cancelled else SweepState.COMPLETED)
        logger.info(
            "Sweep %r %s: %d bytes reclaimed",
            group,
            "cancelled" if result.cancelled else "finished",
            result.reclaimed,
        )
        return result

    def _execute_measure(
        self,
        targets: tuple[str, ...],
        cancel: CancellationSignal,
        sink: ProgressSink | None,
    ) -> int:
        try:
            total = measure_paths(targets, cancel, sink, self.max_workers)
        except BaseException:
            self._finish(SweepState.IDLE)
            raise
        self._finish(SweepState.CANCELLED if cancel.cancelled else SweepState.COMPLETED)
        return total

    def run(
        self,
        paths: Sequence[str],
        cancel: CancellationSignal | None = None,
        sink: ProgressSink | None = None,
        group: str = "",
    ) -> SweepResult:
        """
        Measure, sweep and re-measure the targets on the calling thread.

        Args:
            paths: Absolute target directories
            cancel: Optional signal; a fresh one is created if omitted
            sink: Optional progress sink
            group: Name reported in the result

        Returns:
            SweepResult

        Raises:
            EngineBusyError: another operation is running
            InvalidTargetsError: the target list is malformed
        """
        targets, signal = self._begin(paths, cancel)
        return self._execute_sweep(group, targets, signal, sink)

    def measure(
        self,
        paths: Sequence[str],
        cancel: CancellationSignal | None = None,
        sink: ProgressSink | None = None,
    ) -> int:
        """Measure the targets without deleting anything."""
        targets, signal = self._begin(paths, cancel)
        return self._execute_measure(targets, signal, sink)

    def _submit(self, fn, sink: ProgressSink | None, *args) -> Future:
        if self._driver is None:
            self._driver = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tempsweep")

        def _drive():
            try:
                return fn(*args, sink)
            finally:
                if sink is not None:
                    sink.close()

        try:
            return self._driver.submit(_drive)
        except RuntimeError:
            self._finish(SweepState.IDLE)
            raise

    def start_sweep(
        self,
        group: str,
        paths: Sequence[str],
        sink: ProgressSink | None = None,
    ) -> Future:
        """
        Start a sweep in the background.

        The busy gate and target validation are applied before returning,
        so a rejected request raises here and nothing runs. The sink is
        closed when the sweep ends.

        Returns:
            Future resolving to the SweepResult
        """
        targets, signal = self._begin(paths, None)
        return self._submit(self._execute_sweep, sink, group, targets, signal)

    def start_measure_all(
        self,
        paths: Sequence[str],
        sink: ProgressSink | None = None,
    ) -> Future:
        """Start a measurement in the background; the Future resolves to bytes."""
        targets, signal = self._begin(paths, None)
        return self._submit(self._execute_measure, sink, targets, signal)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background driver thread."""
        if self._driver is not None:
            self._driver.shutdown(wait=wait)
            self._driver = None

    def __enter__(self) -> "SweepEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
