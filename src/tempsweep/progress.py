"""Progress channel between sweep workers and a single consumer."""

import queue
from typing import Iterator

from tempsweep.models import ProgressEvent

# Marks the end of the stream once the producing run has finished
_CLOSED = object()


class ProgressSink:
    """Multi-producer / single-consumer FIFO of progress events.

    Producers call ``emit`` from worker threads. With ``maxsize`` set, a full
    sink blocks the producer until the consumer catches up; events are never
    dropped.
    """

    def __init__(self, maxsize: int = 0):
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._closed = False

    def emit(self, event: ProgressEvent) -> None:
        """Enqueue an event."""
        if self._closed:
            raise RuntimeError("Cannot emit on a closed ProgressSink")
        self._queue.put(event)

    def close(self) -> None:
        """Signal that no more events will be emitted."""
        if not self._closed:
            self._closed = True
            self._queue.put(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def drain(self) -> list[ProgressEvent]:
        """Return every event queued right now, in emission order, without blocking."""
        events = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is _CLOSED:
                # Keep the end marker for anyone iterating afterwards
                self._queue.put(_CLOSED)
                break
            events.append(item)
        return events

    def __iter__(self) -> Iterator[ProgressEvent]:
        """Yield events as they arrive until the sink is closed."""
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                self._queue.put(_CLOSED)
                return
            yield item


def emit(sink: ProgressSink | None, event: ProgressEvent) -> None:
    """Emit to an optional sink."""
    if sink is not None:
        sink.emit(event)
