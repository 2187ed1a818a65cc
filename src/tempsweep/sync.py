"""Thread-safe primitives shared by the worker pool."""

import threading


class ByteCounter:
    """Non-negative byte total that worker threads add to concurrently."""

    def __init__(self, value: int = 0):
        if value < 0:
            raise ValueError("ByteCounter cannot start negative")
        self._value = value
        self._lock = threading.Lock()

    def add(self, amount: int) -> int:
        """Add ``amount`` bytes and return the new total."""
        if amount < 0:
            raise ValueError("ByteCounter only grows")
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class CancellationSignal:
    """One-shot stop flag shared by every task of one run.

    Once set it stays set; a new run gets a new signal.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancellation is requested; False if the timeout expired."""
        return self._event.wait(timeout)


def is_cancelled(signal: CancellationSignal | None) -> bool:
    """Check an optional signal."""
    return signal is not None and signal.cancelled
