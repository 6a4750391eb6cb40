"""Progress reporting and cancellation for long-running jobs."""

import threading
from collections.abc import Callable

ProgressCallback = Callable[[float], None]


class CancellationToken:
    """Thread-safe cancellation signal checked by long-running loops."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ProgressReporter:
    """Wraps a progress callback with monotonic, clamped semantics.

    Values are clamped into [0.0, 1.0] and values that do not increase are
    dropped. :meth:`finish` always emits 1.0 exactly once, even if no
    intermediate progress was reported.
    """

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self._callback = callback
        self._last = -1.0
        self._finished = False

    @property
    def value(self) -> float:
        return max(self._last, 0.0)

    def update(self, fraction: float) -> None:
        fraction = min(max(fraction, 0.0), 1.0)
        if self._finished or fraction <= self._last:
            return
        if fraction >= 1.0:
            # 1.0 is reserved for finish()
            return
        self._last = fraction
        if self._callback is not None:
            self._callback(fraction)

    def update_ratio(self, done: int, total: int) -> None:
        if total <= 0:
            return
        self.update(done / total)

    def finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._last = 1.0
        if self._callback is not None:
            self._callback(1.0)
