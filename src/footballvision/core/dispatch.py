"""Serial update queue for published state.

Inference results arrive on the capture thread. All mutations of state that
observers can see are funnelled through a single ``UpdateQueue`` so that
updates from consecutive frames are applied one at a time, in order.
"""

import threading
from queue import Queue
from typing import Any, Callable, Optional

from loguru import logger

_STOP = object()


class UpdateQueue:
    """Runs submitted callables one at a time on a dedicated worker thread."""

    def __init__(self, name: str = "main"):
        self.name = name
        self._queue: Queue = Queue()
        self._closed = False
        self._lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._run, name=f"update-queue-{name}", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                fn, args = item
                try:
                    fn(*args)
                except Exception as e:
                    logger.exception(f"Update on queue '{self.name}' failed: {e}")
            finally:
                self._queue.task_done()

    def dispatch(self, fn: Callable[..., Any], *args: Any) -> None:
        """Schedule ``fn(*args)`` to run on the queue and return immediately."""
        with self._lock:
            if self._closed:
                raise RuntimeError(f"Update queue '{self.name}' is closed")
            self._queue.put((fn, args))

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until every update submitted so far has run.

        Returns:
            True if the queue caught up, False if the timeout expired first.
        """
        if self.is_current():
            raise RuntimeError("flush() called from the update queue itself")

        done = threading.Event()
        try:
            self.dispatch(done.set)
        except RuntimeError:
            # Closed queues have already drained
            return True
        return done.wait(timeout)

    def is_current(self) -> bool:
        """True when called from this queue's worker thread."""
        return threading.current_thread() is self._thread

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Run remaining updates, then stop the worker thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_STOP)

        if not self.is_current():
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning(f"Update queue '{self.name}' did not stop within {timeout}s")
