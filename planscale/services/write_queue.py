import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], object], Callable[[object, Exception | None], None]], None]


def run_inline(job: Callable[[], object], done: Callable[[object, Exception | None], None]) -> None:
    """Run ``job`` on the calling thread and report through ``done``."""
    try:
        result = job()
    except Exception as exc:
        done(None, exc)
        return
    done(result, None)


@dataclass
class _Write:
    key: str
    job: Callable[[], object]
    description: str
    on_success: Callable[[object], None] | None = None


class WriteQueue:
    """Serializes persistence writes per entity key.

    At most one write per key is in flight. Later writes for the same key wait
    until the earlier one has finished, whether it succeeded or failed. Writes
    for different keys are independent. ``dispatch`` decides where a job runs;
    the default runs it inline.
    """

    def __init__(
        self,
        dispatch: Dispatch | None = None,
        on_error: Callable[[str, str, Exception], None] | None = None,
    ):
        self.dispatch = dispatch or run_inline
        self.on_error = on_error
        self._lock = threading.Lock()
        self._pending: dict[str, deque[_Write]] = {}
        self._in_flight: set[str] = set()

    def enqueue(
        self,
        key: str,
        job: Callable[[], object],
        description: str = "",
        on_success: Callable[[object], None] | None = None,
    ) -> None:
        write = _Write(key=key, job=job, description=description or key, on_success=on_success)
        with self._lock:
            if key in self._in_flight:
                self._pending.setdefault(key, deque()).append(write)
                return
            self._in_flight.add(key)
        self._start(write)

    def pending(self, key: str) -> int:
        with self._lock:
            return len(self._pending.get(key, ()))

    def in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    @property
    def idle(self) -> bool:
        with self._lock:
            return not self._in_flight

    def _start(self, write: _Write) -> None:
        def _done(result, error):
            self._finish(write, result, error)

        self.dispatch(write.job, _done)

    def _finish(self, write: _Write, result, error: Exception | None) -> None:
        if error is None and write.on_success is not None:
            try:
                write.on_success(result)
            except Exception as exc:
                error = exc
        if error is not None:
            logger.warning("Write failed (%s): %s", write.description, error)
            if self.on_error is not None:
                self.on_error(write.key, write.description, error)

        with self._lock:
            queue = self._pending.get(write.key)
            if queue:
                following = queue.popleft()
                if not queue:
                    del self._pending[write.key]
            else:
                following = None
                self._in_flight.discard(write.key)
        if following is not None:
            self._start(following)


__all__ = ["WriteQueue", "run_inline"]
