"""Fixed-delay periodic task on a shared thread pool."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Executor

LOGGER = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.5


class PeriodicTask:
    """Run ``fn`` on ``executor`` repeatedly with a fixed delay between runs.

    The first run is submitted immediately. Each following run is scheduled
    ``delay_s`` after the previous one *finished*, so a slow run never causes
    back-to-back catch-up runs. :meth:`cancel` only stops future scheduling;
    a run already in progress completes normally.
    """

    def __init__(
        self,
        fn: Callable[[], None],
        executor: Executor,
        *,
        delay_s: float = POLL_INTERVAL_S,
        name: str = "periodic",
    ) -> None:
        self._fn = fn
        self._executor = executor
        self._delay_s = delay_s
        self._name = name
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._cancelled = False
        self._started = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> None:
        with self._lock:
            if self._started or self._cancelled:
                return
            self._started = True
        self._submit()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _submit(self) -> None:
        with self._lock:
            self._timer = None
            if self._cancelled:
                return
        try:
            self._executor.submit(self._run)
        except RuntimeError:
            LOGGER.debug("Executor shut down; stopping %s task", self._name)
            self.cancel()

    def _run(self) -> None:
        if self._cancelled:
            return
        try:
            self._fn()
        except Exception:
            LOGGER.exception("Unhandled error in %s task", self._name)
        self._schedule_next()

    def _schedule_next(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            timer = threading.Timer(self._delay_s, self._submit)
            timer.daemon = True
            self._timer = timer
            timer.start()
