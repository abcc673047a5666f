"""
L4 Execution — Deferred, best-effort tasks.

Post-stop cleanup and plaintext-config removal run a short while after
the call that scheduled them, on daemon ``threading.Timer`` threads.
Tasks are keyed (``"<tool>:<what>"``) so a later ``start`` can cancel
the cleanup a previous ``stop`` scheduled for the same tool.

Failures inside a task are logged at DEBUG and swallowed: the file was
probably already gone.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class DeferredTasks:
    """Keyed set of pending timers."""

    def __init__(self) -> None:
        self._timers: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def schedule(self, key: str, delay: float, fn: Callable[[], object]) -> None:
        """Run ``fn`` after ``delay`` seconds.  Replaces a pending ``key``."""

        def _run() -> None:
            try:
                fn()
            except Exception as e:
                logger.debug("Deferred task %s failed: %s", key, e)
            finally:
                with self._lock:
                    if self._timers.get(key) is timer:
                        del self._timers[key]

        timer = threading.Timer(max(delay, 0.0), _run)
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(key, None)
            if previous is not None:
                previous.cancel()
            self._timers[key] = timer
        timer.start()

    def cancel(self, prefix: str) -> int:
        """Cancel every pending task whose key starts with ``prefix``."""
        with self._lock:
            keys = [k for k in self._timers if k.startswith(prefix)]
            for k in keys:
                self._timers.pop(k).cancel()
        if keys:
            logger.debug("Cancelled deferred tasks: %s", ", ".join(keys))
        return len(keys)

    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for t in timers:
            t.cancel()

    def pending(self) -> list[str]:
        with self._lock:
            return sorted(self._timers)

    def join(self, timeout: float = 5.0) -> bool:
        """Wait until no task is pending.  Returns False on timeout."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with self._lock:
                timers = list(self._timers.values())
            if not timers:
                return True
            for t in timers:
                t.join(max(deadline - time.monotonic(), 0.0))
        with self._lock:
            return not self._timers
