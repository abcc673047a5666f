"""
L4 Execution — Process supervisor.

The SINGLE PLACE where agent processes are launched.  Tracks one
``subprocess.Popen`` per logical tool id:

    spawn  → launch + register (no-op if the id is already live)
    stop   → SIGTERM + deregister immediately (does not wait)
    exit   → a waiter thread logs the exit code and deregisters

Standard output and standard error are pumped line by line on daemon
threads into the caller's ``on_output`` callback (used to scrape values
like a tunnel hostname) and into the ``agentbox.agent.<id>`` logger.

Exited processes are never restarted here; restarting is an explicit
lifecycle action.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Callable

from agentbox.core.errors import ProcessSpawnError
from agentbox.core.observability.logging_config import agent_logger

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], object]


@dataclass
class RunningProcess:
    """A live, supervised child process."""

    logical_id: str
    proc: subprocess.Popen
    binary: Path
    started_at: float = field(default_factory=time.time)

    @property
    def pid(self) -> int:
        return self.proc.pid

    @property
    def alive(self) -> bool:
        return self.proc.poll() is None


class ProcessSupervisor:
    """Owner of the ``logical id → RunningProcess`` table."""

    def __init__(self) -> None:
        self._procs: dict[str, RunningProcess] = {}
        self._lock = threading.Lock()

    # ── Spawn ───────────────────────────────────────────────────

    def spawn(
        self,
        logical_id: str,
        binary: Path,
        args: list[str],
        extra_env: dict[str, str] | None = None,
        on_output: OutputCallback | None = None,
    ) -> bool:
        """Launch ``binary`` under ``logical_id``.

        Returns:
            True if a process was started, False if one was already
            running under this id (logged, not an error).

        Raises:
            ProcessSpawnError: If the OS refuses to launch the binary.
        """
        env = os.environ.copy()
        if extra_env:
            env.update(extra_env)

        with self._lock:
            existing = self._procs.get(logical_id)
            if existing is not None:
                if existing.alive:
                    logger.warning("[%s] already running (pid %d)", logical_id, existing.pid)
                    return False
                del self._procs[logical_id]

            try:
                proc = subprocess.Popen(
                    [str(binary), *args],
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    env=env,
                    text=True,
                    errors="replace",
                    bufsize=1,
                )
            except OSError as e:
                logger.error("[%s] process error: %s", logical_id, e)
                raise ProcessSpawnError(f"[{logical_id}] cannot launch {binary}: {e}") from e

            entry = RunningProcess(logical_id=logical_id, proc=proc, binary=binary)
            self._procs[logical_id] = entry

        logger.info("[%s] started (pid %d)", logical_id, proc.pid)

        sink = agent_logger(logical_id)
        for stream in (proc.stdout, proc.stderr):
            threading.Thread(
                target=_pump,
                args=(logical_id, stream, sink, on_output),
                name=f"{logical_id}-output",
                daemon=True,
            ).start()
        threading.Thread(
            target=self._wait,
            args=(entry,),
            name=f"{logical_id}-waiter",
            daemon=True,
        ).start()
        return True

    # ── Stop ────────────────────────────────────────────────────

    def stop(self, logical_id: str) -> bool:
        """Send SIGTERM and deregister.  Returns False if nothing ran."""
        with self._lock:
            entry = self._procs.pop(logical_id, None)
        if entry is None:
            return False
        if entry.alive:
            try:
                entry.proc.terminate()
            except ProcessLookupError:
                pass
        logger.info("[%s] stopped", logical_id)
        return True

    def stop_all(self) -> list[str]:
        """Stop every supervised process.  Returns the ids stopped."""
        with self._lock:
            ids = list(self._procs)
        return [i for i in ids if self.stop(i)]

    # ── Queries ─────────────────────────────────────────────────

    def is_running(self, logical_id: str) -> bool:
        with self._lock:
            return logical_id in self._procs

    def get(self, logical_id: str) -> RunningProcess | None:
        with self._lock:
            return self._procs.get(logical_id)

    def running_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._procs)

    # ── Internals ───────────────────────────────────────────────

    def _wait(self, entry: RunningProcess) -> None:
        code = entry.proc.wait()
        with self._lock:
            current = self._procs.get(entry.logical_id)
            unexpected = current is entry
            if unexpected:
                del self._procs[entry.logical_id]
        if unexpected:
            logger.warning("[%s] process exited (code %s)", entry.logical_id, code)
        else:
            logger.debug("[%s] process exited after stop (code %s)", entry.logical_id, code)


def _pump(
    logical_id: str,
    stream: IO[str] | None,
    sink: logging.Logger,
    on_output: OutputCallback | None,
) -> None:
    """Forward each line of ``stream`` to the logger and the callback."""
    if stream is None:
        return
    with stream:
        for raw in stream:
            line = raw.rstrip("\r\n")
            if not line:
                continue
            sink.debug("%s", line)
            if on_output is None:
                continue
            try:
                on_output(line)
            except Exception:
                logger.exception("[%s] output handler failed", logical_id)
