"""
Tests for the process supervisor and deferred tasks.

Children are ``sys.executable -c …`` so the tests run wherever pytest does.
"""

from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest

from agentbox.core.errors import ProcessSpawnError
from agentbox.core.services.tool_install.execution.deferred import DeferredTasks
from agentbox.core.services.tool_install.execution.supervisor import ProcessSupervisor

PYTHON = Path(sys.executable)
SLEEPER = ["-c", "import time; time.sleep(30)"]


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def supervisor():
    sup = ProcessSupervisor()
    yield sup
    sup.stop_all()


# ═══════════════════════════════════════════════════════════════════
#  ProcessSupervisor
# ═══════════════════════════════════════════════════════════════════


class TestSpawn:
    def test_spawn_and_stop(self, supervisor: ProcessSupervisor) -> None:
        assert supervisor.spawn("agent", PYTHON, SLEEPER) is True
        entry = supervisor.get("agent")
        assert entry is not None and entry.alive
        assert supervisor.running_ids() == ["agent"]

        assert supervisor.stop("agent") is True
        assert not supervisor.is_running("agent")
        assert entry.proc.wait(timeout=5) is not None

    def test_double_spawn_is_noop(self, supervisor: ProcessSupervisor) -> None:
        assert supervisor.spawn("agent", PYTHON, SLEEPER)
        first = supervisor.get("agent")
        assert supervisor.spawn("agent", PYTHON, SLEEPER) is False
        assert supervisor.get("agent") is first
        assert supervisor.running_ids() == ["agent"]

    def test_respawn_after_exit(self, supervisor: ProcessSupervisor) -> None:
        assert supervisor.spawn("agent", PYTHON, ["-c", "pass"])
        assert _wait_for(lambda: not supervisor.is_running("agent"))
        assert supervisor.spawn("agent", PYTHON, SLEEPER) is True
        assert supervisor.is_running("agent")

    def test_stop_unknown(self, supervisor: ProcessSupervisor) -> None:
        assert supervisor.stop("ghost") is False

    def test_missing_binary(self, supervisor: ProcessSupervisor, tmp_path: Path) -> None:
        with pytest.raises(ProcessSpawnError):
            supervisor.spawn("agent", tmp_path / "does-not-exist", [])
        assert not supervisor.is_running("agent")

    def test_extra_env(self, supervisor: ProcessSupervisor) -> None:
        lines: list[str] = []
        supervisor.spawn(
            "agent", PYTHON,
            ["-c", "import os; print('token=' + os.environ['AGENT_TOKEN'])"],
            {"AGENT_TOKEN": "abc123"},
            lines.append,
        )
        assert _wait_for(lambda: "token=abc123" in lines)


class TestOutput:
    def test_both_streams_reach_callback(self, supervisor: ProcessSupervisor) -> None:
        lines: list[str] = []
        lock = threading.Lock()

        def collect(line: str) -> None:
            with lock:
                lines.append(line)

        code = "import sys; print('out-line'); print('err-line', file=sys.stderr)"
        supervisor.spawn("agent", PYTHON, ["-c", code], on_output=collect)
        assert _wait_for(lambda: {"out-line", "err-line"} <= set(lines))

    def test_callback_error_does_not_stop_pump(self, supervisor: ProcessSupervisor) -> None:
        seen: list[str] = []

        def flaky(line: str) -> None:
            seen.append(line)
            if line == "first":
                raise RuntimeError("boom")

        supervisor.spawn("agent", PYTHON, ["-c", "print('first'); print('second')"], on_output=flaky)
        assert _wait_for(lambda: seen == ["first", "second"])

    def test_output_logged_on_agent_logger(
        self, supervisor: ProcessSupervisor, caplog: pytest.LogCaptureFixture,
    ) -> None:
        caplog.set_level("DEBUG", logger="agentbox.agent")
        supervisor.spawn("agent", PYTHON, ["-c", "print('hello from agent')"])
        assert _wait_for(lambda: any(
            r.name == "agentbox.agent.agent" and r.getMessage() == "hello from agent"
            for r in caplog.records
        ))


# ═══════════════════════════════════════════════════════════════════
#  DeferredTasks
# ═══════════════════════════════════════════════════════════════════


class TestDeferred:
    def test_runs_after_delay(self) -> None:
        tasks = DeferredTasks()
        ran = threading.Event()
        tasks.schedule("t:cleanup", 0.05, ran.set)
        assert tasks.pending() == ["t:cleanup"]
        assert ran.wait(5)
        assert tasks.join(5)
        assert tasks.pending() == []

    def test_cancel_by_prefix(self) -> None:
        tasks = DeferredTasks()
        ran: list[str] = []
        tasks.schedule("a:cleanup", 0.2, lambda: ran.append("a:cleanup"))
        tasks.schedule("a:plaintext", 0.2, lambda: ran.append("a:plaintext"))
        tasks.schedule("b:cleanup", 0.05, lambda: ran.append("b:cleanup"))

        assert tasks.cancel("a:cleanup") == 1
        assert tasks.join(5)
        assert sorted(ran) == ["a:plaintext", "b:cleanup"]

    def test_reschedule_replaces(self) -> None:
        tasks = DeferredTasks()
        ran: list[int] = []
        tasks.schedule("k", 0.2, lambda: ran.append(1))
        tasks.schedule("k", 0.05, lambda: ran.append(2))
        assert tasks.join(5)
        time.sleep(0.3)
        assert ran == [2]

    def test_failure_is_swallowed(self) -> None:
        tasks = DeferredTasks()

        def boom() -> None:
            raise FileNotFoundError("already gone")

        tasks.schedule("k", 0.0, boom)
        assert tasks.join(5)

    def test_cancel_all(self) -> None:
        tasks = DeferredTasks()
        ran: list[int] = []
        tasks.schedule("x", 0.2, lambda: ran.append(1))
        tasks.cancel_all()
        time.sleep(0.3)
        assert ran == []
        assert tasks.pending() == []
