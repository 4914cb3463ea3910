"""
Mock adapter — scripted test double for the command adapter.

Used by tests and by ``install --mock`` to run a whole plan without
touching the host. Each invocation is matched by its label (the
step name) and can be given output lines, an exit code, a run
time, or a failure to spawn / open a stream.
"""

from __future__ import annotations

import io
import threading
import time
from dataclasses import dataclass, field
from typing import TextIO

from doomsetup.adapters.base import ActionHandle, CommandAdapter, Invocation


@dataclass
class ScriptedAction:
    """How a mocked command behaves."""

    stdout: list[str] = field(default_factory=list)
    stderr: list[str] = field(default_factory=list)
    exit_code: int = 0
    duration: float = 0.0          # seconds before exit
    honors_terminate: bool = True  # exits early when asked to terminate
    spawn_error: str | None = None
    stderr_error: str | None = None


class _TrackedStream(io.StringIO):
    """StringIO that remembers it was closed (survives close for asserts)."""

    def __init__(self, lines: list[str]):
        super().__init__("".join(f"{line}\n" for line in lines))
        self.was_closed = False

    def close(self) -> None:
        self.was_closed = True
        super().close()


class MockHandle(ActionHandle):
    """A fake running action driven by a ``ScriptedAction``."""

    def __init__(self, script: ScriptedAction):
        self._script = script
        self._started = time.monotonic()
        self._stop = threading.Event()
        self._killed = False
        self.terminate_calls = 0
        self.kill_calls = 0
        self.stdout_stream: _TrackedStream | None = None
        self.stderr_stream: _TrackedStream | None = None

    @property
    def pid(self) -> int | None:
        return None

    def open_stdout(self) -> TextIO:
        self.stdout_stream = _TrackedStream(self._script.stdout)
        return self.stdout_stream

    def open_stderr(self) -> TextIO:
        if self._script.stderr_error:
            raise OSError(self._script.stderr_error)
        self.stderr_stream = _TrackedStream(self._script.stderr)
        return self.stderr_stream

    def wait(self, timeout: float | None = None) -> int | None:
        remaining = self._script.duration - (time.monotonic() - self._started)
        if remaining > 0:
            if timeout is not None and timeout < remaining:
                if self._stop.wait(timeout):
                    return self._exit_code_after_stop()
                return None
            if self._stop.wait(remaining):
                return self._exit_code_after_stop()
        return self._script.exit_code

    def _exit_code_after_stop(self) -> int:
        return -9 if self._killed else -15

    def terminate(self) -> None:
        self.terminate_calls += 1
        if self._script.honors_terminate:
            self._stop.set()

    def kill(self) -> None:
        self.kill_calls += 1
        self._killed = True
        self._stop.set()


class MockAdapter(CommandAdapter):
    """Universal mock adapter for testing.

    By default every command succeeds instantly with no output.
    """

    def __init__(self, adapter_name: str = "mock", available: bool = True):
        self._name = adapter_name
        self._available = available
        self._scripts: dict[str, ScriptedAction] = {}
        self._call_log: list[Invocation] = []
        self.handles: dict[str, MockHandle] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[Invocation]:
        """All invocations this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def started_labels(self) -> list[str]:
        """Labels (step names) of every started invocation, in order."""
        return [inv.label for inv in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def script(self, label: str, action: ScriptedAction | None = None, **kwargs) -> ScriptedAction:
        """Configure the behaviour for invocations carrying ``label``."""
        scripted = action or ScriptedAction(**kwargs)
        self._scripts[label] = scripted
        return scripted

    def set_failure(self, label: str, exit_code: int = 1, stderr: str = "Mock failure") -> None:
        """Configure a labelled invocation to exit non-zero."""
        self.script(label, exit_code=exit_code, stderr=[stderr])

    def start(self, invocation: Invocation) -> ActionHandle:
        self._call_log.append(invocation)
        scripted = self._scripts.get(invocation.label, ScriptedAction())
        if scripted.spawn_error:
            raise OSError(scripted.spawn_error)
        handle = MockHandle(scripted)
        self.handles[invocation.label] = handle
        return handle

    def reset(self) -> None:
        """Clear call history and scripts."""
        self._scripts.clear()
        self._call_log.clear()
        self.handles.clear()
