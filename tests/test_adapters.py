"""
Tests for command adapters — mock and shell.
"""

import sys
import time

import pytest

from doomsetup.adapters.base import Invocation
from doomsetup.adapters.mock import MockAdapter, ScriptedAction
from doomsetup.adapters.shell.command import ShellCommandAdapter

# ── Invocation ───────────────────────────────────────────────────────


class TestInvocation:
    def test_display(self):
        inv = Invocation(command=("docker", "compose", "up", "-d"))
        assert inv.display == "docker compose up -d"


# ── Mock adapter ─────────────────────────────────────────────────────


class TestMockAdapter:
    def test_default_succeeds_instantly(self):
        adapter = MockAdapter()
        handle = adapter.start(Invocation(command=("true",), label="a"))
        assert handle.wait() == 0
        assert handle.open_stdout().read() == ""
        assert adapter.started_labels == ["a"]

    def test_scripted_output_and_exit(self):
        adapter = MockAdapter()
        adapter.script("a", stdout=["one", "two"], stderr=["warn"], exit_code=3)
        handle = adapter.start(Invocation(command=("x",), label="a"))

        assert handle.open_stdout().read().splitlines() == ["one", "two"]
        assert handle.open_stderr().read().splitlines() == ["warn"]
        assert handle.wait() == 3

    def test_set_failure(self):
        adapter = MockAdapter()
        adapter.set_failure("a", exit_code=2, stderr="no space left")
        handle = adapter.start(Invocation(command=("x",), label="a"))
        assert handle.wait() == 2
        assert "no space left" in handle.open_stderr().read()

    def test_wait_timeout_then_terminate(self):
        adapter = MockAdapter()
        adapter.script("a", duration=5.0)
        handle = adapter.start(Invocation(command=("x",), label="a"))

        assert handle.wait(timeout=0.01) is None
        handle.terminate()
        assert handle.wait(timeout=1.0) == -15
        assert handle.terminate_calls == 1

    def test_ignores_terminate_until_killed(self):
        adapter = MockAdapter()
        adapter.script("a", duration=5.0, honors_terminate=False)
        handle = adapter.start(Invocation(command=("x",), label="a"))

        handle.terminate()
        assert handle.wait(timeout=0.05) is None
        handle.kill()
        assert handle.wait(timeout=1.0) == -9

    def test_spawn_error(self):
        adapter = MockAdapter()
        adapter.script("a", ScriptedAction(spawn_error="exec format error"))
        with pytest.raises(OSError, match="exec format error"):
            adapter.start(Invocation(command=("x",), label="a"))
        assert adapter.call_count == 1

    def test_reset(self):
        adapter = MockAdapter()
        adapter.set_failure("a")
        adapter.start(Invocation(command=("x",), label="a"))
        adapter.reset()
        assert adapter.call_count == 0
        assert adapter.start(Invocation(command=("x",), label="a")).wait() == 0


# ── Shell adapter ────────────────────────────────────────────────────


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell")
class TestShellCommandAdapter:
    def test_available(self):
        assert ShellCommandAdapter().is_available()
        assert ShellCommandAdapter().name == "shell"

    def test_output_and_exit_code(self, tmp_path):
        adapter = ShellCommandAdapter()
        handle = adapter.start(Invocation(
            command=("sh", "-c", "pwd; echo oops >&2; exit 4"),
            cwd=str(tmp_path),
        ))
        stdout, stderr = handle.open_stdout(), handle.open_stderr()

        assert handle.wait(timeout=5) == 4
        assert stdout.read().strip() == str(tmp_path)
        assert stderr.read().strip() == "oops"
        stdout.close()
        stderr.close()

    def test_env_overlay(self):
        handle = ShellCommandAdapter().start(Invocation(
            command=("sh", "-c", "echo $DOOM_TEST_VAR"),
            env={"DOOM_TEST_VAR": "hello"},
        ))
        stdout = handle.open_stdout()
        assert handle.wait(timeout=5) == 0
        assert stdout.read().strip() == "hello"
        stdout.close()
        handle.open_stderr().close()

    def test_missing_binary(self):
        with pytest.raises(OSError):
            ShellCommandAdapter().start(Invocation(command=("definitely-not-a-real-binary-xyz",)))

    def test_empty_command(self):
        with pytest.raises(OSError):
            ShellCommandAdapter().start(Invocation(command=()))

    def test_terminate_stops_process_group(self):
        handle = ShellCommandAdapter().start(Invocation(command=("sh", "-c", "sleep 30 & wait")))
        assert handle.pid
        assert handle.wait(timeout=0.1) is None

        start = time.monotonic()
        handle.terminate()
        assert handle.wait(timeout=5) is not None
        assert time.monotonic() - start < 5
        handle.open_stdout().close()
        handle.open_stderr().close()

    def test_signal_after_exit_is_noop(self):
        handle = ShellCommandAdapter().start(Invocation(command=("true",)))
        assert handle.wait(timeout=5) == 0
        handle.terminate()
        handle.kill()
        handle.open_stdout().close()
        handle.open_stderr().close()

    def test_kill_after_exit_reaches_background_children(self):
        handle = ShellCommandAdapter().start(Invocation(command=("sh", "-c", "sleep 30 & echo started")))
        assert handle.wait(timeout=5) == 0

        start = time.monotonic()
        handle.kill()
        stdout = handle.open_stdout()
        assert stdout.read() == "started\n"  # EOF once the background sleep is gone
        assert time.monotonic() - start < 5
        stdout.close()
        handle.open_stderr().close()
