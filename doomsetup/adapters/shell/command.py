"""
Shell command adapter — start external commands as subprocesses.

This is the production adapter: each invocation becomes a
``subprocess.Popen`` in its own session, so terminate/kill reach
the whole process group (install scripts fork package managers).
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
from typing import TextIO

from doomsetup.adapters.base import ActionHandle, CommandAdapter, Invocation

logger = logging.getLogger(__name__)

_POSIX = os.name == "posix"


class ProcessHandle(ActionHandle):
    """A running subprocess."""

    def __init__(self, proc: subprocess.Popen):
        self._proc = proc

    @property
    def pid(self) -> int | None:
        return self._proc.pid

    def open_stdout(self) -> TextIO:
        if self._proc.stdout is None:
            raise OSError("stdout pipe not available")
        return self._proc.stdout

    def open_stderr(self) -> TextIO:
        if self._proc.stderr is None:
            raise OSError("stderr pipe not available")
        return self._proc.stderr

    def wait(self, timeout: float | None = None) -> int | None:
        try:
            return self._proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None

    def terminate(self) -> None:
        self._signal(signal.SIGTERM)

    def kill(self) -> None:
        self._signal(signal.SIGKILL if _POSIX else signal.SIGTERM)

    def _signal(self, sig: int) -> None:
        if not _POSIX:
            if self._proc.poll() is not None:
                return
            if sig == signal.SIGTERM:
                self._proc.terminate()
            else:
                self._proc.kill()
            return
        # The child leads its own session, so its pid is the group id.
        # The group outlives the leader while background children hold on.
        try:
            os.killpg(self._proc.pid, sig)
        except (ProcessLookupError, PermissionError) as e:
            logger.debug("Signal %s to group %s failed: %s", sig, self._proc.pid, e)


class ShellCommandAdapter(CommandAdapter):
    """Start commands with ``subprocess.Popen`` and piped output."""

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def start(self, invocation: Invocation) -> ActionHandle:
        if not invocation.command:
            raise OSError("empty command")

        env = None
        if invocation.env:
            env = os.environ.copy()
            env.update(invocation.env)

        logger.debug("Starting: %s (cwd=%s)", invocation.display, invocation.cwd)
        proc = subprocess.Popen(
            list(invocation.command),
            cwd=invocation.cwd,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            bufsize=1,
            start_new_session=_POSIX,
        )
        return ProcessHandle(proc)
