"""
Adapter base — the protocol contract between the executor and the
commands it runs.

The executor never spawns processes itself. It asks a
``CommandAdapter`` to start an ``Invocation`` and gets back an
``ActionHandle``: two readable output streams, a blocking wait,
and a way to ask the action to stop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TextIO

from pydantic import BaseModel, Field


class Invocation(BaseModel):
    """Everything an adapter needs to start an action."""

    command: tuple[str, ...]
    cwd: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    label: str = ""   # step name, for logs

    @property
    def display(self) -> str:
        """The command as a single line."""
        return " ".join(self.command)


class ActionHandle(ABC):
    """A started action.

    ``open_stdout`` / ``open_stderr`` may raise ``OSError``; the
    caller owns every stream it successfully opened and must close
    it.
    """

    @property
    @abstractmethod
    def pid(self) -> int | None:
        """Process id, if the action is a process."""

    @abstractmethod
    def open_stdout(self) -> TextIO:
        """Return the primary output stream."""

    @abstractmethod
    def open_stderr(self) -> TextIO:
        """Return the secondary output stream."""

    @abstractmethod
    def wait(self, timeout: float | None = None) -> int | None:
        """Block until the action exits.

        Returns:
            The exit code, or None if ``timeout`` elapsed first.
        """

    @abstractmethod
    def terminate(self) -> None:
        """Ask the action to stop (cooperative)."""

    @abstractmethod
    def kill(self) -> None:
        """Stop the action forcibly, along with anything it left running.

        Safe to call after the action exited.
        """


class CommandAdapter(ABC):
    """Abstract base class for command adapters.

    To create a new adapter:
        1. Subclass CommandAdapter
        2. Implement name, is_available, start
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'shell', 'mock')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter can start actions. Never raises."""

    @abstractmethod
    def start(self, invocation: Invocation) -> ActionHandle:
        """Start the action.

        Raises:
            OSError: If the action cannot be spawned.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
