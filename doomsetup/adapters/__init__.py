"""
Command adapters — the boundary between the executor and the host.
"""

from doomsetup.adapters.base import ActionHandle, CommandAdapter, Invocation
from doomsetup.adapters.mock import MockAdapter, ScriptedAction
from doomsetup.adapters.shell.command import ShellCommandAdapter

__all__ = [
    "ActionHandle",
    "CommandAdapter",
    "Invocation",
    "MockAdapter",
    "ScriptedAction",
    "ShellCommandAdapter",
]
