"""
doomsetup — installation orchestration for the Doom Coding environment.

Detects the host, builds a resolved step plan, runs it with streamed
progress and cooperative cancellation, and verifies the result.
"""

__version__ = "0.1.0"
