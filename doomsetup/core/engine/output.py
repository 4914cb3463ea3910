"""
Output pump — drain a step's two output streams into one bounded queue.

One reader thread per stream pushes lines into a shared
``queue.Queue`` of fixed size. The executor thread is the only
consumer. When the queue is full the readers either wait for space
(``block``: backpressure reaches the child through its pipe) or
drop the line and count it (``drop``). The queue never grows past
its size.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import TextIO

logger = logging.getLogger(__name__)

_EOF = object()
_PUT_TIMEOUT = 0.05   # how often a blocked reader rechecks the stop flag


class OutputPump:
    """Concurrent line readers feeding a bounded queue.

    Readers own the streams they are attached to and close them
    when the stream is exhausted or the pump is closed.
    """

    def __init__(self, queue_size: int = 256, overflow: str = "block"):
        if overflow not in ("block", "drop"):
            raise ValueError(f"Unknown overflow policy: {overflow}")
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._overflow = overflow
        self._readers: list[threading.Thread] = []
        self._open = 0
        self._dropped = 0
        self._lock = threading.Lock()
        self._stop = threading.Event()

    @property
    def dropped(self) -> int:
        """Lines discarded under the ``drop`` policy."""
        with self._lock:
            return self._dropped

    @property
    def finished(self) -> bool:
        """True once every attached stream hit EOF and the queue is empty."""
        return self._open == 0 and self._queue.empty()

    def attach(self, stream: TextIO, source: str) -> None:
        """Start a reader thread for ``stream``."""
        self._open += 1
        reader = threading.Thread(
            target=self._read,
            args=(stream, source),
            name=f"output-{source}",
            daemon=True,
        )
        self._readers.append(reader)
        reader.start()

    def get(self, timeout: float) -> tuple[str, str] | None:
        """Next ``(source, line)``, or None if nothing arrived in time."""
        while True:
            try:
                item = self._queue.get(timeout=timeout)
            except queue.Empty:
                return None
            if item is _EOF:
                self._open -= 1
                if self._open == 0 and self._queue.empty():
                    return None
                continue
            return item

    def join(self, timeout: float) -> bool:
        """Wait for the readers to exit. Returns True if all did."""
        for reader in self._readers:
            reader.join(timeout)
        return not any(r.is_alive() for r in self._readers)

    def alive(self) -> list[str]:
        """Names of readers still running."""
        return [r.name for r in self._readers if r.is_alive()]

    def close(self, timeout: float) -> list[str]:
        """Stop consuming and wait for every reader to release its stream.

        Readers waiting for queue space give up at once and discard
        what they hold. A reader still inside a read returns once the
        writer side of its pipe is gone, then closes the stream.

        Returns:
            Names of readers that did not exit within ``timeout``.
        """
        self._stop.set()
        self.join(timeout)
        stuck = self.alive()
        if stuck:
            logger.warning("Output readers still running after close: %s", ", ".join(stuck))
        return stuck

    # ── Reader side ─────────────────────────────────────────────

    def _read(self, stream: TextIO, source: str) -> None:
        try:
            for raw in iter(stream.readline, ""):
                if self._stop.is_set():
                    break
                self._push((source, raw.rstrip("\r\n")))
        except (OSError, ValueError) as e:
            logger.debug("Reader %s stopped: %s", source, e)
        finally:
            try:
                stream.close()
            except (OSError, ValueError):
                pass
            # EOF markers are never dropped while the pump is consumed
            self._put_waiting(_EOF)

    def _push(self, item: tuple[str, str]) -> None:
        if self._overflow == "block":
            self._put_waiting(item)
            return
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            with self._lock:
                self._dropped += 1

    def _put_waiting(self, item: object) -> bool:
        while True:
            try:
                self._queue.put(item, timeout=_PUT_TIMEOUT)
                return True
            except queue.Full:
                if self._stop.is_set():
                    return False
