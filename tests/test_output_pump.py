"""
Tests for the output pump — bounded queue, EOF tracking, overflow.
"""

import io
import time

import pytest

from doomsetup.core.engine.output import OutputPump


def _drain(pump: OutputPump) -> list[tuple[str, str]]:
    items = []
    while not pump.finished:
        item = pump.get(timeout=0.5)
        if item is not None:
            items.append(item)
    return items


class TestOutputPump:
    def test_reads_both_sources(self):
        pump = OutputPump(queue_size=4)
        pump.attach(io.StringIO("a1\na2\n"), "stdout")
        pump.attach(io.StringIO("b1\n"), "stderr")

        items = _drain(pump)

        assert [line for src, line in items if src == "stdout"] == ["a1", "a2"]
        assert [line for src, line in items if src == "stderr"] == ["b1"]
        assert pump.join(1.0)
        assert pump.alive() == []

    def test_strips_line_endings(self):
        pump = OutputPump()
        pump.attach(io.StringIO("windows\r\nunix\n"), "stdout")
        assert [line for _, line in _drain(pump)] == ["windows", "unix"]

    def test_last_line_without_newline(self):
        pump = OutputPump()
        pump.attach(io.StringIO("done"), "stdout")
        assert _drain(pump) == [("stdout", "done")]

    def test_readers_close_their_streams(self):
        stream = io.StringIO("x\n")
        pump = OutputPump()
        pump.attach(stream, "stdout")
        _drain(pump)
        pump.join(1.0)
        assert stream.closed

    def test_not_finished_until_attached_streams_end(self):
        pump = OutputPump()
        assert pump.finished  # nothing attached yet
        pump.attach(io.StringIO(""), "stdout")
        assert not pump.finished
        _drain(pump)
        assert pump.finished

    def test_drop_policy_discards_overflow(self):
        pump = OutputPump(queue_size=1, overflow="drop")
        pump.attach(io.StringIO("".join(f"{i}\n" for i in range(100))), "stdout")
        time.sleep(0.2)  # reader runs ahead of any consumer

        items = _drain(pump)

        assert items == [("stdout", "0")]
        assert pump.dropped == 99
        assert pump.join(1.0)

    def test_unknown_overflow_policy(self):
        with pytest.raises(ValueError):
            OutputPump(overflow="grow")

    def test_close_releases_reader_blocked_on_full_queue(self):
        stream = io.StringIO("".join(f"{i}\n" for i in range(100)))
        pump = OutputPump(queue_size=1, overflow="block")
        pump.attach(stream, "stdout")
        time.sleep(0.1)  # reader fills the queue and waits for space

        assert pump.alive() == ["output-stdout"]
        assert pump.close(timeout=1.0) == []
        assert stream.closed

    def test_close_after_drain_is_immediate(self):
        pump = OutputPump()
        pump.attach(io.StringIO("x\n"), "stdout")
        _drain(pump)
        start = time.monotonic()
        assert pump.close(timeout=1.0) == []
        assert time.monotonic() - start < 0.5
