"""Line-oriented output callbacks.

A line callback receives each complete output line (decoded, without the
trailing CR/LF) and decides what ends up in the accumulated output:

- ``True``: keep the original line.
- a ``str``: keep this text instead (the original line ending is re-added).
- ``False`` / ``None``: drop the line, e.g. because the callback stored it.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Union

LineCallback = Callable[[str], Union[bool, str, None]]


class LineSplitter:
    """Buffers raw bytes until newlines and runs a callback per line."""

    def __init__(self, callback: LineCallback, encoding: str = "utf-8") -> None:
        self._callback = callback
        self._encoding = encoding
        self._buffer = bytearray()

    @property
    def pending(self) -> bytes:
        """Bytes of an incomplete trailing line not yet handed to the callback."""
        return bytes(self._buffer)

    def feed(self, data: bytes) -> bytes:
        """Add ``data`` and return the bytes to append to the output."""
        self._buffer += data
        out = bytearray()
        while True:
            pos = self._buffer.find(b"\n")
            if pos < 0:
                break
            raw = bytes(self._buffer[: pos + 1])
            del self._buffer[: pos + 1]
            out += self._apply(raw)
        return bytes(out)

    def flush(self) -> bytes:
        """Hand a trailing partial line (if any) to the callback."""
        if not self._buffer:
            return b""
        raw = bytes(self._buffer)
        self._buffer.clear()
        return self._apply(raw)

    def _apply(self, raw: bytes) -> bytes:
        line = raw.rstrip(b"\r\n")
        ending = raw[len(line) :]
        verdict = self._callback(line.decode(self._encoding, errors="replace"))
        if verdict is True:
            return raw
        if isinstance(verdict, str):
            return verdict.encode(self._encoding) + ending
        return b""


class TimeDeltaFormatter:
    """Line callback that prefixes each line with time elapsed since start.

    Example output format: "[1.23] Hello world"
    """

    def __init__(self, start_time: float | None = None) -> None:
        """Initialize the formatter.

        Args:
            start_time: Reference time (``time.time()``). If None, the time of
                       the first line is used. Pass ChildProcess.start_time for
                       accurate timing.
        """
        self._start_time = start_time

    def __call__(self, line: str) -> str:
        if self._start_time is None:
            self._start_time = time.time()
            elapsed = 0.0
        else:
            elapsed = time.time() - self._start_time
        return f"[{elapsed:.2f}] {line}"
