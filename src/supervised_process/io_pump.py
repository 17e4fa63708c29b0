"""Non-blocking I/O pump for a child's standard streams.

One :meth:`IOPump.pump` call feeds queued stdin bytes to the child and
drains at most MAX_CHUNKS_PER_PASS chunks per output stream, without ever
blocking.
Would-block and interrupted calls simply end the pass for that stream; a
broken stdin pipe is expected (the child stopped reading) and not an error;
any other failure closes only the affected stream and is recorded.
"""

from __future__ import annotations

import logging
import os

from supervised_process.line_filter import LineCallback, LineSplitter
from supervised_process.pipes import PipeEnd, PipeSet

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536
# Upper bound on reads per stream in one pass.
MAX_CHUNKS_PER_PASS = 64


class StreamError:
    """An I/O failure recorded against one stream."""

    def __init__(self, stream: str, error: OSError) -> None:
        self.stream = stream
        self.error = error

    def __str__(self) -> str:
        return f"{self.stream}: {self.error}"

    def __repr__(self) -> str:
        return f"StreamError({self.stream!r}, {self.error!r})"


class IOPump:
    """Moves bytes between the parent ends of a pipe set and in-memory buffers."""

    def __init__(
        self,
        pipes: PipeSet,
        stdin_data: bytes = b"",
        on_stdout_line: LineCallback | None = None,
        on_stderr_line: LineCallback | None = None,
    ) -> None:
        self._pipes = pipes
        self._pending = bytearray(stdin_data)
        self.stdout = bytearray()
        self.stderr = bytearray()
        self.errors: list[StreamError] = []
        self._stdout_lines = LineSplitter(on_stdout_line) if on_stdout_line is not None else None
        self._stderr_lines = LineSplitter(on_stderr_line) if on_stderr_line is not None else None

    @property
    def pending_stdin(self) -> bytes:
        return bytes(self._pending)

    def open_readers(self) -> list[PipeEnd]:
        return [end for end in (self._pipes.stdout, self._pipes.stderr) if end is not None and not end.closed]

    def open_writers(self) -> list[PipeEnd]:
        end = self._pipes.stdin
        if end is None or end.closed or not self._pending:
            return []
        return [end]

    def pump(self) -> None:
        """One bounded pass: write stdin, then drain stdout and stderr."""
        self.write_stdin()
        self._read(self._pipes.stdout, self.stdout, self._stdout_lines)
        self._read(self._pipes.stderr, self.stderr, self._stderr_lines)

    def write_stdin(self) -> None:
        end = self._pipes.stdin
        if end is None or end.closed:
            return
        while self._pending:
            try:
                written = os.write(end.fileno(), self._pending[:READ_CHUNK_SIZE])
            except (BlockingIOError, InterruptedError):
                return
            except BrokenPipeError:
                logger.debug("child closed stdin, dropping %d queued bytes", len(self._pending))
                self._pending.clear()
                break
            except OSError as e:
                self._fail(end, e)
                self._pending.clear()
                return
            if written <= 0:
                return
            del self._pending[:written]
        # Everything delivered (or undeliverable): let the child see EOF.
        end.close()

    def _read(self, end: PipeEnd | None, buffer: bytearray, lines: LineSplitter | None) -> None:
        if end is None or end.closed:
            return
        for _ in range(MAX_CHUNKS_PER_PASS):
            try:
                chunk = os.read(end.fileno(), READ_CHUNK_SIZE)
            except (BlockingIOError, InterruptedError):
                return
            except OSError as e:
                self._fail(end, e)
                return
            if not chunk:
                end.close()
                return
            buffer += lines.feed(chunk) if lines is not None else chunk

    def flush_lines(self) -> None:
        """Hand trailing partial lines to the line callbacks."""
        if self._stdout_lines is not None:
            self.stdout += self._stdout_lines.flush()
        if self._stderr_lines is not None:
            self.stderr += self._stderr_lines.flush()

    def close(self) -> None:
        self._pending.clear()
        for end in self._pipes.parent_ends():
            end.close()

    def _fail(self, end: PipeEnd, error: OSError) -> None:
        logger.warning("I/O error on child %s, closing stream: %s", end.name, error)
        self.errors.append(StreamError(end.name, error))
        end.close()
