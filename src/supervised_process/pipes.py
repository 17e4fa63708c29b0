"""Pipe set connecting the parent to a child's standard streams.

Each stream gets one ``os.pipe()``. Descriptors returned by ``os.pipe()`` are
non-inheritable, so they never leak into other children; the launcher makes
the child ends the child's fds 0/1/2. Parent ends are switched to
non-blocking mode right after creation.
"""

from __future__ import annotations

import logging
import os
from types import TracebackType

from supervised_process.errors import ResourceExhaustedError

logger = logging.getLogger(__name__)


class PipeEnd:
    """Owner of a single pipe descriptor. Closing is idempotent."""

    def __init__(self, fd: int, name: str) -> None:
        self._fd: int | None = fd
        self.name = name

    def __repr__(self) -> str:
        state = "closed" if self._fd is None else f"fd={self._fd}"
        return f"PipeEnd({self.name}, {state})"

    @property
    def closed(self) -> bool:
        return self._fd is None

    def fileno(self) -> int:
        if self._fd is None:
            msg = f"pipe end {self.name} is closed"
            raise ValueError(msg)
        return self._fd

    def close(self) -> None:
        fd, self._fd = self._fd, None
        if fd is None:
            return
        logger.debug("close %s (fd %d)", self.name, fd)
        try:
            os.close(fd)
        except OSError as e:
            logger.debug("close %s failed: %s", self.name, e)


class _Pipe:
    """Both ends of one unidirectional pipe, as parent and child see them."""

    def __init__(self, parent: PipeEnd, child: PipeEnd) -> None:
        self.parent = parent
        self.child = child

    def close(self) -> None:
        self.parent.close()
        self.child.close()


class PipeSet:
    """Up to three pipes: child stdin, child stdout, child stderr.

    Use :meth:`create`; a stream that is not requested (discarded, or stderr
    merged into stdout) has no pipe and its attributes are None.
    """

    def __init__(self) -> None:
        self._stdin: _Pipe | None = None
        self._stdout: _Pipe | None = None
        self._stderr: _Pipe | None = None

    @classmethod
    def create(cls, stdin: bool = True, stdout: bool = True, stderr: bool = True) -> PipeSet:
        """Allocate the requested pipes.

        Raises:
            ResourceExhaustedError: If any pipe cannot be created or
                configured. Pipes created so far are closed first.
        """
        pipes = cls()
        try:
            if stdin:
                # Child reads, parent writes.
                read_fd, write_fd = os.pipe()
                pipes._stdin = _Pipe(PipeEnd(write_fd, "stdin"), PipeEnd(read_fd, "child-stdin"))
                os.set_blocking(write_fd, False)
            if stdout:
                read_fd, write_fd = os.pipe()
                pipes._stdout = _Pipe(PipeEnd(read_fd, "stdout"), PipeEnd(write_fd, "child-stdout"))
                os.set_blocking(read_fd, False)
            if stderr:
                read_fd, write_fd = os.pipe()
                pipes._stderr = _Pipe(PipeEnd(read_fd, "stderr"), PipeEnd(write_fd, "child-stderr"))
                os.set_blocking(read_fd, False)
        except OSError as e:
            pipes.close()
            msg = f"Failed to create pipes: {e}"
            raise ResourceExhaustedError(msg) from e
        return pipes

    def __enter__(self) -> PipeSet:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        # Only tear down on error; on success ownership moves to the caller.
        if exc_type is not None:
            self.close()
        return False

    # Parent-side ends
    @property
    def stdin(self) -> PipeEnd | None:
        return self._stdin.parent if self._stdin else None

    @property
    def stdout(self) -> PipeEnd | None:
        return self._stdout.parent if self._stdout else None

    @property
    def stderr(self) -> PipeEnd | None:
        return self._stderr.parent if self._stderr else None

    # Child-side ends
    @property
    def child_stdin(self) -> PipeEnd | None:
        return self._stdin.child if self._stdin else None

    @property
    def child_stdout(self) -> PipeEnd | None:
        return self._stdout.child if self._stdout else None

    @property
    def child_stderr(self) -> PipeEnd | None:
        return self._stderr.child if self._stderr else None

    def parent_ends(self) -> list[PipeEnd]:
        return [end for end in (self.stdin, self.stdout, self.stderr) if end is not None]

    def close_child_ends(self) -> None:
        """Release the child-side ends once the child owns its copies."""
        for end in (self.child_stdin, self.child_stdout, self.child_stderr):
            if end is not None:
                end.close()

    def close(self) -> None:
        for pipe in (self._stdin, self._stdout, self._stderr):
            if pipe is not None:
                pipe.close()

    @property
    def all_closed(self) -> bool:
        ends = self.parent_ends() + [
            end for end in (self.child_stdin, self.child_stdout, self.child_stderr) if end is not None
        ]
        return all(end.closed for end in ends)
