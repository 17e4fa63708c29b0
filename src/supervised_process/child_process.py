"""Poll-driven child process supervisor.

## Basic Usage

```python
proc = ChildProcess(ProcessSpec("/bin/sh", ["-c", "echo hi; exit 3"]))
while proc.update():
    pass
print(proc.exit_code)  # 3
print(proc.stdout)     # b"hi\\n"
```

### Feeding stdin and enforcing a timeout
```python
proc = ChildProcess(ProcessSpec("cat", stdin=b"data", timeout_ms=1000))
while proc.running:
    proc.update()
if proc.timed_out:
    ...  # exit_code is -1
```

### Background polling
```python
future = ChildProcess(ProcessSpec("make", ["all"])).watch()
exit_code = future.result()
```

## Key Features

- **Non-blocking by construction**: `update()` performs one bounded pass
  (stdin write, stdout/stderr drain, exit check) and waits at most 10 ms.
- **No deadlocks**: all three streams are serviced in the same pass, so a
  child blocked on a full stdout pipe never stalls stdin delivery.
- **Escalating timeout**: graceful interrupt first, forceful kill 2.5 s later.
- **Exactly-once reaping**: once `running` is false the child is reaped and
  every pipe descriptor is closed.
- **Line callbacks**: optional per-line filtering/rewriting of captured output.
"""

from __future__ import annotations

import contextlib
import logging
import subprocess
import threading
import time
import warnings
import weakref
from collections.abc import Sequence
from concurrent.futures import Future
from typing import TYPE_CHECKING

from supervised_process.composer import compose_environment
from supervised_process.errors import InvalidArgumentError, SupervisedProcessError
from supervised_process.io_pump import IOPump, StreamError
from supervised_process.launcher import Launcher, default_launcher
from supervised_process.pipes import PipeSet
from supervised_process.process_spec import ProcessSpec
from supervised_process.termination import TerminationState, TimeoutSupervisor

if TYPE_CHECKING:
    from supervised_process.process_watcher import ProcessWatcher

logger = logging.getLogger(__name__)

# Upper bound for the wait inside a single update() pass.
POLL_INTERVAL_S = 0.01
# How long kill() waits after its first signal before escalating.
KILL_WAIT_S = 0.5


def _finalize_unreaped(popen: subprocess.Popen[bytes], pipes: PipeSet) -> None:
    """GC fallback: the owner dropped a process that was never reaped."""
    if popen.poll() is None:
        warnings.warn(f"child process {popen.pid} is still running", ResourceWarning, stacklevel=2)
        with contextlib.suppress(ProcessLookupError, OSError):
            popen.kill()
        with contextlib.suppress(OSError, subprocess.SubprocessError):
            popen.wait()
    pipes.close()


class ChildProcess:
    """A launched program whose streams and lifetime are driven by :meth:`update`.

    The instance exclusively owns the OS process and its pipe descriptors.
    ``update`` and ``kill`` are serialized internally; everything else must be
    called from one thread at a time. Reading settled terminal state from
    other threads is fine.

    Raises (from the constructor, or from :meth:`start` with ``auto_run=False``):
        InvalidArgumentError: If ``spec`` is not a ProcessSpec.
        ResourceExhaustedError: If the pipes could not be created.
        ProgramNotFoundError: If the executable could not be found.
        LaunchFailedError: If the OS refused to start the program.
    """

    def __init__(
        self,
        spec: ProcessSpec,
        auto_run: bool = True,
        launcher: Launcher | None = None,
        poll_interval: float = POLL_INTERVAL_S,
    ) -> None:
        if not isinstance(spec, ProcessSpec):
            msg = f"spec must be a ProcessSpec, got {type(spec).__name__}"
            raise InvalidArgumentError(msg)
        self.spec = spec
        self.poll_interval = poll_interval
        self._launcher = launcher if launcher is not None else default_launcher()
        self._supervisor = TimeoutSupervisor(self._launcher, spec.timeout_ms)
        self.proc: subprocess.Popen[bytes] | None = None
        self._pipes: PipeSet | None = None
        self._pump: IOPump | None = None
        self._running = False
        self._killed = False
        self._exit_code: int | None = None
        self._start_time: float | None = None
        self._start_monotonic: float | None = None
        self._end_monotonic: float | None = None
        self._finalizer: weakref.finalize | None = None
        self._stdout_view = bytearray()
        self._stderr_view = bytearray()
        self._watcher: ProcessWatcher | None = None
        # Serializes update() and kill() so a watched process can be killed.
        self._lock = threading.RLock()
        if auto_run:
            self.start()

    def __repr__(self) -> str:
        state = "running" if self._running else f"exit_code={self._exit_code}"
        return f"<ChildProcess pid={self.pid} {self.spec.program!r} {state}>"

    def __enter__(self) -> ChildProcess:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.kill()

    # ------------------------------------------------------------------
    # Launch

    def start(self) -> None:
        """Create the pipes and launch the child.

        Any failure releases every resource allocated so far; the instance
        then stays in the not-running state.
        """
        if self.proc is not None:
            raise SupervisedProcessError("Process was already started.")

        spec = self.spec
        env = compose_environment(spec.environment, inherit=not spec.no_inherited_environment)
        pipes = PipeSet.create(
            stdin=True,
            stdout=not spec.discard_stdout,
            stderr=not (spec.discard_stderr or spec.merge_stderr_to_stdout),
        )
        with pipes:
            popen = self._launcher.launch(spec, pipes, env)

        self.proc = popen
        self._pipes = pipes
        self._start_time = time.time()
        self._start_monotonic = time.monotonic()
        self._running = True
        self._finalizer = weakref.finalize(self, _finalize_unreaped, popen, pipes)
        self._pump = IOPump(
            pipes,
            stdin_data=spec.stdin,
            on_stdout_line=spec.on_stdout_line,
            on_stderr_line=spec.on_stderr_line,
        )
        # Empty stdin: close right away so the child sees EOF.
        self._pump.write_stdin()

    # ------------------------------------------------------------------
    # Polling

    def update(self) -> bool:
        """Run one non-blocking supervision pass.

        Enforces the timeout, moves pending stdin bytes to the child, drains
        available stdout/stderr, and reaps the child if it has exited. Waits
        at most ``poll_interval`` seconds. No-op once terminal.

        Returns:
            True while the child is still running.
        """
        with self._lock:
            if not self._running:
                return False
            assert self.proc is not None and self._pump is not None

            pump = self._pump
            # A child that already exited is reaped, never escalated.
            if self.proc.poll() is None:
                self._supervisor.check(self.proc, self._elapsed_ms(), self.spec.program)
                pump.write_stdin()
                self._launcher.wait_for_io(self.proc, pump.open_readers(), pump.open_writers(), self.poll_interval)
            pump.pump()
            self._sync_buffers()

            if self.proc.poll() is not None:
                self._reap()
            return self._running

    def _reap(self) -> None:
        """Record the exit status and release every descriptor, once."""
        assert self.proc is not None and self._pump is not None
        if not self._running:
            return
        # One bounded drain of what the child wrote before it exited.
        self._pump.pump()
        self._pump.flush_lines()
        self._pump.close()
        self._sync_buffers()
        if self._pipes is not None:
            self._pipes.close()

        returncode = self.proc.returncode
        if self._killed or self._supervisor.timed_out:
            self._exit_code = -1
        else:
            self._exit_code = returncode
        self._running = False
        self._end_monotonic = time.monotonic()
        self._supervisor.finish()
        if self._finalizer is not None:
            self._finalizer.detach()
        logger.debug(
            "pid %d reaped: returncode=%s exit_code=%s timed_out=%s",
            self.proc.pid,
            returncode,
            self._exit_code,
            self._supervisor.timed_out,
        )

    def kill(self, force: bool = False) -> None:
        """Terminate the child now and reap it before returning.

        Sends SIGTERM (SIGKILL / TerminateProcess with ``force``), escalates
        to a kill if the child is still alive after a short wait, then reaps
        and closes everything. ``exit_code`` becomes -1. Safe to call
        repeatedly and on a process that already finished.
        """
        with self._lock:
            if not self._running or self.proc is None:
                return
            self._killed = True
            self._launcher.terminate(self.proc, force=force)
            try:
                self.proc.wait(timeout=KILL_WAIT_S)
            except subprocess.TimeoutExpired:
                logger.info("pid %d did not terminate, killing", self.proc.pid)
                self._launcher.kill(self.proc)
                self.proc.wait()
            self._reap()

    def wait(self, timeout: float | None = None) -> int | None:
        """Call :meth:`update` until the child finishes.

        Args:
            timeout: Seconds to keep polling. None polls until termination.

        Returns:
            The exit code, or None if ``timeout`` elapsed first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.update():
            if deadline is not None and time.monotonic() > deadline:
                return None
        return self._exit_code

    def watch(self, poll_interval: float = 0.0) -> Future[int | None]:
        """Hand polling over to a background thread.

        After this call the watcher thread owns ``update``; the caller must
        only read state or call ``kill``.
        """
        from supervised_process.process_watcher import ProcessWatcher  # noqa: PLC0415

        self._watcher = ProcessWatcher(self, poll_interval=poll_interval)
        return self._watcher.start()

    # ------------------------------------------------------------------
    # State

    def _elapsed_ms(self) -> float:
        return self.runtime * 1000.0

    def _sync_buffers(self) -> None:
        assert self._pump is not None
        if self._pump.stdout:
            self._stdout_view += self._pump.stdout
            self._pump.stdout.clear()
        if self._pump.stderr:
            self._stderr_view += self._pump.stderr
            self._pump.stderr.clear()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def finished(self) -> bool:
        return self.proc is not None and not self._running

    @property
    def exit_code(self) -> int | None:
        """Exit status once terminal; -1 if killed or timed out; None while running."""
        return self._exit_code

    @property
    def timed_out(self) -> bool:
        return self._supervisor.timed_out

    @property
    def killed(self) -> bool:
        return self._killed

    @property
    def termination_state(self) -> TerminationState:
        return self._supervisor.state

    @property
    def pid(self) -> int | None:
        return self.proc.pid if self.proc is not None else None

    @property
    def program(self) -> str:
        return self.spec.program

    @property
    def arguments(self) -> tuple[str, ...]:
        return self.spec.arguments

    @property
    def environment(self) -> tuple[tuple[str, str], ...]:
        return self.spec.environment

    @property
    def timeout(self) -> int:
        """Timeout in milliseconds; ``<= 0`` means none. Adjustable while running."""
        return self._supervisor.timeout_ms

    @timeout.setter
    def timeout(self, timeout_ms: int) -> None:
        self._supervisor.timeout_ms = int(timeout_ms)

    @property
    def start_time(self) -> float | None:
        """Wall-clock launch time (``time.time()``)."""
        return self._start_time

    @property
    def runtime(self) -> float:
        """Seconds since launch, frozen once the process is terminal."""
        if self._start_monotonic is None:
            return 0.0
        end = self._end_monotonic if self._end_monotonic is not None else time.monotonic()
        return end - self._start_monotonic

    @property
    def stdin(self) -> bytes:
        """Bytes still queued for the child's stdin."""
        return self._pump.pending_stdin if self._pump is not None else self.spec.stdin

    @property
    def stdout(self) -> bytes:
        return bytes(self._stdout_view)

    @stdout.setter
    def stdout(self, value: bytes) -> None:
        self._stdout_view = bytearray(value)

    @property
    def stderr(self) -> bytes:
        return bytes(self._stderr_view)

    @stderr.setter
    def stderr(self, value: bytes) -> None:
        self._stderr_view = bytearray(value)

    @property
    def io_errors(self) -> Sequence[StreamError]:
        """Stream failures recorded so far (streams are closed, process is not)."""
        return tuple(self._pump.errors) if self._pump is not None else ()

    @property
    def io_error(self) -> str | None:
        """Message of the most recent stream failure, if any."""
        errors = self.io_errors
        return str(errors[-1]) if errors else None
