"""Platform launch backends.

Both backends start the child through ``subprocess.Popen`` with the child
ends of a :class:`~supervised_process.pipes.PipeSet` as its standard
streams, and provide the signalling and bounded-wait primitives the
supervisor needs. Pick one with :func:`default_launcher`.
"""

from __future__ import annotations

import contextlib
import logging
import os
import selectors
import signal
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from supervised_process.composer import compose_command
from supervised_process.errors import LaunchFailedError, ProgramNotFoundError
from supervised_process.pipes import PipeEnd, PipeSet
from supervised_process.process_spec import ProcessSpec

logger = logging.getLogger(__name__)


def _child_streams(spec: ProcessSpec, pipes: PipeSet) -> tuple[Any, Any, Any]:
    """Map the ProcessSpec stream flags onto Popen stdin/stdout/stderr values."""
    stdin: Any = pipes.child_stdin.fileno() if pipes.child_stdin else subprocess.DEVNULL
    stdout: Any = pipes.child_stdout.fileno() if pipes.child_stdout else subprocess.DEVNULL
    if spec.merge_stderr_to_stdout:
        stderr: Any = stdout
    elif pipes.child_stderr is not None:
        stderr = pipes.child_stderr.fileno()
    else:
        stderr = subprocess.DEVNULL
    return stdin, stdout, stderr


class Launcher(ABC):
    """Starts a child and signals it. One instance can launch many children."""

    name: str = "abstract"

    def launch(self, spec: ProcessSpec, pipes: PipeSet, env: Mapping[str, str]) -> subprocess.Popen[bytes]:
        """Start ``spec`` wired to ``pipes`` and release the child-side ends.

        Raises:
            ProgramNotFoundError: The executable could not be found.
            LaunchFailedError: The OS refused to start it for another reason.
        """
        stdin, stdout, stderr = _child_streams(spec, pipes)
        try:
            popen = self._spawn(spec, dict(env), stdin, stdout, stderr)
        except (FileNotFoundError, NotADirectoryError) as e:
            if spec.cwd is not None and e.filename == spec.cwd:
                msg = f"Failed to run '{spec.program}': invalid working directory {spec.cwd!r}"
                raise LaunchFailedError(msg) from e
            msg = f"Failed to run '{spec.program}': {e.strerror or e}"
            raise ProgramNotFoundError(msg) from e
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            msg = f"Failed to run '{spec.program}': {e}"
            raise LaunchFailedError(msg) from e
        finally:
            pipes.close_child_ends()

        logger.debug("%s launcher started pid %d: %s", self.name, popen.pid, spec.program)
        return popen

    @abstractmethod
    def _spawn(
        self,
        spec: ProcessSpec,
        env: dict[str, str],
        stdin: Any,
        stdout: Any,
        stderr: Any,
    ) -> subprocess.Popen[bytes]: ...

    @abstractmethod
    def interrupt(self, popen: subprocess.Popen[bytes]) -> None:
        """First, graceful stage of timeout escalation."""

    def kill(self, popen: subprocess.Popen[bytes]) -> None:
        """Unconditional termination."""
        with contextlib.suppress(ProcessLookupError, OSError):
            popen.kill()

    def terminate(self, popen: subprocess.Popen[bytes], force: bool = False) -> None:
        """Caller-initiated termination request."""
        if force:
            self.kill(popen)
            return
        with contextlib.suppress(ProcessLookupError, OSError):
            popen.terminate()

    def wait_for_io(
        self,
        popen: subprocess.Popen[bytes],
        readers: Sequence[PipeEnd],
        writers: Sequence[PipeEnd],
        timeout: float,
    ) -> None:
        """Block at most ``timeout`` seconds until I/O or exit may be pending."""
        self._wait_process(popen, timeout)

    @staticmethod
    def _wait_process(popen: subprocess.Popen[bytes], timeout: float) -> None:
        with contextlib.suppress(subprocess.TimeoutExpired):
            popen.wait(timeout=timeout)


class PosixLauncher(Launcher):
    """fork + exec via Popen; every inherited fd above 2 is closed before exec."""

    name = "posix"

    def _spawn(
        self,
        spec: ProcessSpec,
        env: dict[str, str],
        stdin: Any,
        stdout: Any,
        stderr: Any,
    ) -> subprocess.Popen[bytes]:
        argv = compose_command(spec.program, spec.arguments, windows=False)
        executable = None
        if spec.skip_path_search and os.sep not in spec.program:
            # execv() semantics: a bare name is relative to the working directory.
            executable = os.path.join(os.curdir, spec.program)
        return subprocess.Popen(  # noqa: S603
            argv,
            executable=executable,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            cwd=spec.cwd,
            env=env,
            close_fds=True,
            bufsize=0,
        )

    def interrupt(self, popen: subprocess.Popen[bytes]) -> None:
        for sig in (signal.SIGINT, signal.SIGQUIT):
            with contextlib.suppress(ProcessLookupError, OSError):
                popen.send_signal(sig)

    def wait_for_io(
        self,
        popen: subprocess.Popen[bytes],
        readers: Sequence[PipeEnd],
        writers: Sequence[PipeEnd],
        timeout: float,
    ) -> None:
        if not readers and not writers:
            self._wait_process(popen, timeout)
            return
        with selectors.DefaultSelector() as selector:
            for end in readers:
                selector.register(end.fileno(), selectors.EVENT_READ)
            for end in writers:
                selector.register(end.fileno(), selectors.EVENT_WRITE)
            selector.select(timeout)


class WindowsLauncher(Launcher):
    """CreateProcess via Popen with a hidden window and one command line string.

    Windows has no portable graceful interrupt for a windowless child, so the
    first escalation stage is already TerminateProcess.
    """

    name = "windows"

    def _spawn(
        self,
        spec: ProcessSpec,
        env: dict[str, str],
        stdin: Any,
        stdout: Any,
        stderr: Any,
    ) -> subprocess.Popen[bytes]:
        command_line = compose_command(
            spec.program,
            spec.arguments,
            windows=True,
            no_escaping=spec.no_argument_escaping,
        )
        startupinfo = subprocess.STARTUPINFO()  # type: ignore[attr-defined]
        startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW  # type: ignore[attr-defined]
        startupinfo.wShowWindow = subprocess.SW_HIDE  # type: ignore[attr-defined]
        return subprocess.Popen(  # noqa: S603
            command_line,
            executable=spec.program if spec.skip_path_search else None,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            cwd=spec.cwd,
            env=env,
            close_fds=True,
            bufsize=0,
            startupinfo=startupinfo,
            creationflags=subprocess.CREATE_NO_WINDOW,  # type: ignore[attr-defined]
        )

    def interrupt(self, popen: subprocess.Popen[bytes]) -> None:
        self.kill(popen)


def default_launcher() -> Launcher:
    """Backend for the running platform."""
    if os.name == "nt":
        return WindowsLauncher()
    return PosixLauncher()
