"""Run-to-completion helpers built on ChildProcess.

``run()`` is the synchronous call shape of the binding layer: it drives the
update loop until the child terminates and returns the exit code together
with the captured output. ``shell()`` runs a command line through the
platform shell and returns its stdout.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from supervised_process.child_process import POLL_INTERVAL_S, ChildProcess
from supervised_process.errors import InvalidArgumentError, ProcessTimeoutError, SupervisedProcessError
from supervised_process.process_spec import ProcessSpec

logger = logging.getLogger(__name__)

DEFAULT_WINDOWS_SHELL = "c:\\Windows\\system32\\cmd.exe"


@dataclass
class ExecResult:
    """Outcome of a completed run."""

    exit_code: int
    stdout: bytes
    stderr: bytes
    timed_out: bool = False

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


def _as_spec(spec: ProcessSpec | Mapping[str, Any]) -> ProcessSpec:
    if isinstance(spec, ProcessSpec):
        return spec
    if isinstance(spec, Mapping):
        return ProcessSpec.from_request(spec)
    msg = f"Expected a ProcessSpec or a request mapping, got {type(spec).__name__}"
    raise InvalidArgumentError(msg)


def run(
    spec: ProcessSpec | Mapping[str, Any],
    no_exception: bool | None = None,
    poll_interval: float = POLL_INTERVAL_S,
) -> ExecResult | int | None:
    """
    Execute a program to completion with non-blocking stream handling.

    Args:
        spec: A ProcessSpec, or a request mapping accepted by
              ProcessSpec.from_request() (which may carry ``no_exception``).
        no_exception: Never raise (see Returns). Defaults to
              the request's ``no_exception`` key, else False.
        poll_interval: Upper bound for each update() wait, in seconds.

    Returns:
        ExecResult with exit code and captured output, or the bare exit code
        when both stdout and stderr are discarded. With ``no_exception`` a
        timeout is reported through ``timed_out`` (and exit code -1) instead
        of raising, and any other error returns None.

    Raises:
        InvalidArgumentError: Malformed program, arguments or environment.
        ResourceExhaustedError: Pipes could not be created.
        ProgramNotFoundError / LaunchFailedError: The program did not start.
        ProcessTimeoutError: The timeout elapsed; the partial result is
            attached as ``result``.
    """
    if no_exception is None:
        no_exception = bool(isinstance(spec, Mapping) and spec.get("no_exception", False))

    try:
        process_spec = _as_spec(spec)
        proc = ChildProcess(process_spec, poll_interval=poll_interval)
        try:
            while proc.update():
                pass
        except BaseException:
            proc.kill(force=True)
            raise
    except SupervisedProcessError as e:
        if no_exception:
            logger.debug("run() failed, returning None: %s", e)
            return None
        raise

    exit_code = proc.exit_code if proc.exit_code is not None else -1
    result = ExecResult(exit_code=exit_code, stdout=proc.stdout, stderr=proc.stderr, timed_out=proc.timed_out)

    if proc.timed_out and not no_exception:
        msg = f"Process timed out after {process_spec.timeout_ms} ms: {process_spec.program}"
        raise ProcessTimeoutError(msg, result)

    if process_spec.discard_stdout and process_spec.discard_stderr:
        return exit_code
    return result


def shell(command: str, timeout_ms: int = -1) -> str:
    """Run ``command`` through the platform shell and return its stdout.

    stderr is discarded; redirect it inside the command if needed. The
    command is passed to the shell verbatim. Never raises: an empty command or
    a launch failure yield an empty string, a timeout yields the output
    collected up to that point.
    """
    if not command or not isinstance(command, str):
        return ""

    if os.name == "nt":
        program = os.environ.get("ComSpec", DEFAULT_WINDOWS_SHELL)
        arguments = [f'/c "{command}"']
        no_escaping = True
    else:
        program = "/bin/sh"
        arguments = ["-c", command]
        no_escaping = False

    try:
        spec = ProcessSpec(
            program,
            arguments,
            timeout_ms=timeout_ms,
            discard_stderr=True,
            skip_path_search=True,
            no_argument_escaping=no_escaping,
        )
    except InvalidArgumentError as e:
        logger.debug("shell(): invalid command: %s", e)
        return ""

    try:
        result = run(spec)
    except ProcessTimeoutError as e:
        # Whatever the command printed before it was stopped.
        return e.result.stdout_text if e.result is not None else ""
    except SupervisedProcessError as e:
        logger.debug("shell(): %s", e)
        return ""
    assert isinstance(result, ExecResult)
    return result.stdout_text
