"""Poll-driven child process supervision with non-blocking stream pumping."""

from __future__ import annotations

__version__ = "1.0.0"

from supervised_process.child_process import ChildProcess
from supervised_process.composer import compose_command, compose_environment, escape_shell_arg
from supervised_process.errors import (
    InvalidArgumentError,
    LaunchFailedError,
    ProcessTimeoutError,
    ProgramNotFoundError,
    ResourceExhaustedError,
    SupervisedProcessError,
)
from supervised_process.line_filter import LineCallback, TimeDeltaFormatter
from supervised_process.process_spec import ProcessSpec
from supervised_process.process_utils import get_process_info, process_exists
from supervised_process.runner import ExecResult, run, shell
from supervised_process.termination import TerminationState

__all__ = [
    "ChildProcess",
    "ExecResult",
    "InvalidArgumentError",
    "LaunchFailedError",
    "LineCallback",
    "ProcessSpec",
    "ProcessTimeoutError",
    "ProgramNotFoundError",
    "ResourceExhaustedError",
    "SupervisedProcessError",
    "TerminationState",
    "TimeDeltaFormatter",
    "compose_command",
    "compose_environment",
    "escape_shell_arg",
    "get_process_info",
    "process_exists",
    "run",
    "shell",
]
