"""Exception types raised by the process supervisor."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from supervised_process.runner import ExecResult


class SupervisedProcessError(Exception):
    """Base class for all errors raised by this package."""


class InvalidArgumentError(SupervisedProcessError, ValueError):
    """Program, arguments or environment are malformed.

    Always raised before any OS resource is allocated.
    """


class ResourceExhaustedError(SupervisedProcessError, OSError):
    """Pipe creation failed; nothing was launched."""


class LaunchFailedError(SupervisedProcessError, OSError):
    """The OS refused to start the program (e.g. permission denied)."""


class ProgramNotFoundError(LaunchFailedError, FileNotFoundError):
    """The executable does not exist or could not be resolved."""


class ProcessTimeoutError(SupervisedProcessError, TimeoutError):
    """A run-to-completion call exceeded its timeout.

    The partial result collected before the child was terminated is
    available as ``result``.
    """

    def __init__(self, message: str, result: ExecResult | None = None) -> None:
        super().__init__(message)
        self.result = result
