"""Timeout enforcement with two-stage escalation."""

from __future__ import annotations

import enum
import logging
import subprocess

from supervised_process.launcher import Launcher
from supervised_process.process_utils import get_process_info

logger = logging.getLogger(__name__)

# Time allowed after the graceful interrupt before the child is killed.
FORCE_KILL_GRACE_MS = 2500


class TerminationState(enum.Enum):
    ACTIVE = "active"
    TIMEOUT_WARNED = "timeout-warned"
    TIMEOUT_KILLED = "timeout-killed"
    TERMINAL = "terminal"


class TimeoutSupervisor:
    """Tracks elapsed time against a timeout and escalates termination.

    On the first check past the timeout the child receives the launcher's
    graceful interrupt and ``timed_out`` is set (it is never cleared). If the
    child is still alive ``grace_ms`` later it is killed.
    """

    def __init__(self, launcher: Launcher, timeout_ms: int = 0, grace_ms: int = FORCE_KILL_GRACE_MS) -> None:
        self._launcher = launcher
        self.timeout_ms = timeout_ms
        self.grace_ms = grace_ms
        self.state = TerminationState.ACTIVE
        self.timed_out = False

    @property
    def has_timeout(self) -> bool:
        return self.timeout_ms > 0

    def check(self, popen: subprocess.Popen[bytes], elapsed_ms: float, command: str = "") -> TerminationState:
        """Apply the escalation policy for ``elapsed_ms`` since launch."""
        if self.state in (TerminationState.TERMINAL, TerminationState.TIMEOUT_KILLED):
            return self.state
        if popen.returncode is not None:
            return self.state
        if self.state is TerminationState.ACTIVE:
            if not self.has_timeout or elapsed_ms <= self.timeout_ms:
                return self.state
            self.timed_out = True
            self.state = TerminationState.TIMEOUT_WARNED
            logger.warning(
                "Process timeout after %d ms, interrupting pid %d: %s",
                self.timeout_ms,
                popen.pid,
                command,
            )
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("%s", get_process_info(popen.pid))
            self._launcher.interrupt(popen)
            return self.state

        if elapsed_ms > self.timeout_ms + self.grace_ms:
            logger.warning("Process pid %d ignored interrupt for %d ms, killing", popen.pid, self.grace_ms)
            self._launcher.kill(popen)
            self.state = TerminationState.TIMEOUT_KILLED
        return self.state

    def finish(self) -> None:
        self.state = TerminationState.TERMINAL
