"""Tests for the timeout escalation state machine."""

import unittest

from supervised_process import TerminationState
from supervised_process.launcher import Launcher
from supervised_process.termination import FORCE_KILL_GRACE_MS, TimeoutSupervisor


class RecordingLauncher(Launcher):
    """Launcher that records escalation calls instead of signalling."""

    name = "recording"

    def __init__(self):
        self.calls = []

    def _spawn(self, spec, env, stdin, stdout, stderr):
        raise NotImplementedError

    def interrupt(self, popen):
        self.calls.append(("interrupt", popen.pid))

    def kill(self, popen):
        self.calls.append(("kill", popen.pid))


class StubPopen:
    pid = 4242
    returncode = None


class TestTimeoutSupervisor(unittest.TestCase):
    """Escalation sequence."""

    def setUp(self):
        self.launcher = RecordingLauncher()
        self.popen = StubPopen()

    def test_no_timeout(self):
        """Test a zero timeout never escalates."""
        supervisor = TimeoutSupervisor(self.launcher, 0)
        self.assertEqual(supervisor.check(self.popen, 10_000_000), TerminationState.ACTIVE)
        self.assertFalse(supervisor.timed_out)
        self.assertEqual(self.launcher.calls, [])

    def test_negative_timeout_means_none(self):
        """Test a negative timeout never escalates."""
        supervisor = TimeoutSupervisor(self.launcher, -1)
        supervisor.check(self.popen, 10_000_000)
        self.assertFalse(supervisor.timed_out)

    def test_within_timeout(self):
        """Test nothing happens before the timeout elapses."""
        supervisor = TimeoutSupervisor(self.launcher, 100)
        self.assertEqual(supervisor.check(self.popen, 100), TerminationState.ACTIVE)
        self.assertEqual(self.launcher.calls, [])

    def test_two_stage_escalation(self):
        """Test interrupt first, kill after the grace period, each once."""
        supervisor = TimeoutSupervisor(self.launcher, 100)
        self.assertEqual(supervisor.check(self.popen, 101), TerminationState.TIMEOUT_WARNED)
        self.assertTrue(supervisor.timed_out)
        self.assertEqual(self.launcher.calls, [("interrupt", 4242)])

        self.assertEqual(supervisor.check(self.popen, 100 + FORCE_KILL_GRACE_MS), TerminationState.TIMEOUT_WARNED)
        self.assertEqual(len(self.launcher.calls), 1)

        self.assertEqual(supervisor.check(self.popen, 101 + FORCE_KILL_GRACE_MS), TerminationState.TIMEOUT_KILLED)
        supervisor.check(self.popen, 99_999)
        self.assertEqual(self.launcher.calls, [("interrupt", 4242), ("kill", 4242)])

    def test_exited_child_is_not_escalated(self):
        """Test a child with a return code is never interrupted, however late the check."""
        self.popen.returncode = 7
        supervisor = TimeoutSupervisor(self.launcher, 100)
        self.assertEqual(supervisor.check(self.popen, 10_000), TerminationState.ACTIVE)
        self.assertFalse(supervisor.timed_out)
        self.assertEqual(self.launcher.calls, [])

    def test_finish_is_terminal_and_timed_out_sticks(self):
        """Test finish() ends escalation and timed_out is never cleared."""
        supervisor = TimeoutSupervisor(self.launcher, 10, grace_ms=0)
        supervisor.check(self.popen, 11)
        supervisor.finish()
        self.assertEqual(supervisor.check(self.popen, 99_999), TerminationState.TERMINAL)
        self.assertTrue(supervisor.timed_out)
        self.assertEqual(self.launcher.calls, [("interrupt", 4242)])


if __name__ == "__main__":
    unittest.main()
