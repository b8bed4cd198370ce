#!/usr/bin/env python3
"""
Tests for fork-based process utilities
"""

import os
import signal

import pytest

from testexec.shared.process_utils import (
    CHILD_CRASH_EXIT_CODE,
    OUT_OF_RANGE_EXIT_CODE,
    ProcessHandle,
    ProcessLauncher,
    TerminationInfo,
    TerminationKind,
)

pytestmark = pytest.mark.skipif(not hasattr(os, "fork"), reason="requires os.fork")


@pytest.fixture
def launcher():
    return ProcessLauncher()


def wait_until_terminal(launcher, pid):
    events = []
    while True:
        info = launcher.wait_any()
        if info.pid != pid:
            continue
        events.append(info)
        if info.is_terminal:
            return events


class TestProcessLauncher:

    def test_supported(self):
        assert ProcessLauncher.supported()

    @pytest.mark.parametrize("entry, expected", [
        (lambda: 0, 0),
        (lambda: 7, 7),
        (lambda: 124, 124),
        (lambda: 256, OUT_OF_RANGE_EXIT_CODE),
        (lambda: -256, OUT_OF_RANGE_EXIT_CODE),
        (lambda: 512, OUT_OF_RANGE_EXIT_CODE),
    ])
    def test_return_value_is_exit_code(self, launcher, entry, expected):
        handle = launcher.spawn(entry)
        info = wait_until_terminal(launcher, handle.pid)[-1]
        handle.mark_reaped()

        assert info.kind == TerminationKind.EXITED
        assert info.exit_code == expected
        assert info.success == (expected == 0)

    def test_raising_entry_exits_with_crash_code(self, launcher):
        def entry():
            raise RuntimeError("child blew up")

        with launcher.spawn(entry) as handle:
            pass
        assert handle.reaped

        handle = launcher.spawn(entry)
        info = handle.close()
        assert info.exit_code == CHILD_CRASH_EXIT_CODE

    def test_system_exit_code_kept(self, launcher):
        def entry():
            raise SystemExit(5)

        info = launcher.spawn(entry).close()
        assert info.exit_code == 5

    def test_signal_termination(self, launcher):
        def entry():
            os.kill(os.getpid(), signal.SIGKILL)
            return 0

        info = launcher.spawn(entry).close()
        assert info.kind == TerminationKind.SIGNALED
        assert info.signal == signal.SIGKILL
        assert info.is_terminal
        assert not info.success

    def test_stop_then_continue(self, launcher):
        def entry():
            os.kill(os.getpid(), signal.SIGSTOP)
            return 0

        handle = launcher.spawn(entry)

        stopped = launcher.wait_any()
        assert stopped.pid == handle.pid
        assert stopped.kind == TerminationKind.STOPPED
        assert stopped.signal == signal.SIGSTOP
        assert not stopped.is_terminal

        os.kill(handle.pid, signal.SIGCONT)
        events = wait_until_terminal(launcher, handle.pid)
        handle.mark_reaped()

        assert events[-1].kind == TerminationKind.EXITED
        assert events[-1].exit_code == 0
        assert all(e.kind == TerminationKind.CONTINUED for e in events[:-1])


class TestProcessHandle:

    def test_close_reaps_once(self, launcher):
        handle = launcher.spawn(lambda: 3)
        info = handle.close()

        assert info.pid == handle.pid
        assert info.exit_code == 3
        assert handle.reaped
        assert handle.close() is None

    def test_close_after_external_reap(self, launcher):
        handle = launcher.spawn(lambda: 0)
        os.waitpid(handle.pid, 0)

        assert handle.close() is None

    def test_mark_reaped_skips_wait(self):
        handle = ProcessHandle(999999)
        handle.mark_reaped()
        assert handle.close() is None
        assert "reaped" in repr(handle)


class TestTerminationInfo:

    def test_repr(self):
        assert "exit_code=1" in repr(TerminationInfo(10, TerminationKind.EXITED, exit_code=1))
        assert "signal=9" in repr(TerminationInfo(10, TerminationKind.SIGNALED, signal=9))
        assert repr(TerminationInfo(10, TerminationKind.CONTINUED)).endswith("continued)")
