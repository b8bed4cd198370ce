"""
Shared fixtures: a scripted process layer and a recording deadline service
"""

import errno
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence, Union

import pytest

from testexec.executor.config import ExecutorConfig, TestMode
from testexec.executor.deadline import DeadlineService
from testexec.executor.errors import DeadlineError
from testexec.executor.testcase import FunctionTest, TestStats
from testexec.shared.process_utils import (
    ProcessHandle,
    ProcessLauncher,
    TerminationInfo,
    TerminationKind,
)

KILLED_BY_SIGNAL = "signal"


class FakeHandle(ProcessHandle):
    """Handle whose close() only records that it happened"""

    def __init__(self, pid: int):
        super().__init__(pid)
        self.closed = False

    def close(self):
        if not self.reaped:
            self.mark_reaped()
            self.closed = True
        return None


class FakeLauncher(ProcessLauncher):
    """
    In-process stand-in for fork/waitpid.

    Children never run. Each spawn gets the next entry of ``outcomes``
    (an exit code, or KILLED_BY_SIGNAL); ``wait_any`` completes running
    children oldest-first unless ``completion_order`` names pids.
    """

    FIRST_PID = 1000

    def __init__(self, outcomes: Sequence[Union[int, str]] = (), completion_order: Sequence[int] = ()):
        self.outcomes = list(outcomes)
        self.completion_order: Deque[int] = deque(completion_order)
        self.extra_events: Deque[TerminationInfo] = deque()
        self.running: List[int] = []
        self.exit_codes: Dict[int, Union[int, str]] = {}
        self.spawned: List[int] = []
        self.handles: List[FakeHandle] = []
        self.attempts = 0
        self.fail_spawns: Dict[int, int] = {}
        self.max_running = 0
        self.spawn_error: Optional[int] = None
        self.wait_error: Optional[int] = None
        self._next_pid = self.FIRST_PID

    @staticmethod
    def supported() -> bool:
        return True

    def spawn(self, entry):
        attempt, self.attempts = self.attempts, self.attempts + 1
        if attempt in self.fail_spawns:
            raise OSError(self.fail_spawns[attempt], "fork failed")
        if self.spawn_error is not None:
            raise OSError(self.spawn_error, "fork failed")

        pid = self._next_pid
        self._next_pid += 1
        index = len(self.spawned)
        self.exit_codes[pid] = self.outcomes[index] if index < len(self.outcomes) else 0
        self.spawned.append(pid)
        self.running.append(pid)
        self.max_running = max(self.max_running, len(self.running))
        handle = FakeHandle(pid)
        self.handles.append(handle)
        return handle

    def wait_any(self):
        if self.wait_error is not None:
            raise OSError(self.wait_error, "wait failed")
        if self.extra_events:
            return self.extra_events.popleft()
        if not self.running:
            raise ChildProcessError(errno.ECHILD, "No child processes")

        if self.completion_order and self.completion_order[0] in self.running:
            pid = self.completion_order.popleft()
        else:
            pid = self.running[0]
        self.running.remove(pid)

        outcome = self.exit_codes[pid]
        if outcome == KILLED_BY_SIGNAL:
            return TerminationInfo(pid, TerminationKind.SIGNALED, signal=9)
        return TerminationInfo(pid, TerminationKind.EXITED, exit_code=outcome)


class FakeDeadline(DeadlineService):
    """Records arm/disarm calls, optionally failing one of them"""

    def __init__(self, fail_arm: bool = False, fail_disarm: bool = False):
        self.calls: List[tuple] = []
        self.fail_arm = fail_arm
        self.fail_disarm = fail_disarm

    def arm(self, seconds):
        self.calls.append(("arm", seconds))
        if self.fail_arm:
            raise DeadlineError("setitimer failed", errno=errno.EINVAL)

    def disarm(self):
        self.calls.append(("disarm",))
        if self.fail_disarm:
            raise DeadlineError("setitimer failed", errno=errno.EINVAL)


def make_test(name: str, result=None, group: str = "suite", time_limit: float = 5.0, calls=None):
    """FunctionTest returning ``result``; appends its name to ``calls`` when run"""

    def body(test, args):
        if calls is not None:
            calls.append((name, list(args)))
        if isinstance(result, BaseException):
            raise result
        return result

    return FunctionTest(group, name, body, time_limit=time_limit)


@pytest.fixture
def stats():
    return TestStats()


@pytest.fixture
def fake_deadline():
    return FakeDeadline()


@pytest.fixture
def unit_config():
    return ExecutorConfig(isolate=True, max_concurrency=2, mode=TestMode.UNIT)
