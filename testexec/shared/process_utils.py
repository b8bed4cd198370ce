#!/usr/bin/env python3
"""
Process Utilities

Fork-based process launching and child state-change decoding used by
the executor's supervisor loop.

Usage:
    launcher = ProcessLauncher()
    handle = launcher.spawn(lambda: run_my_test())
    info = launcher.wait_any()
    if info.is_terminal:
        print(info)
"""

import logging
import os
import sys
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Exit code of a child whose entry point raised
CHILD_CRASH_EXIT_CODE = 2

# Exit code of a child whose result does not fit an exit status (0..255)
OUT_OF_RANGE_EXIT_CODE = 1


class TerminationKind(Enum):
    """Kinds of child state changes reported by waitpid"""
    EXITED = "exited"
    SIGNALED = "signaled"
    STOPPED = "stopped"
    CONTINUED = "continued"


@dataclass
class TerminationInfo:
    """Decoded child state change."""
    pid: int
    kind: TerminationKind
    exit_code: Optional[int] = None
    signal: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        """Check if the child is gone (exited or killed by a signal)"""
        return self.kind in (TerminationKind.EXITED, TerminationKind.SIGNALED)

    @property
    def success(self) -> bool:
        """Check if the child exited normally with code 0"""
        return self.kind == TerminationKind.EXITED and self.exit_code == 0

    @classmethod
    def from_wait_status(cls, pid: int, status: int) -> "TerminationInfo":
        """Decode a raw ``waitpid`` status word"""
        if os.WIFEXITED(status):
            return cls(pid, TerminationKind.EXITED, exit_code=os.WEXITSTATUS(status))
        if os.WIFSIGNALED(status):
            return cls(pid, TerminationKind.SIGNALED, signal=os.WTERMSIG(status))
        if os.WIFSTOPPED(status):
            return cls(pid, TerminationKind.STOPPED, signal=os.WSTOPSIG(status))
        return cls(pid, TerminationKind.CONTINUED)

    def __repr__(self) -> str:
        if self.kind == TerminationKind.EXITED:
            detail = f"exit_code={self.exit_code}"
        elif self.signal is not None:
            detail = f"signal={self.signal}"
        else:
            detail = ""
        return f"TerminationInfo(pid={self.pid}, {self.kind.value}{', ' + detail if detail else ''})"


class ProcessHandle:
    """
    Scoped ownership of a child process id.

    A handle that is closed before its child was collected reaps the
    child with a blocking waitpid, so no zombie outlives the handle.

    Usage:
        with launcher.spawn(entry) as handle:
            ...
    """

    def __init__(self, pid: int):
        self.pid = pid
        self._reaped = False

    @property
    def reaped(self) -> bool:
        return self._reaped

    def mark_reaped(self) -> None:
        """Record that the child's exit status was already collected"""
        self._reaped = True

    def close(self) -> Optional[TerminationInfo]:
        """Reap the child if still owned. Returns its final state, if collected here."""
        if self._reaped:
            return None
        self._reaped = True
        try:
            pid, status = os.waitpid(self.pid, 0)
        except ChildProcessError:
            # Already collected elsewhere
            return None
        info = TerminationInfo.from_wait_status(pid, status)
        logger.debug(f"Reaped abandoned child: {info}")
        return info

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions

    def __repr__(self) -> str:
        state = "reaped" if self._reaped else "live"
        return f"ProcessHandle(pid={self.pid}, {state})"


class ProcessLauncher:
    """
    Starts child processes with fork() and waits for their state changes.

    The child inherits the parent's environment and open files and runs
    ``entry`` in its own address space. Its return value becomes the
    exit code.
    """

    @staticmethod
    def supported() -> bool:
        """Check if the host can fork processes"""
        return hasattr(os, "fork")

    def spawn(self, entry: Callable[[], int]) -> ProcessHandle:
        """
        Fork and run ``entry`` in the child.

        Args:
            entry: Callable returning the child's exit code

        Returns:
            ProcessHandle owning the child

        Raises:
            OSError: If the fork fails
        """
        pid = os.fork()
        if pid == 0:
            self._run_child(entry)  # Never returns

        logger.debug(f"Spawned child process {pid}")
        return ProcessHandle(pid)

    @staticmethod
    def _run_child(entry: Callable[[], int]) -> None:
        code = CHILD_CRASH_EXIT_CODE
        try:
            code = int(entry())
        except SystemExit as e:
            if e.code is None:
                code = 0
            elif isinstance(e.code, int):
                code = e.code
            else:
                code = 1
        except BaseException:
            traceback.print_exc()
        finally:
            try:
                sys.stdout.flush()
                sys.stderr.flush()
            finally:
                os._exit(code if 0 <= code <= 0xFF else OUT_OF_RANGE_EXIT_CODE)

    def wait_any(self) -> TerminationInfo:
        """
        Block until any child changes state.

        Reports exits, signal terminations, stops and continues.

        Raises:
            OSError: If waiting fails (ChildProcessError when no children exist)
        """
        pid, status = os.waitpid(-1, os.WUNTRACED | os.WCONTINUED)
        return TerminationInfo.from_wait_status(pid, status)
