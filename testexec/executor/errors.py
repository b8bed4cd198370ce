#!/usr/bin/env python3
"""
Status codes and executor errors

Status values double as child process exit codes, so every member
must fit into a single byte.
"""

from enum import IntEnum
from typing import Optional


class Status(IntEnum):
    """Result codes shared by tests, the dispatcher and child processes"""
    OK = 0
    FAILED = 1              # Test reported failure or raised
    UNKNOWN_ERROR = 2       # OS-level spawn/wait/timer failure
    NO_MEM = 3
    BAD_STATE = 4
    TIMEOUT = 124           # Standard timeout exit code
    KILLED = 137            # Terminated by a signal (128 + SIGKILL)

    @classmethod
    def describe(cls, code: int) -> str:
        """Return a readable name for ``code``, even for foreign exit codes"""
        try:
            return cls(code).name
        except ValueError:
            return f"EXIT_{code}"


class ExecutorError(Exception):
    """Base class for errors raised by the executor itself"""
    status = Status.UNKNOWN_ERROR


class OutOfMemoryError(ExecutorError):
    """Task slot table could not be allocated"""
    status = Status.NO_MEM


class BadStateError(ExecutorError):
    """Operation invoked in a state that does not allow it"""
    status = Status.BAD_STATE


class UnknownError(ExecutorError):
    """OS-level failure, carries the originating errno when known"""

    def __init__(self, message: str, errno: Optional[int] = None):
        if errno is not None:
            message = f"{message} (errno={errno})"
        super().__init__(message)
        self.errno = errno


class DeadlineError(UnknownError):
    """Arming or disarming the deadline timer failed"""


class SpawnError(UnknownError):
    """A test's child process could not be started"""
