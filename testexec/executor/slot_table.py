#!/usr/bin/env python3
"""
Task Slot Table

Fixed-capacity arena of in-flight task records. Removal is a
swap-remove: the freed slot is overwritten with the last live record,
so table order says nothing about submission or completion order.

Pure bookkeeping, no I/O and no blocking.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from ..shared.process_utils import ProcessHandle
from .errors import BadStateError, OutOfMemoryError, Status
from .testcase import Test


class TaskState(Enum):
    """Task lifecycle states"""
    PENDING = "pending"
    SPAWNING = "spawning"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    KILLED = "killed"
    REPORTED = "reported"
    RECLAIMED = "reclaimed"


@dataclass
class TaskRecord:
    """One in-flight isolated test"""
    test: Test
    handle: Optional[ProcessHandle] = None
    submitted_at: float = field(default_factory=time.monotonic)
    state: TaskState = TaskState.PENDING
    outcome: Optional[int] = None  # None while pending

    @property
    def pid(self) -> Optional[int]:
        return self.handle.pid if self.handle else None

    @property
    def is_final(self) -> bool:
        return self.outcome is not None

    @property
    def succeeded(self) -> bool:
        return self.outcome == Status.OK

    def finalize(self, code: int) -> None:
        """Set the outcome. Allowed exactly once."""
        if self.outcome is not None:
            raise BadStateError(
                f"Outcome of '{self.test.full_name()}' already finalized "
                f"as {Status.describe(self.outcome)}"
            )
        self.outcome = int(code)
        if code == Status.OK:
            self.state = TaskState.SUCCEEDED
        elif code == Status.TIMEOUT:
            self.state = TaskState.TIMED_OUT
        elif code == Status.KILLED:
            self.state = TaskState.KILLED
        else:
            self.state = TaskState.FAILED

    def elapsed(self, now: Optional[float] = None) -> float:
        return (time.monotonic() if now is None else now) - self.submitted_at


class TaskSlotTable:
    """
    Fixed-capacity table of active task records.

    Usage:
        table = TaskSlotTable.allocate(4)
        index = table.add(TaskRecord(test))
        found = table.find_by_process_handle(pid)
        if found:
            table.remove_by_swap(found[0])
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._slots: List[Optional[TaskRecord]] = [None] * capacity
        self._active = 0

    @classmethod
    def allocate(cls, capacity: int) -> "TaskSlotTable":
        """Allocate a table, translating allocation failure to OutOfMemoryError"""
        try:
            return cls(capacity)
        except MemoryError as e:
            raise OutOfMemoryError(f"Cannot allocate {capacity} task slots") from e

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def active_count(self) -> int:
        return self._active

    @property
    def is_full(self) -> bool:
        return self._active >= len(self._slots)

    def add(self, record: TaskRecord) -> int:
        """Place ``record`` in the first free slot and return its index"""
        if self.is_full:
            raise BadStateError(f"Task slot table is full ({self.capacity} slots)")
        index = self._active
        self._slots[index] = record
        self._active += 1
        return index

    def get(self, index: int) -> TaskRecord:
        if not 0 <= index < self._active:
            raise IndexError(f"Slot {index} is not active")
        return self._slots[index]

    def find_by_process_handle(self, pid: int) -> Optional[Tuple[int, TaskRecord]]:
        for index in range(self._active):
            record = self._slots[index]
            if record.pid == pid:
                return index, record
        return None

    def remove_by_swap(self, index: int) -> TaskRecord:
        """Release slot ``index`` by moving the last live record into it"""
        record = self.get(index)
        last = self._active - 1
        if index < last:
            self._slots[index] = self._slots[last]
        self._slots[last] = None
        self._active = last
        return record

    def __iter__(self) -> Iterator[TaskRecord]:
        for index in range(self._active):
            yield self._slots[index]

    def __len__(self) -> int:
        return self._active
