"""
Test Executor - bounded-concurrency supervision of isolated test processes

Main components:
  - TestExecutor: Supervisor loop (submit / wait / wait_for_children)
  - ModeDispatcher: Unit / performance / manual execution strategies
  - TaskSlotTable: Fixed-capacity table of in-flight tasks
  - DeadlineTimer: Self-enforced per-test deadline
  - MemoryTracer: Per-test tracemalloc hooks
"""

from .config import (
    ConfigValidationError,
    ExecutionContext,
    ExecutorConfig,
    TestMode,
    load_config,
)
from .errors import (
    BadStateError,
    DeadlineError,
    ExecutorError,
    OutOfMemoryError,
    SpawnError,
    Status,
    UnknownError,
)
from .testcase import FunctionTest, StatsSink, Test, TestStats
from .slot_table import TaskRecord, TaskSlotTable, TaskState
from .deadline import DeadlineService, DeadlineTimer
from .memtrace import MemoryTracer
from .dispatcher import ModeDispatcher
from .supervisor import TestExecutor

__all__ = [
    "ConfigValidationError",
    "ExecutionContext",
    "ExecutorConfig",
    "TestMode",
    "load_config",
    "BadStateError",
    "DeadlineError",
    "ExecutorError",
    "OutOfMemoryError",
    "SpawnError",
    "Status",
    "UnknownError",
    "FunctionTest",
    "StatsSink",
    "Test",
    "TestStats",
    "TaskRecord",
    "TaskSlotTable",
    "TaskState",
    "DeadlineService",
    "DeadlineTimer",
    "MemoryTracer",
    "ModeDispatcher",
    "TestExecutor",
]
