#!/usr/bin/env python3
"""
Test Executor

Bounded-concurrency supervisor for test execution. Each submitted test
runs either inline or in a forked child; at most
``config.effective_concurrency`` children run at once. The supervisor
is single-threaded and blocks on child state changes, never polls.
"""

import logging
import sys
import time
from typing import Optional

from ..shared.logging_utils import banner, log_exception
from ..shared.process_utils import ProcessLauncher, TerminationInfo, TerminationKind
from .config import ExecutionContext, ExecutorConfig, TestMode
from .dispatcher import ModeDispatcher
from .errors import BadStateError, ExecutorError, SpawnError, Status, UnknownError
from .slot_table import TaskRecord, TaskSlotTable, TaskState
from .testcase import StatsSink, Test

logger = logging.getLogger(__name__)


class TestExecutor:
    """
    Submits tests for execution and collects their outcomes.

    Usage:
        stats = TestStats()
        with TestExecutor(config, stats) as executor:
            for test in tests:
                executor.submit(test)
        # All children drained here
        print(stats.summary())
    """
    __test__ = False

    def __init__(
        self,
        config: Optional[ExecutorConfig] = None,
        stats: Optional[StatsSink] = None,
        launcher: Optional[ProcessLauncher] = None,
        dispatcher: Optional[ModeDispatcher] = None,
        context: Optional[ExecutionContext] = None,
    ):
        """
        Initialize test executor

        Args:
            config: Executor configuration; when given, ``init`` is called
            stats: Sink receiving completed tests
            launcher: Process layer (default: fork-based ProcessLauncher)
            dispatcher: Mode dispatcher (default: built from config)
            context: Execution context (default: top-level supervisor)
        """
        self.launcher = launcher or ProcessLauncher()
        self.context = context or ExecutionContext()
        self._dispatcher = dispatcher

        self.config: Optional[ExecutorConfig] = None
        self.stats: Optional[StatsSink] = None
        self._tasks: Optional[TaskSlotTable] = None
        self._initialized = False

        if config is not None:
            self.init(config, stats)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def init(self, config: ExecutorConfig, stats: Optional[StatsSink] = None) -> None:
        """
        Configure the executor. Allowed once.

        Raises:
            BadStateError: If already initialized
            OutOfMemoryError: If the task slot table cannot be allocated
        """
        if self._initialized:
            raise BadStateError("Executor is already initialized")

        if config.isolate and not self.launcher.supported():
            logger.warning("Process isolation is not supported on this platform, running tests inline")
        elif config.isolate:
            self._tasks = TaskSlotTable.allocate(config.effective_concurrency)

        self.config = config
        self.stats = stats
        if self._dispatcher is None:
            self._dispatcher = ModeDispatcher(config)
        self._initialized = True

        logger.debug(
            f"Executor initialized: mode={config.mode}, "
            f"slots={self._tasks.capacity if self._tasks is not None else 0}"
        )

    @property
    def dispatcher(self) -> Optional[ModeDispatcher]:
        return self._dispatcher

    @property
    def isolated(self) -> bool:
        return self._tasks is not None

    def active_count(self) -> int:
        return self._tasks.active_count() if self._tasks is not None else 0

    def submit(self, test: Test) -> int:
        """
        Submit ``test`` for execution.

        Inline mode runs the test before returning and returns its result
        code. Isolated mode blocks while every slot is busy, then forks
        and returns Status.OK once the child is running.

        Raises:
            BadStateError: If called before ``init``
            SpawnError: If the child cannot be spawned (the executor stays usable)
            UnknownError: If waiting for a free slot fails
        """
        self._require_init()

        if self._tasks is None:
            return self._run_inline(test)

        while self._tasks.is_full:
            self.wait_for_children()

        if not self.context.is_child:
            print(banner(f"Launching {self._test_class()} '{test.full_name()}'"))

        # Child must not inherit unflushed output
        sys.stdout.flush()
        sys.stderr.flush()

        record = TaskRecord(test=test, submitted_at=time.monotonic())
        index = self._tasks.add(record)
        record.state = TaskState.SPAWNING

        try:
            record.handle = self.launcher.spawn(lambda: self._child_main(test))
        except OSError as e:
            self._tasks.remove_by_swap(index)
            record.state = TaskState.REPORTED
            logger.error(f"Error while spawning child process for '{test.full_name()}': errno={e.errno}")
            raise SpawnError(f"Cannot spawn child process: {e}", errno=e.errno) from e

        record.state = TaskState.RUNNING
        return Status.OK

    def wait(self) -> None:
        """
        Block until every running child has been reported.

        No-op inside a spawned child.

        Raises:
            UnknownError: If waiting for children fails
        """
        self._require_init()
        if self.context.is_child:
            return

        while self.active_count() > 0:
            self.wait_for_children()

    def wait_for_children(self) -> Optional[TaskRecord]:
        """
        Drain one terminal child state change.

        Returns:
            The reported record, or None if the event did not belong to a
            tracked task

        Raises:
            UnknownError: If the wait primitive fails
        """
        self._require_init()
        if self._tasks is None:
            return None

        info = self._wait_terminal()

        found = self._tasks.find_by_process_handle(info.pid)
        if found is None:
            logger.warning(f"Ignoring state change of untracked child: {info}")
            return None

        index, record = found
        record.handle.mark_reaped()
        record.finalize(self._outcome_of(info))

        self._report(record.test, record.outcome, record.elapsed())
        record.state = TaskState.REPORTED

        self._tasks.remove_by_swap(index)
        record.state = TaskState.RECLAIMED
        return record

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._initialized or self.context.is_child:
            return False

        if exc_type is None:
            self.wait()
        else:
            self._reap_all()
        return False  # Don't suppress exceptions

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_init(self) -> None:
        if not self._initialized:
            raise BadStateError("Executor is not initialized")

    def _test_class(self) -> str:
        mode = self.config.mode
        return mode.label if isinstance(mode, TestMode) else "test"

    def _wait_terminal(self) -> TerminationInfo:
        # Stop/continue notifications are not terminal: keep waiting.
        # A stopped child either resumes or dies eventually.
        while True:
            try:
                info = self.launcher.wait_any()
            except OSError as e:
                logger.error(f"Child process completion wait failed: errno={e.errno}")
                raise UnknownError(f"Child process wait failed: {e}", errno=e.errno) from e

            if info.is_terminal:
                return info

            if info.kind == TerminationKind.STOPPED:
                print(f"Child process {info.pid} stopped by signal {info.signal}")
            else:
                logger.info(f"Child process {info.pid} continued")

    @staticmethod
    def _outcome_of(info: TerminationInfo) -> int:
        if info.kind == TerminationKind.EXITED:
            return info.exit_code
        return Status.KILLED

    def _child_main(self, test: Test) -> int:
        """Entry point of a forked child: run the test, return its exit code"""
        self.context = self.context.as_child()
        try:
            return self._dispatcher.run_test(test, self.context)
        except ExecutorError as e:
            logger.error(f"Executor error in '{test.full_name()}': {e}")
            return e.status
        except Exception as e:
            log_exception(logger, e, f"test '{test.full_name()}'")
            return Status.FAILED

    def _run_inline(self, test: Test) -> int:
        started = time.monotonic()
        try:
            result = self._dispatcher.run_test(test, self.context)
        except ExecutorError:
            raise
        except Exception as e:
            log_exception(logger, e, f"test '{test.full_name()}'")
            result = Status.FAILED

        self._report(test, result, time.monotonic() - started)
        return result

    def _report(self, test: Test, outcome: int, elapsed: float) -> None:
        succeeded = outcome == Status.OK
        print(
            f"{self._test_class().capitalize()} '{test.full_name()}' has "
            f"{'succeeded' if succeeded else 'failed'}, execution time: {elapsed:.2f}s"
        )
        if not succeeded:
            logger.debug(f"'{test.full_name()}' finished with {Status.describe(outcome)}")

        if self.stats is not None:
            if succeeded:
                self.stats.record_success(test)
            else:
                self.stats.record_failure(test)

    def _reap_all(self) -> None:
        """Collect leftover children after an error, without reporting them"""
        if self._tasks is None:
            return
        while self._tasks.active_count() > 0:
            record = self._tasks.remove_by_swap(self._tasks.active_count() - 1)
            if record.handle is not None:
                record.handle.close()
