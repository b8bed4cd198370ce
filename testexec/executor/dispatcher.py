#!/usr/bin/env python3
"""
Mode Dispatcher

Runs one test in the current process using the strategy selected by
the configured mode:

    unit         deadline armed around the body (unless debugging)
    performance  statistics dumped to stdout and the report file
    manual       plain execution
"""

import logging
import sys
from typing import Callable, Dict, IO, Optional

from ..shared.logging_utils import separator
from .config import ExecutionContext, ExecutorConfig, TestMode
from .deadline import DeadlineService, DeadlineTimer
from .errors import BadStateError
from .memtrace import MemoryTracer
from .testcase import Test

logger = logging.getLogger(__name__)


class ModeDispatcher:
    """Routes a test to its mode-specific execution strategy"""

    def __init__(
        self,
        config: ExecutorConfig,
        deadline: Optional[DeadlineService] = None,
        tracer: Optional[MemoryTracer] = None,
        stdout: Optional[IO[str]] = None,
    ):
        """
        Initialize dispatcher

        Args:
            config: Executor configuration
            deadline: Deadline service (default: SIGALRM timer)
            tracer: Memory trace hooks (default: built from config)
            stdout: Stream for statistics output (default: sys.stdout at call time)
        """
        self.config = config
        self.deadline = deadline or DeadlineTimer()
        self.tracer = tracer or MemoryTracer(config)
        self._stdout = stdout

        self._strategies: Dict[TestMode, Callable[[Test, ExecutionContext], int]] = {
            TestMode.UNIT: self._run_unit,
            TestMode.PERFORMANCE: self._run_performance,
            TestMode.MANUAL: self._run_manual,
        }

    @property
    def stdout(self) -> IO[str]:
        return self._stdout or sys.stdout

    def run_test(self, test: Test, context: Optional[ExecutionContext] = None) -> int:
        """
        Execute ``test`` according to the configured mode.

        Returns:
            The test's own result code

        Raises:
            BadStateError: If the mode is not recognized
            DeadlineError: If the unit test deadline cannot be armed/disarmed
        """
        context = context or ExecutionContext()
        strategy = self._strategies.get(self.config.mode)
        if strategy is None:
            raise BadStateError(f"Unsupported test mode: {self.config.mode!r}")

        logger.debug(
            f"Running {test.full_name()} in {self.config.mode.value} mode "
            f"({'child' if context.is_child else 'inline'})"
        )
        return strategy(test, context)

    def _execute(self, test: Test) -> int:
        test.set_verbose(self.config.verbose)
        self.tracer.start(test)
        try:
            return test.execute(list(self.config.args))
        finally:
            self.tracer.stop()

    def _run_unit(self, test: Test, context: ExecutionContext) -> int:
        if self.config.debug:
            return self._execute(test)

        # Arm failure propagates before the body runs
        self.deadline.arm(test.time_limit())
        try:
            result = self._execute(test)
        except BaseException:
            try:
                self.deadline.disarm()
            except Exception as e:
                logger.error(f"Deadline disarm failed after test error: {e}")
            raise

        self.deadline.disarm()
        return result

    def _run_performance(self, test: Test, context: ExecutionContext) -> int:
        try:
            result = self._execute(test)

            out = self.stdout
            out.write(f"\nStatistics of performance test '{test.full_name()}':\n")
            test.dump_stats(out)
            out.flush()

            if self.config.report_file is not None:
                self._append_report(test)
        finally:
            test.free_stats()

        return result

    def _append_report(self, test: Test) -> None:
        try:
            f = open(self.config.report_file, "a")
        except OSError as e:
            logger.warning(
                f"Cannot open report file {self.config.report_file} (errno={e.errno}): {e}"
            )
            return

        with f:
            f.write(f"{separator()}\n")
            f.write(f"Statistics of performance test '{test.full_name()}':\n\n")
            test.dump_stats(f)
            f.write("\n")

    def _run_manual(self, test: Test, context: ExecutionContext) -> int:
        return self._execute(test)
