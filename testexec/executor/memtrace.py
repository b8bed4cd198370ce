#!/usr/bin/env python3
"""
Memory trace hooks

Wraps a single test execution with tracemalloc. Each test writes to its
own file under the configured trace directory, so concurrent children
never share a trace file.
"""

import logging
import os
import sys
import tracemalloc
from pathlib import Path
from typing import Optional

from .config import ExecutorConfig, TestMode
from .testcase import Test

logger = logging.getLogger(__name__)

MEMTRACE_ENV = "MALLOC_TRACE"
TOP_ALLOCATIONS = 25


class MemoryTracer:
    """Start/stop hooks around a test body. No-ops unless memtrace is enabled."""

    def __init__(self, config: ExecutorConfig):
        self.enabled = config.memtrace
        self.trace_dir = Path(config.trace_dir)
        self.mode = config.mode
        self.trace_file: Optional[Path] = None
        self._previous_env: Optional[str] = None

    def trace_path(self, test: Test) -> Path:
        suffix = self.mode.short_name if isinstance(self.mode, TestMode) else "test"
        return self.trace_dir / f"{test.full_name()}.{suffix}.mtrace"

    def start(self, test: Test) -> None:
        if not self.enabled:
            return

        self.trace_dir.mkdir(parents=True, exist_ok=True)
        self.trace_file = self.trace_path(test)

        sys.stderr.write(
            f"Enabling memory trace for test '{test.full_name()}' into file '{self.trace_file}'\n"
        )
        sys.stderr.flush()

        self._previous_env = os.environ.get(MEMTRACE_ENV)
        os.environ[MEMTRACE_ENV] = str(self.trace_file)
        tracemalloc.start()

    def stop(self) -> None:
        if not self.enabled or self.trace_file is None:
            return

        trace_file, self.trace_file = self.trace_file, None
        self._restore_env()
        if not tracemalloc.is_tracing():
            return

        snapshot = tracemalloc.take_snapshot()
        current, peak = tracemalloc.get_traced_memory()
        tracemalloc.stop()

        try:
            with open(trace_file, "w") as f:
                f.write(f"current={current} peak={peak}\n")
                for stat in snapshot.statistics("lineno")[:TOP_ALLOCATIONS]:
                    f.write(f"{stat}\n")
        except OSError as e:
            logger.warning(f"Failed to write memory trace {trace_file}: {e}")

    def _restore_env(self) -> None:
        # The variable is scoped to a single test execution
        previous, self._previous_env = self._previous_env, None
        if previous is None:
            os.environ.pop(MEMTRACE_ENV, None)
        else:
            os.environ[MEMTRACE_ENV] = previous
