#!/usr/bin/env python3
"""
Test and statistics sink contracts

A single ``Test`` abstraction carries every capability the dispatcher
may call. The executor's mode decides which of them are used:
``time_limit()`` for unit tests, ``dump_stats()``/``free_stats()`` for
performance tests.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, IO, List, Optional, Sequence

from .errors import Status


class Test(ABC):
    """Base class for anything the executor can run"""
    __test__ = False

    def __init__(self, group: str, name: str, time_limit: float = 5.0):
        self.group = group
        self.name = name
        self.verbose = False
        self._time_limit = time_limit

    def full_name(self) -> str:
        return f"{self.group}.{self.name}" if self.group else self.name

    def set_verbose(self, verbose: bool) -> None:
        self.verbose = verbose

    def time_limit(self) -> float:
        """Deadline in seconds, used in unit mode. Must be positive."""
        return self._time_limit

    @abstractmethod
    def execute(self, args: Sequence[str]) -> int:
        """
        Run the test body.

        Args:
            args: Forwarded command line arguments

        Returns:
            Status.OK on success, any other code on failure
        """

    def dump_stats(self, out: IO[str]) -> None:
        """Write accumulated performance statistics to ``out``"""

    def free_stats(self) -> None:
        """Drop accumulated performance statistics"""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.full_name()!r})"


class FunctionTest(Test):
    """
    Test wrapping a plain callable.

    The callable receives the test itself and the forwarded args.
    Returning None counts as
    success, an int is used as the result code, and exceptions propagate
    to the caller of ``execute``.

    Performance tests can time iterations with ``measure()``; the
    collected samples are what ``dump_stats`` prints.
    """

    def __init__(
        self,
        group: str,
        name: str,
        func: Callable[..., Optional[int]],
        time_limit: float = 5.0,
    ):
        super().__init__(group, name, time_limit=time_limit)
        self.func = func
        self.samples: Dict[str, List[float]] = {}

    def execute(self, args: Sequence[str]) -> int:
        result = self.func(self, list(args))
        return Status.OK if result is None else int(result)

    def measure(self, label: str, fn: Callable[[], Any], iterations: int = 1) -> None:
        """Time ``iterations`` calls of ``fn`` and store the sample under ``label``"""
        start = time.perf_counter()
        for _ in range(iterations):
            fn()
        elapsed = time.perf_counter() - start
        self.samples.setdefault(label, []).append(elapsed / max(1, iterations))

    def dump_stats(self, out: IO[str]) -> None:
        if not self.samples:
            out.write("  (no samples)\n")
            return
        width = max(len(label) for label in self.samples)
        for label, values in self.samples.items():
            avg = sum(values) / len(values)
            out.write(f"  {label:<{width}}  runs={len(values):<4d} avg={avg * 1e6:.3f} us\n")

    def free_stats(self) -> None:
        self.samples.clear()


class StatsSink(ABC):
    """Append-only success/failure ledger"""

    @abstractmethod
    def record_success(self, test: Test) -> None:
        ...

    @abstractmethod
    def record_failure(self, test: Test) -> None:
        ...


class TestStats(StatsSink):
    """In-memory ledger of completed tests"""
    __test__ = False

    def __init__(self):
        self.success: List[Test] = []
        self.failed: List[Test] = []

    def record_success(self, test: Test) -> None:
        self.success.append(test)

    def record_failure(self, test: Test) -> None:
        self.failed.append(test)

    @property
    def total(self) -> int:
        return len(self.success) + len(self.failed)

    @property
    def all_passed(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        lines = [f"Overall: {self.total} tests, {len(self.success)} succeeded, {len(self.failed)} failed"]
        for test in self.failed:
            lines.append(f"  FAILED: {test.full_name()}")
        return "\n".join(lines)
