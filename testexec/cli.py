#!/usr/bin/env python3
"""
Test executor command line

Loads tests from a Python module and runs them through the executor.

Usage:
    testexec mypkg.tests                      # run mypkg.tests.TESTS
    testexec mypkg.tests:SUITE -j 4 'dsp.*'   # four children, filtered
    testexec mypkg.bench --mode performance --outfile perf.txt
    testexec mypkg.tests -- --seed 42         # args after -- go to tests
"""

import argparse
import fnmatch
import importlib
import logging
import sys
from typing import Dict, List, Optional, Sequence

from .executor.config import ConfigValidationError, load_config
from .executor.errors import ExecutorError, SpawnError
from .executor.supervisor import TestExecutor
from .executor.testcase import Test, TestStats
from .shared.logging_utils import setup_logging

logger = logging.getLogger(__name__)


def load_tests(target: str) -> List[Test]:
    """
    Import ``module[:attribute]`` and return its tests.

    The attribute (default ``TESTS``) may be a sequence of tests or a
    callable returning one.
    """
    module_name, _, attribute = target.partition(":")
    module = importlib.import_module(module_name)

    tests = getattr(module, attribute or "TESTS")
    if callable(tests):
        tests = tests()

    result = list(tests)
    for item in result:
        if not isinstance(item, Test):
            raise TypeError(f"{target} contains a non-test item: {item!r}")
    return result


def filter_tests(tests: Sequence[Test], patterns: Sequence[str]) -> List[Test]:
    """Keep tests whose full name matches any fnmatch pattern (all if none)"""
    if not patterns:
        return list(tests)
    return [
        t for t in tests
        if any(fnmatch.fnmatchcase(t.full_name(), p) for p in patterns)
    ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="testexec",
        description="Run tests with process isolation, concurrency limits and deadlines"
    )
    parser.add_argument(
        "target",
        help="Module holding the tests, optionally module:attribute"
    )
    parser.add_argument(
        "patterns",
        nargs="*",
        help="Glob patterns selecting tests by full name"
    )
    parser.add_argument(
        "--config",
        help="YAML configuration file"
    )
    parser.add_argument(
        "--mode",
        choices=["unit", "performance", "manual"],
        help="Test mode"
    )
    isolation = parser.add_mutually_exclusive_group()
    isolation.add_argument(
        "--isolate",
        dest="isolate",
        action="store_true",
        default=None,
        help="Run each test in its own process"
    )
    isolation.add_argument(
        "--no-isolate",
        dest="isolate",
        action="store_false",
        default=None,
        help="Run tests inline in this process"
    )
    parser.add_argument(
        "-j", "--jobs",
        type=int,
        dest="max_concurrency",
        help="Maximum number of concurrently running tests"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Disable unit test deadlines"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=None,
        help="Verbose test output"
    )
    parser.add_argument(
        "--mtrace",
        dest="memtrace",
        action="store_true",
        default=None,
        help="Trace memory allocations of each test"
    )
    parser.add_argument(
        "--trace-dir",
        help="Directory for memory trace files"
    )
    parser.add_argument(
        "--outfile",
        dest="report_file",
        help="Append performance statistics to this file"
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List selected tests and exit"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level"
    )
    parser.add_argument(
        "--log-file",
        help="Also write diagnostics to this file"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    # Everything after -- is forwarded to the tests
    forwarded: List[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, forwarded = argv[:split], argv[split + 1:]

    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=getattr(logging, args.log_level), log_file=args.log_file)

    overrides: Dict[str, object] = {
        key: getattr(args, key)
        for key in ("mode", "isolate", "max_concurrency", "debug", "verbose",
                    "memtrace", "trace_dir", "report_file")
        if getattr(args, key) is not None
    }
    if forwarded:
        overrides["args"] = tuple(forwarded)

    try:
        config = load_config(args.config, **overrides)
    except (ConfigValidationError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        tests = filter_tests(load_tests(args.target), args.patterns)
    except (ImportError, AttributeError, TypeError) as e:
        print(f"Error: cannot load tests from {args.target}: {e}", file=sys.stderr)
        return 2

    if args.list:
        for test in tests:
            print(test.full_name())
        return 0

    if not tests:
        print("No tests selected", file=sys.stderr)
        return 2

    stats = TestStats()
    try:
        with TestExecutor(config, stats) as executor:
            for test in tests:
                try:
                    executor.submit(test)
                except SpawnError as e:
                    logger.error(f"Skipping '{test.full_name()}': {e}")
                    stats.record_failure(test)
    except ExecutorError as e:
        logger.error(f"Test run aborted: {e}")
        print(stats.summary())
        return 2

    print()
    print(stats.summary())
    return 0 if stats.all_passed else 1


if __name__ == "__main__":
    sys.exit(main())
