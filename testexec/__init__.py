"""
testexec - isolated, bounded-concurrency test execution

Usage:
    from testexec import ExecutorConfig, FunctionTest, TestExecutor, TestStats

    config = ExecutorConfig(isolate=True, max_concurrency=4)
    stats = TestStats()
    with TestExecutor(config, stats) as executor:
        executor.submit(FunctionTest("dsp", "mul", check_mul))
"""

from .executor import (
    ExecutionContext,
    ExecutorConfig,
    ExecutorError,
    FunctionTest,
    Status,
    Test,
    TestExecutor,
    TestMode,
    TestStats,
    load_config,
)

__version__ = '1.0.0'

__all__ = [
    'ExecutionContext',
    'ExecutorConfig',
    'ExecutorError',
    'FunctionTest',
    'Status',
    'Test',
    'TestExecutor',
    'TestMode',
    'TestStats',
    'load_config',
]
