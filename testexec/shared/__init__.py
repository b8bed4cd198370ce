"""
Shared Infrastructure Module

Process launching and logging helpers used by the executor and CLI.

Usage:
    from testexec.shared.process_utils import ProcessLauncher, TerminationInfo
    from testexec.shared.logging_utils import setup_logging, separator
"""

# Process utilities
from .process_utils import (
    ProcessHandle,
    ProcessLauncher,
    TerminationInfo,
    TerminationKind,
)

# Logging utilities
from .logging_utils import (
    setup_logging,
    log_exception,
    banner,
    separator,
    ColoredFormatter,
)

__all__ = [
    # Process
    'ProcessHandle',
    'ProcessLauncher',
    'TerminationInfo',
    'TerminationKind',

    # Logging
    'setup_logging',
    'log_exception',
    'banner',
    'separator',
    'ColoredFormatter',
]
