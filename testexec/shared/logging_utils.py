#!/usr/bin/env python3
"""
Logging Utilities

Diagnostics setup for the executor and the separator lines framing its
console output. Banners, summaries and statistics are printed to stdout;
diagnostics go through logging, to stderr by default.

Forked children inherit the parent's handlers, so the default format
carries the process id.

Usage:
    setup_logging(level=logging.DEBUG, log_file=Path("run.log"))
    print(banner("Launching unit test 'dsp.mul'"))
"""

import logging
import sys
import traceback
from pathlib import Path
from typing import IO, Optional, Union

SEPARATOR_WIDTH = 80

DEFAULT_FORMAT = '%(asctime)s [%(process)d] %(name)s %(levelname)s: %(message)s'

RESET = '\033[0m'

# ANSI colors per level name
LEVEL_COLORS = {
    'DEBUG': '\033[2m\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[41m\033[37m\033[1m',
}


class ColoredFormatter(logging.Formatter):
    """Formatter coloring the level name of console records"""

    def format(self, record):
        color = LEVEL_COLORS.get(record.levelname)
        if color is None:
            return super().format(record)

        # Color a copy so other handlers keep the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{RESET}"
        return super().format(colored)


def setup_logging(
    level: int = logging.INFO,
    log_format: str = DEFAULT_FORMAT,
    log_file: Optional[Union[str, Path]] = None,
    use_colors: bool = True,
    stream: Optional[IO[str]] = None
) -> None:
    """
    Configure the root logger for a test run.

    Args:
        level: Logging level (default: INFO)
        log_format: Format string shared by all handlers
        log_file: Optional file receiving the same records, uncolored
        use_colors: Color the console level names when it is a TTY
        stream: Console stream (default: stderr)
    """
    stream = stream or sys.stderr

    console = logging.StreamHandler(stream)
    isatty = getattr(stream, "isatty", None)
    if use_colors and isatty is not None and isatty():
        console.setFormatter(ColoredFormatter(log_format))
    else:
        console.setFormatter(logging.Formatter(log_format))
    handlers = [console]

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(log_format))
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)


def separator(char: str = "-") -> str:
    """Return a full-width separator line"""
    return char * SEPARATOR_WIDTH


def banner(title: str) -> str:
    """Title framed by separator lines, preceded by an empty line"""
    return f"\n{separator()}\n{title}\n{separator()}"


def log_exception(logger: logging.Logger, exc: BaseException, context: str = "") -> None:
    """
    Log an exception as an error, with its traceback at debug level.

    Args:
        logger: Logger instance
        exc: Exception to log
        context: What was running, e.g. "test 'dsp.mul'"
    """
    where = f" during {context}" if context else ""
    logger.error(f"Exception occurred{where}: {type(exc).__name__}: {exc}")
    logger.debug("Traceback:\n" + "".join(traceback.format_tb(exc.__traceback__)))
