#!/usr/bin/env python3
"""
Deadline Timer

One-shot, process-local expiration for a running unit test. Expiry is
self-enforced: the process that armed the timer terminates itself with
Status.TIMEOUT. Arm it inside the isolated child, never in the
supervising parent.
"""

import errno
import logging
import os
import signal
import sys
from abc import ABC, abstractmethod
from typing import Any, Optional

from .errors import DeadlineError, Status

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Unit test time limit exceeded"


class DeadlineService(ABC):
    """Injectable deadline capability used by the dispatcher"""

    @abstractmethod
    def arm(self, seconds: float) -> None:
        """Install a one-shot expiration. Raises DeadlineError on failure."""

    @abstractmethod
    def disarm(self) -> None:
        """Cancel a pending expiration. Benign when nothing is armed."""


def _expire(signum, frame) -> None:
    sys.stderr.write(f"{TIMEOUT_MESSAGE}\n")
    sys.stderr.flush()
    sys.stdout.flush()
    os._exit(Status.TIMEOUT)


class DeadlineTimer(DeadlineService):
    """SIGALRM/ITIMER_REAL implementation (POSIX only)."""

    def __init__(self):
        self._previous_handler: Optional[Any] = None
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self, seconds: float) -> None:
        if not seconds > 0:
            # A zero interval would clear the timer instead of arming it
            logger.error(f"Refusing to arm deadline of {seconds}s")
            raise DeadlineError(f"Invalid time limit: {seconds}s", errno=errno.EINVAL)

        installed = False
        try:
            self._previous_handler = signal.signal(signal.SIGALRM, _expire)
            installed = True
            signal.setitimer(signal.ITIMER_REAL, seconds)
        except (OSError, ValueError, AttributeError) as e:
            if installed:
                signal.signal(signal.SIGALRM, self._previous_handler or signal.SIG_DFL)
            err = getattr(e, "errno", None)
            logger.error(f"Failed to arm deadline of {seconds}s: {e}")
            raise DeadlineError(f"setitimer failed: {e}", errno=err) from e

        self._armed = True
        logger.debug(f"Deadline armed: {seconds}s")

    def disarm(self) -> None:
        if not self._armed:
            return
        self._armed = False

        try:
            signal.setitimer(signal.ITIMER_REAL, 0)
            previous = self._previous_handler
            signal.signal(signal.SIGALRM, previous if previous is not None else signal.SIG_DFL)
        except (OSError, ValueError) as e:
            err = getattr(e, "errno", None)
            logger.error(f"Failed to disarm deadline: {e}")
            raise DeadlineError(f"setitimer failed: {e}", errno=err) from e
        finally:
            self._previous_handler = None

        logger.debug("Deadline disarmed")
