"""
Debounce Scheduler.

Coalesces bursts of filter edits into a single submission carrying the
latest criteria once the quiet period has elapsed.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from utils.logging_config import get_logger

from .models import FilterCriteria

logger = get_logger(__name__)

DEFAULT_QUIET_PERIOD_SECONDS = 0.4


class DebounceScheduler:
    """
    Event-loop timer that invokes ``callback`` with the most recent criteria.

    All methods must be called from the event loop thread.
    """

    def __init__(
        self,
        callback: Callable[[FilterCriteria], None],
        delay: float = DEFAULT_QUIET_PERIOD_SECONDS,
    ):
        """
        Args:
            callback: Invoked synchronously with the criteria to submit.
            delay: Quiet period in seconds.
        """
        if delay < 0:
            raise ValueError("delay cannot be negative")
        self._callback = callback
        self._delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._latest: Optional[FilterCriteria] = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        """Whether a timer is armed."""
        return self._handle is not None

    @property
    def pending_criteria(self) -> Optional[FilterCriteria]:
        return self._latest if self._handle is not None else None

    def schedule(self, criteria: FilterCriteria) -> None:
        """(Re)start the quiet period; the latest criteria win."""
        if self._handle is not None:
            self._handle.cancel()
            logger.debug("Debounce reset")
        self._latest = criteria
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def schedule_immediate(self, criteria: FilterCriteria) -> None:
        """Drop any armed timer and invoke the callback now."""
        self.cancel_pending()
        self._callback(criteria)

    def cancel_pending(self) -> bool:
        """Disarm the timer without invoking. Returns True if one was armed."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        self._latest = None
        logger.debug("Debounce cancelled")
        return True

    def _fire(self) -> None:
        criteria = self._latest
        self._handle = None
        self._latest = None
        if criteria is None:
            return
        logger.debug("Debounce fired")
        self._callback(criteria)
