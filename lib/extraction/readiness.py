"""
Content-readiness waiter.

The target pages render asynchronously with no completion event, so we poll a
cheap readiness predicate with capped exponential backoff:

    WAITING --predicate true--> READY
    WAITING --deadline passed--> TIMED_OUT   (logged, not raised)
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Iterable

from lib.extraction import settings
from lib.extraction.driver import BrowserDriver
from lib.extraction.models import NavigationState, ReadinessOutcome
from lib.extraction.registry import join_selectors

logger = logging.getLogger(__name__)


def content_ready_predicate(
    driver: BrowserDriver,
    row_selectors: Iterable[str],
    empty_selectors: Iterable[str],
) -> Callable[[], bool]:
    """At least one row/tile matches, or an explicit empty-state marker is present."""
    rows = join_selectors(row_selectors)
    empty = join_selectors(empty_selectors)

    def _ready() -> bool:
        try:
            if driver.query_all(rows):
                return True
            return bool(empty) and bool(driver.query_all(empty))
        except Exception as e:
            logger.debug(f"[Readiness] predicate error: {e}")
            return False

    return _ready


class ContentReadinessWaiter:
    def __init__(
        self,
        timeout_ms: int = settings.PLAYLIST_WAIT_MS,
        poll_interval_ms: int = settings.POLL_INTERVAL_MS,
        poll_ceiling_ms: int = settings.POLL_CEILING_MS,
        backoff_factor: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.timeout_s = timeout_ms / 1000.0
        self.poll_interval_s = poll_interval_ms / 1000.0
        self.poll_ceiling_s = max(poll_ceiling_ms, poll_interval_ms) / 1000.0
        self.backoff_factor = backoff_factor
        self._clock = clock
        self._sleep = sleep

    def begin(self, target_url: str, predicate: Callable[[], bool]) -> NavigationState:
        return NavigationState(
            target_url=target_url,
            predicate=predicate,
            deadline=self._clock() + self.timeout_s,
            poll_interval=self.poll_interval_s,
        )

    def wait(self, state: NavigationState) -> ReadinessOutcome:
        polls = 0
        while True:
            polls += 1
            if state.predicate():
                logger.info(f"[Readiness] content ready after {polls} poll(s): {state.target_url}")
                return ReadinessOutcome.READY
            remaining = state.deadline - self._clock()
            if remaining <= 0:
                logger.warning(f"[Readiness] timed out after {polls} poll(s) waiting for content: {state.target_url}")
                return ReadinessOutcome.TIMED_OUT
            self._sleep(min(state.poll_interval, remaining))
            state.poll_interval = min(state.poll_interval * self.backoff_factor, self.poll_ceiling_s)

    def wait_for(self, target_url: str, predicate: Callable[[], bool]) -> ReadinessOutcome:
        return self.wait(self.begin(target_url, predicate))
