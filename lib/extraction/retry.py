"""
Bounded retry with exponential backoff for fallible browser steps.
Failures are logged and turned into ABSENT; nothing is re-raised.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Absent:
    """Falsy "no result" marker returned when every attempt failed."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


def with_retry(
    action: Callable[[], T],
    max_attempts: int,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> Union[T, _Absent]:
    """
    Run action up to max_attempts times.
    After failed attempt n (1-based) sleeps 2**n seconds before trying again.
    Returns the first successful result, or ABSENT once the budget is spent.
    """
    attempt = 1
    while attempt <= max_attempts:
        try:
            return action()
        except Exception as e:
            logger.warning(f"[Retry] {description} failed (attempt {attempt}/{max_attempts}): {e}")
            if attempt < max_attempts:
                sleep(2 ** attempt)
            attempt += 1
    logger.error(f"[Retry] giving up on {description} after {max_attempts} attempts")
    return ABSENT
