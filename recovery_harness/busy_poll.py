"""
Busy-poll condition wait
"""

import time
from typing import Callable, Optional

from .config import HarnessConfig


def await_busy(predicate: Callable[[], bool], max_wait: float,
               check_interval: Optional[float] = None) -> bool:
    """
    Re-evaluate predicate every check_interval seconds until it returns True
    or max_wait seconds have passed.

    Returns False on timeout instead of raising. The predicate is evaluated
    one last time when the budget runs out, so a condition that turns true
    during the final sleep is still observed. Exceptions from the predicate
    propagate.
    """
    if check_interval is None:
        check_interval = HarnessConfig.CHECK_INTERVAL_SEC

    deadline = time.monotonic() + max_wait
    while True:
        if predicate():
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        time.sleep(min(check_interval, remaining))
