"""
Configuration module for the recovery harness
Timeouts, polling intervals and workload sizing for one test run
"""

import logging
import random
from typing import Optional

logger = logging.getLogger(__name__)


class HarnessConfig:
    """
    Configuration for a recovery-under-load run.
    Every budget is in seconds and can be overridden by the CLI or by tests.
    """

    # Busy-poll check interval
    CHECK_INTERVAL_SEC = 0.1

    # Writers get this long to drain after stop() before the run is failed
    STOP_GRACE_SEC = 6 * 60

    # While relocating, writers can stall for ~1m on partitions that are not
    # started yet, so liveness waits get a long per-attempt budget.
    DOCS_WAIT_SEC = 5 * 60
    REFRESH_WAIT_SEC = 5 * 60
    CONVERGENCE_WAIT_SEC = 5 * 60
    HEALTH_TIMEOUT_SEC = 60

    VERIFY_ITERATIONS = 10

    MIN_WRITERS = 3
    MAX_WRITERS = 10
    RANDOM_MULTIPLIER = 1

    REQUEST_TIMEOUT_SEC = 15

    DEFAULT_COLLECTION = "test"

    @staticmethod
    def scaled_random_int_between(low: int, high: int,
                                  rng: Optional[random.Random] = None) -> int:
        """
        Pick a random int in [low, high], scaled up by RANDOM_MULTIPLIER.
        The scaled value never exceeds high.
        """
        rng = rng or random
        value = rng.randint(low, high)
        return min(high, int(value * HarnessConfig.RANDOM_MULTIPLIER))

    @staticmethod
    def set_quick_timeouts():
        """Short budgets for smoke runs against a local store."""
        HarnessConfig.CHECK_INTERVAL_SEC = 0.05
        HarnessConfig.STOP_GRACE_SEC = 30
        HarnessConfig.DOCS_WAIT_SEC = 10
        HarnessConfig.REFRESH_WAIT_SEC = 10
        HarnessConfig.CONVERGENCE_WAIT_SEC = 10
        HarnessConfig.HEALTH_TIMEOUT_SEC = 10
        logger.info("[Config] Using quick timeouts")

    @staticmethod
    def validate() -> bool:
        """
        Validate that the configured budgets make sense.
        Raises ValueError on the first bad value.
        """
        budgets = {
            "CHECK_INTERVAL_SEC": HarnessConfig.CHECK_INTERVAL_SEC,
            "STOP_GRACE_SEC": HarnessConfig.STOP_GRACE_SEC,
            "DOCS_WAIT_SEC": HarnessConfig.DOCS_WAIT_SEC,
            "REFRESH_WAIT_SEC": HarnessConfig.REFRESH_WAIT_SEC,
            "CONVERGENCE_WAIT_SEC": HarnessConfig.CONVERGENCE_WAIT_SEC,
            "HEALTH_TIMEOUT_SEC": HarnessConfig.HEALTH_TIMEOUT_SEC,
        }
        for name, value in budgets.items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        if HarnessConfig.VERIFY_ITERATIONS < 1:
            raise ValueError("VERIFY_ITERATIONS must be at least 1")

        if not 1 <= HarnessConfig.MIN_WRITERS <= HarnessConfig.MAX_WRITERS:
            raise ValueError(
                f"writer range [{HarnessConfig.MIN_WRITERS}, {HarnessConfig.MAX_WRITERS}] is invalid"
            )
        return True
