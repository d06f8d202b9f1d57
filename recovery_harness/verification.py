"""
Liveness and convergence checks
===============================
wait_for_docs blocks until enough documents are visible, failing fast when
the visible count stops moving. ConvergenceVerifier runs once the writers
have stopped: it forces every acknowledged write to become visible and then
checks the total count over several independent rounds.
"""

import logging
from typing import List, Optional

from .busy_poll import await_busy
from .config import HarnessConfig
from .errors import ConvergenceTimeout, CountMismatch, StallDetected
from .store_client import MATCH_ALL, CountResult, PartitionStats, RefreshResult, StoreClient

logger = logging.getLogger(__name__)


def wait_for_docs(client: StoreClient, collection: str, num_docs: int,
                  max_wait: Optional[float] = None) -> int:
    """
    Block until more than num_docs documents are visible in the collection.

    Each attempt polls for up to max_wait seconds (DOCS_WAIT_SEC by default).
    A timed-out attempt is retried only if the visible count moved since the
    previous attempt; otherwise StallDetected is raised.

    Returns the last observed count.
    """
    if max_wait is None:
        max_wait = HarnessConfig.DOCS_WAIT_SEC

    last_known_count = -1
    last_start_count = -1

    def enough_docs() -> bool:
        nonlocal last_known_count
        last_known_count = client.count(collection, MATCH_ALL)
        logger.debug("[%d] docs visible for search. waiting for [%d]", last_known_count, num_docs)
        return last_known_count > num_docs

    while not await_busy(enough_docs, max_wait):
        if last_start_count == last_known_count:
            raise StallDetected(num_docs, last_known_count)
        logger.info("--> still waiting for %d docs, %d visible so far", num_docs, last_known_count)
        last_start_count = last_known_count

    return last_known_count


class ConvergenceVerifier:
    """
    Post-run verification of one collection.

    The retry phase in iterate_assert_count is a grace window, not a second
    chance: if the first pass saw a wrong count the run fails on those
    original numbers even when a later pass converges.
    """

    def __init__(self, client: StoreClient, collection: str):
        self.client = client
        self.collection = collection
        self.last_refresh: Optional[RefreshResult] = None

    def refresh_and_assert(self, max_wait: Optional[float] = None) -> RefreshResult:
        """Refresh until every partition acknowledges it, or raise ConvergenceTimeout."""
        if max_wait is None:
            max_wait = HarnessConfig.REFRESH_WAIT_SEC

        def refreshed() -> bool:
            result = self.client.refresh(self.collection)
            self.last_refresh = result
            if result.failures:
                logger.info("refresh failures on [%s]: %s", self.collection, result.failures)
            return result.fully_successful

        if not await_busy(refreshed, max_wait):
            raise ConvergenceTimeout(self.last_refresh, max_wait)
        return self.last_refresh

    def _count_round(self, number_of_shards: int, number_of_docs: int,
                     iteration: int) -> CountResult:
        result = self.client.search_count(self.collection, MATCH_ALL)
        self.log_count_result(number_of_shards, number_of_docs, iteration, result)
        return result

    def iterate_assert_count(self, number_of_shards: int, number_of_docs: int,
                             iterations: Optional[int] = None,
                             max_wait: Optional[float] = None) -> List[CountResult]:
        """
        Query the total count `iterations` times and compare with number_of_docs.

        On any mismatch, dump partition stats and keep re-running full passes
        for up to max_wait seconds (CONVERGENCE_WAIT_SEC) to let the store
        settle, then raise CountMismatch from the original rounds.
        """
        if iterations is None:
            iterations = HarnessConfig.VERIFY_ITERATIONS
        if max_wait is None:
            max_wait = HarnessConfig.CONVERGENCE_WAIT_SEC

        rounds = [self._count_round(number_of_shards, number_of_docs, i) for i in range(iterations)]
        if all(r.total == number_of_docs for r in rounds):
            return rounds

        partitions = self.log_partition_stats()

        def full_pass_matches() -> bool:
            matched = True
            for _ in range(iterations):
                if self.client.search_count(self.collection, MATCH_ALL).total != number_of_docs:
                    matched = False
            return matched

        logger.info("--> trying to wait")
        converged = await_busy(full_pass_matches, max_wait)
        if converged:
            logger.info("--> count converged to %d after retrying", number_of_docs)
        else:
            logger.info("--> count still off after %.0fs", max_wait)

        raise CountMismatch(number_of_docs, rounds, converged, partitions)

    def log_count_result(self, number_of_shards: int, number_of_docs: int,
                         iteration: int, result: CountResult):
        logger.info("iteration [%d] - successful partitions: %s (expected %d)",
                    iteration, result.successful_partitions, number_of_shards)
        logger.info("iteration [%d] - failed partitions: %d (expected 0)",
                    iteration, result.failed_partitions)
        if result.partition_failures:
            logger.info("iteration [%d] - partition failures: %s", iteration, result.partition_failures)
        logger.info("iteration [%d] - returned documents: %d (expected %d)",
                    iteration, result.total, number_of_docs)

    def log_partition_stats(self) -> List[PartitionStats]:
        partitions = self.client.partition_stats(self.collection)
        for stats in partitions:
            logger.info("partition [%s][%d] - count %d, primary %s, node %s",
                        self.collection, stats.partition_id, stats.doc_count,
                        stats.is_primary, stats.node)
        return partitions
