"""
Error taxonomy for the recovery harness
"""

from typing import Iterable, Optional, Sequence


class HarnessError(Exception):
    """Base class for every failure the harness reports."""


class StoreError(HarnessError):
    """A store operation failed, either in transport or on the store side."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")


class WriteFailure(HarnessError):
    """
    A single write attempt failed.
    Captured by the writer thread that hit it, never raised from there.
    """

    def __init__(self, doc_id: str, writer_index: int, cause: BaseException):
        self.doc_id = doc_id
        self.writer_index = writer_index
        self.cause = cause
        super().__init__(f"writer {writer_index} failed on doc [{doc_id}]: {cause!r}")


class AggregateWriteFailure(HarnessError):
    """One or more writes failed during the run."""

    def __init__(self, failures: Iterable[WriteFailure]):
        self.failures = tuple(failures)
        preview = "; ".join(str(f) for f in self.failures[:3])
        more = len(self.failures) - 3
        if more > 0:
            preview += f"; ... {more} more"
        super().__init__(f"{len(self.failures)} write(s) failed: {preview}")

    def __len__(self):
        return len(self.failures)


class StopTimeout(HarnessError):
    """Writer threads did not all exit within the stop grace period."""

    def __init__(self, grace: float, alive: int):
        self.grace = grace
        self.alive = alive
        super().__init__(
            f"timeout while waiting for writer threads to stop: "
            f"{alive} still running after {grace:.0f}s"
        )


class StallDetected(HarnessError):
    """The visible document count stopped advancing between polling attempts."""

    def __init__(self, target: int, last_count: int):
        self.target = target
        self.last_count = last_count
        super().__init__(f"failed to reach {target} docs, stuck at {last_count}")


class ConvergenceTimeout(HarnessError):
    """A refresh never succeeded on every partition within the budget."""

    def __init__(self, last_result, waited: float):
        self.last_result = last_result
        self.waited = waited
        super().__init__(f"refresh did not succeed on all partitions within {waited:.0f}s "
                         f"(last result: {last_result})")


class CountMismatch(HarnessError):
    """
    The document count observed after the run differs from what was written.
    Built from the original verification rounds, even when a later retry
    pass converged. `partitions` is the per-partition dump taken when the
    mismatch was first seen.
    """

    def __init__(self, expected: int, rounds: Sequence, converged_on_retry: bool,
                 partitions: Sequence = ()):
        self.expected = expected
        self.rounds = tuple(rounds)
        self.converged_on_retry = converged_on_retry
        self.partitions = tuple(partitions)
        self.mismatches = tuple(
            (i, r.total) for i, r in enumerate(self.rounds) if r.total != expected
        )
        observed = ", ".join(f"iteration [{i}] returned {total}" for i, total in self.mismatches)
        dump = "; ".join(
            f"[{p.partition_id}]{'p' if p.is_primary else 'r'} {p.doc_count} on {p.node}"
            for p in self.partitions
        )
        super().__init__(
            f"expected {expected} docs: {observed} "
            f"(retry phase {'converged' if converged_on_retry else 'did not converge'})"
            f"; partitions: {dump or 'unavailable'}"
        )


class TopologyTimeout(HarnessError):
    """The store did not reach the requested health before the timeout."""

    def __init__(self, collection: str, predicate, timeout: Optional[float]):
        self.collection = collection
        self.predicate = predicate
        self.timeout = timeout
        super().__init__(f"[{collection}] timed out after {timeout}s waiting for {predicate}")
