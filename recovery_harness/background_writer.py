"""
Background Writer - Concurrent Write Workload
=============================================
Keeps N writer threads writing unique documents into one collection while
the caller changes the store's topology underneath them.

Every attempted write takes a fresh id from a shared counter. Successful
writes are counted, failed writes are captured and the writer moves on to
the next id, so one bad partition never halts the workload.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from .config import HarnessConfig
from .errors import AggregateWriteFailure, StopTimeout, WriteFailure
from .store_client import StoreClient

logger = logging.getLogger(__name__)


class CountDownLatch:
    """Blocks waiters until count_down() has been called `count` times."""

    def __init__(self, count: int):
        self.count = count
        self.condition = threading.Condition()

    def count_down(self):
        with self.condition:
            if self.count > 0:
                self.count -= 1
                if self.count == 0:
                    self.condition.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Returns False if the timeout expired before the count reached zero."""
        with self.condition:
            return self.condition.wait_for(lambda: self.count == 0, timeout=timeout)


class WriteStats:
    """Thread-safe id source, success counter and failure collector."""

    def __init__(self):
        self.lock = threading.Lock()
        self.last_id = 0
        self.successful = 0
        self.failures: List[WriteFailure] = []

    def next_id(self) -> int:
        with self.lock:
            self.last_id += 1
            return self.last_id

    def record_success(self):
        with self.lock:
            self.successful += 1

    def record_failure(self, failure: WriteFailure):
        with self.lock:
            self.failures.append(failure)

    def snapshot_failures(self) -> Tuple[WriteFailure, ...]:
        with self.lock:
            return tuple(self.failures)


def make_payload(doc_id: int) -> Dict[str, Any]:
    return {"test": f"value{doc_id}"}


class BackgroundWriter:
    """
    Pool of writer threads feeding one collection.

    Writers are spawned on construction and block on the start gate until
    start() is called (immediately when auto_start is set). Use as a context
    manager so the threads are always stopped and joined:

        with BackgroundWriter(client, "test") as writer:
            ...
            writer.stop()
    """

    def __init__(self, client: StoreClient, collection: str,
                 writer_count: Optional[int] = None, auto_start: bool = True):
        if writer_count is None:
            writer_count = HarnessConfig.scaled_random_int_between(
                HarnessConfig.MIN_WRITERS, HarnessConfig.MAX_WRITERS
            )
        if writer_count < 1:
            raise ValueError(f"writer_count must be at least 1, got {writer_count}")

        self.client = client
        self.collection = collection
        self.stats = WriteStats()

        self.start_gate = threading.Event()
        self.stop_requested = threading.Event()
        self.stop_gate = CountDownLatch(writer_count)

        self.stop_lock = threading.Lock()
        self.stop_outcome: Optional[BaseException] = None
        self.stopped = False

        logger.info("--> starting %d writer threads", writer_count)
        self.writers: List[threading.Thread] = []
        for i in range(writer_count):
            thread = threading.Thread(
                target=self._write_loop,
                args=(i,),
                name=f"writer-{i}",
                daemon=True
            )
            thread.start()
            self.writers.append(thread)

        if auto_start:
            self.start()

    @property
    def writer_count(self) -> int:
        return len(self.writers)

    @property
    def ids_issued(self) -> int:
        with self.stats.lock:
            return self.stats.last_id

    @property
    def failures(self) -> Tuple[WriteFailure, ...]:
        return self.stats.snapshot_failures()

    @property
    def is_started(self) -> bool:
        return self.start_gate.is_set()

    @property
    def is_stopped(self) -> bool:
        return self.stopped

    def _write_loop(self, writer_index: int):
        try:
            self.start_gate.wait()
            logger.info("**** starting writer thread %d", writer_index)
            while not self.stop_requested.is_set():
                doc_id = self.stats.next_id()
                key = f"{doc_id}-{writer_index}"
                try:
                    self.client.write(self.collection, key, make_payload(doc_id))
                except Exception as e:
                    self.stats.record_failure(WriteFailure(key, writer_index, e))
                    logger.warning("**** [writer %d] failed on doc id %s: %s", writer_index, key, e)
                    continue
                self.stats.record_success()
            logger.info("**** done writer thread %d", writer_index)
        finally:
            self.stop_gate.count_down()

    def start(self):
        """Release the start gate. Further calls have no effect."""
        self.start_gate.set()

    def total_successful_writes(self) -> int:
        with self.stats.lock:
            return self.stats.successful

    def assert_no_failures(self):
        failures = self.stats.snapshot_failures()
        if failures:
            raise AggregateWriteFailure(failures)

    def stop(self) -> int:
        """
        Ask every writer to exit and wait for all of them.

        Raises StopTimeout if they do not drain within STOP_GRACE_SEC and
        AggregateWriteFailure if any write failed. Calling stop() again after
        it completed repeats the same outcome without touching the writers.
        """
        with self.stop_lock:
            if not self.stopped:
                self.stop_outcome = self._drain()
                self.stopped = True
            if self.stop_outcome is not None:
                raise self.stop_outcome
            return self.total_successful_writes()

    def _drain(self) -> Optional[BaseException]:
        self.stop_requested.set()
        # Writers still parked on the start gate must be let through to exit
        self.start_gate.set()

        grace = HarnessConfig.STOP_GRACE_SEC
        if not self.stop_gate.wait(timeout=grace):
            alive = sum(1 for t in self.writers if t.is_alive())
            return StopTimeout(grace, alive)

        for thread in self.writers:
            thread.join()

        failures = self.stats.snapshot_failures()
        if failures:
            return AggregateWriteFailure(failures)
        return None

    def close(self):
        self.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            if not self.stopped:
                self.stop()
            return False
        # Unwinding from another error: drain the writers but let that error win
        try:
            self.stop()
        except (AggregateWriteFailure, StopTimeout) as e:
            logger.warning("--> writers stopped while handling %s: %s", exc_type.__name__, e)
        return False
