"""
Recovery-under-load scenarios
=============================
1. Allocate replicas while writing (2 nodes).
2. Allocate replicas and relocate primaries while writing (4 nodes).
3. Grow to 4 nodes, then shut nodes down one by one while writing.
4. Bounce partitions between 1 and 2 nodes while writing, then add replicas.

Every scenario ends the same way: stop the writers, force a refresh and
check that the store reports exactly the number of acknowledged writes.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .background_writer import BackgroundWriter
from .config import HarnessConfig
from .errors import TopologyTimeout
from .store_client import ClusterAdmin, CountResult, StoreClient, TopologyPredicate
from .verification import ConvergenceVerifier, wait_for_docs

logger = logging.getLogger(__name__)


@dataclass
class ScenarioSettings:
    collection: str = HarnessConfig.DEFAULT_COLLECTION
    number_of_shards: int = 5
    total_docs: Optional[int] = None
    writer_count: Optional[int] = None

    def resolve_total_docs(self, low: int, high: int) -> int:
        if self.total_docs is None:
            self.total_docs = HarnessConfig.scaled_random_int_between(low, high)
        return self.total_docs


@dataclass
class ScenarioReport:
    name: str
    docs_written: int
    ids_issued: int
    elapsed: float
    rounds: List[CountResult] = field(default_factory=list)


class RunState:
    """What the run is doing right now; read by the dashboard."""

    def __init__(self, client: Optional[StoreClient] = None, collection: Optional[str] = None):
        self.client = client
        self.collection = collection
        self.scenario: Optional[str] = None
        self.phase = "idle"
        self.writer: Optional[BackgroundWriter] = None
        self.report: Optional[ScenarioReport] = None

    def step(self, message: str, *args):
        logger.info("--> " + message, *args)
        self.phase = message % args if args else message


class Store(StoreClient, ClusterAdmin):
    """A store the scenarios can both write to and reshape."""


def wait_for_health(client: StoreClient, collection: str, status: str,
                    min_nodes: Optional[int] = None):
    predicate = TopologyPredicate(status=status, min_nodes=min_nodes)
    timeout = HarnessConfig.HEALTH_TIMEOUT_SEC
    if client.wait_for_topology(collection, predicate, timeout):
        raise TopologyTimeout(collection, predicate, timeout)


def _index_until(state: RunState, client: StoreClient, writer: BackgroundWriter,
                 collection: str, num_docs: int):
    state.step("waiting for %d docs to be indexed ...", num_docs)
    wait_for_docs(client, collection, num_docs)
    writer.assert_no_failures()
    logger.info("--> %d docs indexed", num_docs)


def _stop_and_verify(state: RunState, client: StoreClient, writer: BackgroundWriter,
                     settings: ScenarioSettings, name: str, started: float,
                     before_refresh: Optional[Callable[[], None]] = None) -> ScenarioReport:
    state.step("marking and waiting for writer threads to stop ...")
    writer.stop()
    logger.info("--> writer threads stopped")

    if before_refresh is not None:
        before_refresh()

    verifier = ConvergenceVerifier(client, settings.collection)
    state.step("refreshing the collection")
    verifier.refresh_and_assert()
    state.step("verifying written content")
    rounds = verifier.iterate_assert_count(settings.number_of_shards, writer.total_successful_writes())

    report = ScenarioReport(
        name=name,
        docs_written=writer.total_successful_writes(),
        ids_issued=writer.ids_issued,
        elapsed=time.monotonic() - started,
        rounds=rounds,
    )
    state.report = report
    state.step("done")
    return report


def _allocate_backups_while_writing(client: Store, settings: ScenarioSettings, state: RunState,
                                    name: str, node_count: int) -> ScenarioReport:
    started = time.monotonic()
    collection = settings.collection
    state.scenario = name
    state.step("creating collection [%s] ...", collection)
    client.create_collection(collection, settings.number_of_shards, replicas=1, min_nodes=1)

    total_docs = settings.resolve_total_docs(200, 20000)
    with BackgroundWriter(client, collection, settings.writer_count) as writer:
        state.writer = writer
        wait_for = total_docs // 10
        _index_until(state, client, writer, collection, wait_for)

        # flush so the collection holds some persisted data, not only a write-ahead log
        state.step("flushing the collection ...")
        client.flush(collection)

        wait_for += total_docs // 10
        _index_until(state, client, writer, collection, wait_for)

        state.step("allow %d nodes for collection [%s] ...", node_count, collection)
        client.allow_nodes(collection, node_count)
        state.step("waiting for GREEN health status ...")
        wait_for_health(client, collection, "green", min_nodes=node_count)

        _index_until(state, client, writer, collection, total_docs)
        return _stop_and_verify(state, client, writer, settings, name, started)


def allocate_backups(client: Store, settings: ScenarioSettings,
                     state: Optional[RunState] = None) -> ScenarioReport:
    """Start a second node while writing so replicas get allocated under load."""
    return _allocate_backups_while_writing(client, settings, state or RunState(client, settings.collection),
                                           "allocate-backups", node_count=2)


def allocate_backups_relocate_primaries(client: Store, settings: ScenarioSettings,
                                        state: Optional[RunState] = None) -> ScenarioReport:
    """Grow to 4 nodes while writing, so primaries relocate as well."""
    return _allocate_backups_while_writing(client, settings, state or RunState(client, settings.collection),
                                           "relocate-primaries", node_count=4)


def node_shutdown(client: Store, settings: ScenarioSettings,
                  state: Optional[RunState] = None) -> ScenarioReport:
    """Grow to 4 nodes, then take them away one at a time while writing."""
    state = state or RunState(client, settings.collection)
    started = time.monotonic()
    collection = settings.collection
    state.scenario = "node-shutdown"
    state.step("creating collection [%s] ...", collection)
    client.create_collection(collection, settings.number_of_shards, replicas=1, min_nodes=2)

    total_docs = settings.resolve_total_docs(200, 20000)
    with BackgroundWriter(client, collection, settings.writer_count) as writer:
        state.writer = writer
        wait_for = total_docs // 10
        _index_until(state, client, writer, collection, wait_for)

        state.step("flushing the collection ...")
        client.flush(collection)

        wait_for += total_docs // 10
        _index_until(state, client, writer, collection, wait_for)

        state.step("allow 4 nodes for collection [%s] ...", collection)
        client.allow_nodes(collection, 4)
        state.step("waiting for GREEN health status ...")
        wait_for_health(client, collection, "green", min_nodes=4)

        _index_until(state, client, writer, collection, total_docs)

        for nodes in (3, 2):
            state.step("allow %d nodes for collection [%s] ...", nodes, collection)
            client.allow_nodes(collection, nodes)
            state.step("waiting for GREEN health status ...")
            wait_for_health(client, collection, "green", min_nodes=nodes)

        # a single node cannot hold replicas, so yellow is the best it can do
        state.step("allow 1 nodes for collection [%s] ...", collection)
        client.allow_nodes(collection, 1)
        state.step("waiting for YELLOW health status ...")
        wait_for_health(client, collection, "yellow", min_nodes=1)

        return _stop_and_verify(
            state, client, writer, settings, "node-shutdown", started,
            before_refresh=lambda: wait_for_health(client, collection, "yellow", min_nodes=1),
        )


def relocating(client: Store, settings: ScenarioSettings,
               state: Optional[RunState] = None, rng: Optional[random.Random] = None) -> ScenarioReport:
    """
    Keep moving partitions between one and two nodes while writing, with no
    replicas to fall back on, then add a replica once the writers stop.
    """
    state = state or RunState(client, settings.collection)
    rng = rng or random.Random()
    started = time.monotonic()
    collection = settings.collection
    state.scenario = "relocating"
    state.step("creating collection [%s] ...", collection)
    client.create_collection(collection, settings.number_of_shards, replicas=0, min_nodes=3)

    total_docs = settings.resolve_total_docs(200, 50000)
    allowed = 2
    with BackgroundWriter(client, collection, settings.writer_count) as writer:
        state.writer = writer
        i = 0
        while i < total_docs:
            writer.assert_no_failures()
            _index_until(state, client, writer, collection, i)
            allowed = 2 // allowed
            state.step("allow %d nodes for collection [%s] ...", allowed, collection)
            client.allow_nodes(collection, allowed)
            state.step("waiting for GREEN health status ...")
            wait_for_health(client, collection, "green")
            i += HarnessConfig.scaled_random_int_between(100, max(100, min(1000, total_docs)), rng)

        def add_replicas():
            state.step("bump up number of replicas to 1 and allow all nodes to hold the collection")
            client.allow_nodes(collection, 3)
            client.set_replicas(collection, 1)
            wait_for_health(client, collection, "green")

        return _stop_and_verify(state, client, writer, settings, "relocating", started,
                                before_refresh=add_replicas)


SCENARIOS: Dict[str, Callable[..., ScenarioReport]] = {
    "allocate-backups": allocate_backups,
    "relocate-primaries": allocate_backups_relocate_primaries,
    "node-shutdown": node_shutdown,
    "relocating": relocating,
}


def run_scenario(name: str, client: Store, settings: ScenarioSettings,
                 state: Optional[RunState] = None) -> ScenarioReport:
    if name not in SCENARIOS:
        raise ValueError(f"unknown scenario '{name}', expected one of {sorted(SCENARIOS)}")

    logger.info("=" * 70)
    logger.info("SCENARIO %s on [%s] (%d partitions)", name, settings.collection, settings.number_of_shards)
    logger.info("=" * 70)

    report = SCENARIOS[name](client, settings, state)
    logger.info("SCENARIO %s passed: %d docs written (%d ids issued) in %.1fs",
                report.name, report.docs_written, report.ids_issued, report.elapsed)
    return report
