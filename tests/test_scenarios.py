"""
Tests for the recovery-under-load scenarios, run against the fake store.
"""

import random

import pytest

from recovery_harness.errors import CountMismatch, TopologyTimeout
from recovery_harness.scenarios import (
    SCENARIOS,
    RunState,
    ScenarioSettings,
    allocate_backups,
    allocate_backups_relocate_primaries,
    node_shutdown,
    relocating,
    run_scenario,
)
from tests.fakes import FakeStore


def settings(**overrides):
    values = dict(collection="test", number_of_shards=3, total_docs=300, writer_count=3)
    values.update(overrides)
    return ScenarioSettings(**values)


@pytest.fixture
def fresh_store():
    return FakeStore()


def test_allocate_backups(fresh_store):
    report = allocate_backups(fresh_store, settings())

    assert report.name == "allocate-backups"
    assert report.docs_written > 300
    assert report.docs_written == fresh_store.count("test")
    assert len(report.rounds) == 10
    assert fresh_store.allowed_node_history() == [2]
    assert fresh_store.collections["test"].flushes == 1


def test_relocate_primaries_uses_four_nodes(fresh_store):
    report = allocate_backups_relocate_primaries(fresh_store, settings())

    assert report.name == "relocate-primaries"
    assert fresh_store.allowed_node_history() == [4]
    assert ("wait", "test", "green", 4) in fresh_store.topology_log


def test_node_shutdown_shrinks_to_one_node(fresh_store):
    report = node_shutdown(fresh_store, settings())

    assert report.docs_written == fresh_store.count("test")
    assert fresh_store.allowed_node_history() == [4, 3, 2, 1]
    waits = [entry for entry in fresh_store.topology_log if entry[0] == "wait"]
    assert waits[-1] == ("wait", "test", "yellow", 1)
    assert waits[-2] == ("wait", "test", "yellow", 1)


def test_relocating_toggles_nodes_then_adds_replicas(fresh_store):
    report = relocating(fresh_store, settings(total_docs=400), rng=random.Random(7))

    history = fresh_store.allowed_node_history()
    assert history[-1] == 3
    assert set(history[:-1]) == {1, 2}
    assert history[0] == 1
    assert all(a != b for a, b in zip(history[:-1], history[1:-1]))
    assert ("set_replicas", "test", 1) in fresh_store.topology_log
    assert fresh_store.collections["test"].replicas == 1
    assert report.docs_written == fresh_store.count("test")


def test_unhealthy_store_fails_with_topology_timeout(fresh_store):
    fresh_store.stuck_topology = True

    with pytest.raises(TopologyTimeout) as exc_info:
        allocate_backups(fresh_store, settings())
    assert exc_info.value.predicate.min_nodes == 2


def test_lost_write_fails_the_scenario():
    # the first verification round under-reports by one
    class LossyStore(FakeStore):
        def search_count(self, collection, query=None):
            result = super().search_count(collection)
            if not self.reported_loss:
                self.reported_loss = True
                return type(result)(total=result.total - 1, total_partitions=result.total_partitions,
                                    successful_partitions=result.successful_partitions)
            return result

    store = LossyStore()
    store.reported_loss = False

    with pytest.raises(CountMismatch) as exc_info:
        run_scenario("allocate-backups", store, settings())
    assert exc_info.value.converged_on_retry is True
    assert exc_info.value.mismatches[0][0] == 0


def test_run_state_tracks_progress(fresh_store):
    state = RunState(fresh_store, "test")
    report = run_scenario("allocate-backups", fresh_store, settings(), state)

    assert state.scenario == "allocate-backups"
    assert state.phase == "done"
    assert state.report is report
    assert state.writer is not None and state.writer.is_stopped


def test_random_doc_total_when_unset(fresh_store):
    chosen = settings(total_docs=None)
    assert 200 <= chosen.resolve_total_docs(200, 400) <= 400
    assert chosen.resolve_total_docs(200, 400) == chosen.total_docs


def test_unknown_scenario(fresh_store):
    with pytest.raises(ValueError, match="unknown scenario"):
        run_scenario("split-brain", fresh_store, settings())


def test_registry_names():
    assert sorted(SCENARIOS) == ["allocate-backups", "node-shutdown", "relocate-primaries", "relocating"]
