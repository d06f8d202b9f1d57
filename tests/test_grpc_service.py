"""
Round-trip tests: GrpcStoreClient against a real gRPC server wrapping a fake store.
"""

from concurrent import futures

import grpc
import pytest
from google.protobuf.struct_pb2 import Struct

from recovery_harness import wire
from recovery_harness.background_writer import BackgroundWriter
from recovery_harness.errors import StoreError
from recovery_harness.grpc_client import GrpcStoreClient
from recovery_harness.store_client import MATCH_ALL, TopologyPredicate
from recovery_harness.store_service import StoreServicer, serve
from recovery_harness.verification import ConvergenceVerifier, wait_for_docs
from tests.fakes import FakeStore, ScriptedStore


@pytest.fixture
def served_store():
    store = FakeStore()
    server, port = serve(store, host="localhost", port=0)
    yield store, f"localhost:{port}"
    server.stop(0)


@pytest.fixture
def client(served_store):
    _, address = served_store
    with GrpcStoreClient(address, timeout=5) as client:
        yield client


def test_write_and_count(served_store, client):
    store, _ = served_store
    client.create_collection("test", shards=3, replicas=1)

    client.write("test", "1-0", {"test": "value1"})
    client.write("test", "2-0", {"test": "value2"})

    assert client.count("test") == 2
    assert store.count("test") == 2


def test_search_count_carries_partition_metadata(client):
    client.create_collection("test", shards=4, replicas=0)
    client.write("test", "1-0", {"test": "value1"})

    result = client.search_count("test", MATCH_ALL)

    assert result.total == 1
    assert result.total_partitions == 4
    assert result.successful_partitions == 4
    assert result.failed_partitions == 0


def test_refresh_reports_partial_success(served_store, client):
    store, _ = served_store
    client.create_collection("test", shards=3, replicas=1)
    store.refresh_failures = 1

    partial = client.refresh("test")
    assert not partial.fully_successful
    assert partial.successful_partitions == 2
    assert partial.failures

    assert client.refresh("test").fully_successful


def test_partition_stats(client):
    client.create_collection("test", shards=2, replicas=1, min_nodes=2)
    stats = client.partition_stats("test")

    assert len(stats) == 4
    assert sorted(s.partition_id for s in stats if s.is_primary) == [0, 1]


def test_topology_operations(served_store, client):
    store, _ = served_store
    client.create_collection("test", shards=2, replicas=1)

    assert client.wait_for_topology("test", TopologyPredicate("green", min_nodes=2), 1) is True

    client.allow_nodes("test", 2)
    client.flush("test")
    assert client.wait_for_topology("test", TopologyPredicate("green", min_nodes=2), 1) is False

    client.set_replicas("test", 2)
    assert client.wait_for_topology("test", TopologyPredicate("green"), 1) is True
    assert client.wait_for_topology("test", TopologyPredicate("yellow"), 1) is False

    assert store.allowed_node_history() == [2]
    assert store.collections["test"].flushes == 1


def test_store_side_errors_become_store_errors(client):
    with pytest.raises(StoreError) as exc_info:
        client.write("missing", "1-0", {"test": "value1"})

    assert exc_info.value.operation == "Write"
    assert "no such collection" in exc_info.value.message


def test_unreachable_store():
    with GrpcStoreClient("localhost:1", timeout=1) as client:
        with pytest.raises(StoreError) as exc_info:
            client.count("test")
    assert exc_info.value.operation == "Count"


def test_store_without_admin_support():
    server, port = serve(ScriptedStore(counts=[7]), port=0)
    try:
        with GrpcStoreClient(f"localhost:{port}", timeout=5) as client:
            assert client.count("test") == 7
            with pytest.raises(StoreError, match="does not support topology changes"):
                client.allow_nodes("test", 2)
    finally:
        server.stop(0)


def test_writers_and_verification_over_grpc(served_store, client):
    client.create_collection("test", shards=3, replicas=1)

    with BackgroundWriter(client, "test", writer_count=3) as writer:
        wait_for_docs(client, "test", 100)
        written = writer.stop()

    verifier = ConvergenceVerifier(client, "test")
    verifier.refresh_and_assert()
    rounds = verifier.iterate_assert_count(3, written, 5)
    assert all(r.total == written for r in rounds)


def test_wire_method_paths():
    assert wire.method_path("Write") == "/recovery_harness.StoreService/Write"


def test_struct_messages_keep_queries_and_nulls():
    message = wire.to_struct({"collection": "test", "query": MATCH_ALL, "min_nodes": None})
    decoded = wire.from_struct(Struct.FromString(message.SerializeToString()))
    assert decoded == {"collection": "test", "query": {"match_all": {}}, "min_nodes": None}


def test_base_servicer_answers_unimplemented():
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=2))
    wire.add_StoreServiceServicer_to_server(wire.StoreServiceServicer(), server)
    port = server.add_insecure_port("localhost:0")
    server.start()
    try:
        with GrpcStoreClient(f"localhost:{port}", timeout=5) as client:
            with pytest.raises(StoreError, match="UNIMPLEMENTED"):
                client.count("test")
    finally:
        server.stop(0)


def test_admin_calls_on_read_only_store_raise_store_error():
    servicer = StoreServicer(ScriptedStore())
    with pytest.raises(StoreError) as exc_info:
        servicer._admin("Flush")
    assert exc_info.value.operation == "Flush"
    assert "does not support topology changes" in exc_info.value.message
