"""
gRPC Store Client
Talks to a store that exposes the recovery_harness.StoreService over gRPC
(see store_service.proto)
"""

import logging
from typing import Any, Dict, List, Optional

import grpc

from . import wire
from .config import HarnessConfig
from .errors import StoreError
from .store_client import (
    MATCH_ALL,
    ClusterAdmin,
    CountResult,
    PartitionStats,
    RefreshResult,
    StoreClient,
    TopologyPredicate,
)

logger = logging.getLogger(__name__)


class GrpcStoreClient(StoreClient, ClusterAdmin):
    """
    StoreClient and ClusterAdmin backed by one gRPC channel.
    grpc channels are thread-safe, so all writer threads share this client.
    """

    def __init__(self, address: str, timeout: Optional[float] = None):
        self.address = address
        self.timeout = timeout if timeout is not None else HarnessConfig.REQUEST_TIMEOUT_SEC
        self.channel = grpc.insecure_channel(address)
        self.stub = wire.StoreServiceStub(self.channel)

    def _call(self, method: str, request: Dict[str, Any],
              timeout: Optional[float] = None) -> Dict[str, Any]:
        try:
            reply = getattr(self.stub, method)(wire.to_struct(request), timeout=timeout or self.timeout)
        except grpc.RpcError as e:
            raise StoreError(method, f"{e.code().name}: {e.details()}") from e

        response = wire.from_struct(reply)
        if not response.get("success", False):
            raise StoreError(method, response.get("message", "unknown error"))
        return response

    def write(self, collection: str, doc_id: str, payload: Dict[str, Any]) -> None:
        self._call("Write", {"collection": collection, "doc_id": doc_id, "payload": payload})

    def count(self, collection: str, query: Dict[str, Any] = MATCH_ALL) -> int:
        return int(self._call("Count", {"collection": collection, "query": query})["count"])

    def search_count(self, collection: str, query: Dict[str, Any] = MATCH_ALL) -> CountResult:
        response = self._call("SearchCount", {"collection": collection, "query": query})
        return wire.count_result_from_dict(response["result"])

    def refresh(self, collection: str) -> RefreshResult:
        response = self._call("Refresh", {"collection": collection})
        return wire.refresh_result_from_dict(response["result"])

    def partition_stats(self, collection: str) -> List[PartitionStats]:
        response = self._call("PartitionStats", {"collection": collection})
        return wire.partition_stats_from_list(response["partitions"])

    def wait_for_topology(self, collection: str, predicate: TopologyPredicate,
                          timeout: float) -> bool:
        # The store does the waiting, so the RPC deadline has to outlast it
        response = self._call(
            "WaitForTopology",
            {"collection": collection, "predicate": wire.predicate_to_dict(predicate), "timeout": timeout},
            timeout=timeout + self.timeout,
        )
        return response["timed_out"]

    def create_collection(self, collection: str, shards: int, replicas: int,
                          min_nodes: int = 1) -> None:
        self._call("CreateCollection", {
            "collection": collection,
            "shards": shards,
            "replicas": replicas,
            "min_nodes": min_nodes,
        })

    def flush(self, collection: str) -> None:
        self._call("Flush", {"collection": collection})

    def allow_nodes(self, collection: str, count: int) -> None:
        self._call("AllowNodes", {"collection": collection, "count": count})

    def set_replicas(self, collection: str, replicas: int) -> None:
        self._call("SetReplicas", {"collection": collection, "replicas": replicas})

    def close(self):
        self.channel.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"GrpcStoreClient({self.address!r})"
