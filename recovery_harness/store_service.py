"""
Store Service - gRPC adapter
Exposes an in-process StoreClient/ClusterAdmin implementation over gRPC so
the harness can drive it from another process
"""

import logging
from concurrent import futures
from typing import Any, Callable, Dict, Tuple

import grpc
from google.protobuf.struct_pb2 import Struct

from . import wire
from .errors import StoreError
from .store_client import MATCH_ALL, ClusterAdmin, StoreClient

logger = logging.getLogger(__name__)


class StoreServicer(wire.StoreServiceServicer):
    """
    gRPC service implementation for the store operations.
    Store-side exceptions are returned as {"success": false} replies rather
    than RPC errors, so clients can tell a refused write from a dead node.
    """

    def __init__(self, store: StoreClient):
        self.store = store

    def _admin(self, method: str) -> ClusterAdmin:
        if not isinstance(self.store, ClusterAdmin):
            raise StoreError(method, f"{type(self.store).__name__} does not support topology changes")
        return self.store

    def _handle(self, method: str, operation: Callable[[Dict[str, Any]], Dict[str, Any]],
                request: Struct) -> Struct:
        try:
            response = operation(wire.from_struct(request))
        except Exception as e:
            logger.debug("[StoreService] %s failed: %s", method, e)
            message = getattr(e, "message", None) or str(e) or type(e).__name__
            return wire.to_struct({"success": False, "message": message})
        response["success"] = True
        return wire.to_struct(response)

    def Write(self, request, context):
        def write(r):
            self.store.write(r["collection"], r["doc_id"], r["payload"])
            return {}
        return self._handle("Write", write, request)

    def Count(self, request, context):
        return self._handle("Count", lambda r: {
            "count": self.store.count(r["collection"], r.get("query", MATCH_ALL))
        }, request)

    def SearchCount(self, request, context):
        return self._handle("SearchCount", lambda r: {
            "result": wire.count_result_to_dict(
                self.store.search_count(r["collection"], r.get("query", MATCH_ALL))
            )
        }, request)

    def Refresh(self, request, context):
        return self._handle("Refresh", lambda r: {
            "result": wire.refresh_result_to_dict(self.store.refresh(r["collection"]))
        }, request)

    def PartitionStats(self, request, context):
        return self._handle("PartitionStats", lambda r: {
            "partitions": wire.partition_stats_to_list(self.store.partition_stats(r["collection"]))
        }, request)

    def WaitForTopology(self, request, context):
        return self._handle("WaitForTopology", lambda r: {
            "timed_out": self.store.wait_for_topology(
                r["collection"],
                wire.predicate_from_dict(r.get("predicate", {})),
                float(r["timeout"]),
            )
        }, request)

    def CreateCollection(self, request, context):
        def create(r):
            self._admin("CreateCollection").create_collection(
                r["collection"], int(r["shards"]), int(r["replicas"]), int(r.get("min_nodes", 1))
            )
            return {}
        return self._handle("CreateCollection", create, request)

    def Flush(self, request, context):
        def flush(r):
            self._admin("Flush").flush(r["collection"])
            return {}
        return self._handle("Flush", flush, request)

    def AllowNodes(self, request, context):
        def allow(r):
            self._admin("AllowNodes").allow_nodes(r["collection"], int(r["count"]))
            return {}
        return self._handle("AllowNodes", allow, request)

    def SetReplicas(self, request, context):
        def set_replicas(r):
            self._admin("SetReplicas").set_replicas(r["collection"], int(r["replicas"]))
            return {}
        return self._handle("SetReplicas", set_replicas, request)


def add_store_service_to_server(store: StoreClient, server: grpc.Server) -> StoreServicer:
    servicer = StoreServicer(store)
    wire.add_StoreServiceServicer_to_server(servicer, server)
    return servicer


def serve(store: StoreClient, host: str = "localhost", port: int = 0,
          max_workers: int = 10) -> Tuple[grpc.Server, int]:
    """
    Start a gRPC server for the store and return it with its bound port.
    Port 0 binds an ephemeral port.
    """
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=max_workers))
    add_store_service_to_server(store, server)

    bound_port = server.add_insecure_port(f"{host}:{port}")
    server.start()
    logger.info("[StoreService] %s listening on %s:%d", type(store).__name__, host, bound_port)
    return server, bound_port
