"""
Wire format for the store service (store_service.proto)
Every call carries a google.protobuf.Struct. This module holds the client
stub, the servicer base class and the converters between Structs and the
harness result types.
"""

from typing import Any, Dict, List, Optional

import grpc
from google.protobuf import json_format
from google.protobuf.struct_pb2 import Struct

from .store_client import CountResult, PartitionStats, RefreshResult, TopologyPredicate

SERVICE_NAME = "recovery_harness.StoreService"

# Method name -> StoreClient / ClusterAdmin operation
METHODS = (
    "Write",
    "Count",
    "SearchCount",
    "Refresh",
    "PartitionStats",
    "WaitForTopology",
    "CreateCollection",
    "Flush",
    "AllowNodes",
    "SetReplicas",
)


def method_path(method: str) -> str:
    return f"/{SERVICE_NAME}/{method}"


def to_struct(message: Dict[str, Any]) -> Struct:
    return json_format.ParseDict(message, Struct())


def from_struct(message: Struct) -> Dict[str, Any]:
    return json_format.MessageToDict(message)


class StoreServiceStub:
    """Client stub: one unary callable per StoreService method."""

    def __init__(self, channel: grpc.Channel):
        for method in METHODS:
            setattr(self, method, channel.unary_unary(
                method_path(method),
                request_serializer=Struct.SerializeToString,
                response_deserializer=Struct.FromString,
            ))


class StoreServiceServicer:
    """Base class for StoreService implementations."""

    def _unimplemented(self, context):
        context.set_code(grpc.StatusCode.UNIMPLEMENTED)
        context.set_details('Method not implemented!')
        return Struct()

    def Write(self, request, context):
        return self._unimplemented(context)

    def Count(self, request, context):
        return self._unimplemented(context)

    def SearchCount(self, request, context):
        return self._unimplemented(context)

    def Refresh(self, request, context):
        return self._unimplemented(context)

    def PartitionStats(self, request, context):
        return self._unimplemented(context)

    def WaitForTopology(self, request, context):
        return self._unimplemented(context)

    def CreateCollection(self, request, context):
        return self._unimplemented(context)

    def Flush(self, request, context):
        return self._unimplemented(context)

    def AllowNodes(self, request, context):
        return self._unimplemented(context)

    def SetReplicas(self, request, context):
        return self._unimplemented(context)


def add_StoreServiceServicer_to_server(servicer: StoreServiceServicer, server: grpc.Server):
    rpc_method_handlers = {
        method: grpc.unary_unary_rpc_method_handler(
            getattr(servicer, method),
            request_deserializer=Struct.FromString,
            response_serializer=Struct.SerializeToString,
        )
        for method in METHODS
    }
    generic_handler = grpc.method_handlers_generic_handler(SERVICE_NAME, rpc_method_handlers)
    server.add_generic_rpc_handlers((generic_handler,))


# Struct numbers are doubles, so integer fields are converted back on the way out

def _optional_int(value: Optional[float]) -> Optional[int]:
    return None if value is None else int(value)


def count_result_to_dict(result: CountResult) -> Dict[str, Any]:
    return {
        "total": result.total,
        "total_partitions": result.total_partitions,
        "successful_partitions": result.successful_partitions,
        "failed_partitions": result.failed_partitions,
        "partition_failures": list(result.partition_failures),
    }


def count_result_from_dict(data: Dict[str, Any]) -> CountResult:
    return CountResult(
        total=int(data["total"]),
        total_partitions=_optional_int(data.get("total_partitions")),
        successful_partitions=_optional_int(data.get("successful_partitions")),
        failed_partitions=int(data.get("failed_partitions", 0)),
        partition_failures=list(data.get("partition_failures", [])),
    )


def refresh_result_to_dict(result: RefreshResult) -> Dict[str, Any]:
    return {
        "total_partitions": result.total_partitions,
        "successful_partitions": result.successful_partitions,
        "failures": list(result.failures),
    }


def refresh_result_from_dict(data: Dict[str, Any]) -> RefreshResult:
    return RefreshResult(
        total_partitions=int(data["total_partitions"]),
        successful_partitions=int(data["successful_partitions"]),
        failures=list(data.get("failures", [])),
    )


def partition_stats_to_list(stats: List[PartitionStats]) -> List[Dict[str, Any]]:
    return [
        {
            "partition_id": s.partition_id,
            "doc_count": s.doc_count,
            "is_primary": s.is_primary,
            "node": s.node,
        }
        for s in stats
    ]


def partition_stats_from_list(data: List[Dict[str, Any]]) -> List[PartitionStats]:
    return [
        PartitionStats(
            partition_id=int(entry["partition_id"]),
            doc_count=int(entry["doc_count"]),
            is_primary=entry["is_primary"],
            node=entry.get("node"),
        )
        for entry in data
    ]


def predicate_to_dict(predicate: TopologyPredicate) -> Dict[str, Any]:
    return {"status": predicate.status, "min_nodes": predicate.min_nodes}


def predicate_from_dict(data: Dict[str, Any]) -> TopologyPredicate:
    return TopologyPredicate(status=data.get("status", "green"),
                             min_nodes=_optional_int(data.get("min_nodes")))
