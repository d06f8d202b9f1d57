"""
Store client interface
The harness only ever talks to the store under test through these calls
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

MATCH_ALL: Dict[str, Any] = {"match_all": {}}

HEALTH_ORDER = {"red": 0, "yellow": 1, "green": 2}


@dataclass(frozen=True)
class CountResult:
    """One read-count round and the partitions that answered it."""
    total: int
    total_partitions: Optional[int] = None
    successful_partitions: Optional[int] = None
    failed_partitions: int = 0
    partition_failures: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RefreshResult:
    total_partitions: int
    successful_partitions: int
    failures: List[str] = field(default_factory=list)

    @property
    def fully_successful(self) -> bool:
        return not self.failures and self.total_partitions == self.successful_partitions


@dataclass(frozen=True)
class PartitionStats:
    partition_id: int
    doc_count: int
    is_primary: bool
    node: Optional[str] = None


@dataclass(frozen=True)
class TopologyPredicate:
    """
    Health condition for wait_for_topology.
    status is the minimum acceptable health, min_nodes the minimum node count.
    """
    status: str = "green"
    min_nodes: Optional[int] = None

    def __post_init__(self):
        if self.status not in HEALTH_ORDER:
            raise ValueError(f"unknown health status '{self.status}'")

    def satisfied_by(self, status: str, nodes: int) -> bool:
        if HEALTH_ORDER[status] < HEALTH_ORDER[self.status]:
            return False
        return self.min_nodes is None or nodes >= self.min_nodes

    def __str__(self) -> str:
        if self.min_nodes is None:
            return f"{self.status.upper()} health"
        return f"{self.status.upper()} health with >={self.min_nodes} nodes"


class StoreClient(ABC):
    """Data-path operations against the store under test."""

    @abstractmethod
    def write(self, collection: str, doc_id: str, payload: Dict[str, Any]) -> None:
        """Write one document. Raises on any failure."""

    @abstractmethod
    def count(self, collection: str, query: Dict[str, Any] = MATCH_ALL) -> int:
        """Number of documents currently visible to search."""

    def search_count(self, collection: str, query: Dict[str, Any] = MATCH_ALL) -> CountResult:
        """
        Count through the search path, with per-partition metadata.
        Stores that cannot report partition metadata fall back to count().
        """
        return CountResult(total=self.count(collection, query))

    @abstractmethod
    def refresh(self, collection: str) -> RefreshResult:
        """Make every acknowledged write visible to search."""

    @abstractmethod
    def partition_stats(self, collection: str) -> List[PartitionStats]:
        """Per-copy document counts, used for diagnostics."""

    @abstractmethod
    def wait_for_topology(self, collection: str, predicate: TopologyPredicate,
                          timeout: float) -> bool:
        """Block until the predicate holds. Returns True if it timed out."""


class ClusterAdmin(ABC):
    """Topology operations the reference scenarios drive."""

    @abstractmethod
    def create_collection(self, collection: str, shards: int, replicas: int,
                          min_nodes: int = 1) -> None:
        pass

    @abstractmethod
    def flush(self, collection: str) -> None:
        pass

    @abstractmethod
    def allow_nodes(self, collection: str, count: int) -> None:
        """Restrict the collection's partitions to `count` nodes."""

    @abstractmethod
    def set_replicas(self, collection: str, replicas: int) -> None:
        pass
