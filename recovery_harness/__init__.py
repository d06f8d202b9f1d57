"""
Recovery-under-load harness for replicated stores
Keeps writing while the store's topology changes, then checks nothing was lost
"""

from .background_writer import BackgroundWriter
from .busy_poll import await_busy
from .config import HarnessConfig
from .errors import (
    AggregateWriteFailure,
    ConvergenceTimeout,
    CountMismatch,
    HarnessError,
    StallDetected,
    StopTimeout,
    StoreError,
    TopologyTimeout,
    WriteFailure,
)
from .store_client import (
    MATCH_ALL,
    ClusterAdmin,
    CountResult,
    PartitionStats,
    RefreshResult,
    StoreClient,
    TopologyPredicate,
)
from .verification import ConvergenceVerifier, wait_for_docs

__version__ = "0.1.0"
