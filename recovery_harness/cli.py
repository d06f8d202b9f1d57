"""
Command-line entry point
Runs one recovery-under-load scenario against a store exposing the gRPC
store service
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import HarnessConfig
from .dashboard import start_dashboard
from .errors import HarnessError
from .grpc_client import GrpcStoreClient
from .scenarios import SCENARIOS, RunState, ScenarioSettings, run_scenario

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Recovery-under-load harness')
    parser.add_argument('--target', type=str, required=True,
                        help='Store service address (host:port format)')
    parser.add_argument('--scenario', type=str, default='allocate-backups',
                        choices=sorted(SCENARIOS),
                        help='Scenario to run')
    parser.add_argument('--collection', type=str, default=HarnessConfig.DEFAULT_COLLECTION,
                        help='Collection to create and write into')
    parser.add_argument('--shards', type=int, default=5,
                        help='Number of partitions for the collection')
    parser.add_argument('--docs', type=int, default=None,
                        help='Documents to write before stopping (random if omitted)')
    parser.add_argument('--writers', type=int, default=None,
                        help='Concurrent writer threads (random 3-10 if omitted)')
    parser.add_argument('--quick', action='store_true',
                        help='Use short timeouts, for smoke runs')
    parser.add_argument('--dashboard-port', type=int, default=None,
                        help='Serve a progress dashboard on this port')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )

    if args.quick:
        HarnessConfig.set_quick_timeouts()
    HarnessConfig.validate()

    settings = ScenarioSettings(
        collection=args.collection,
        number_of_shards=args.shards,
        total_docs=args.docs,
        writer_count=args.writers,
    )

    with GrpcStoreClient(args.target) as client:
        state = RunState(client, settings.collection)
        if args.dashboard_port is not None:
            start_dashboard(state, args.dashboard_port)

        try:
            run_scenario(args.scenario, client, settings, state)
        except HarnessError as e:
            logger.error("SCENARIO %s failed: %s", args.scenario, e)
            return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
