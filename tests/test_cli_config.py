"""
Tests for the command line and configuration.
"""

import random

import pytest

from recovery_harness import cli
from recovery_harness.cli import build_parser, main
from recovery_harness.config import HarnessConfig
from recovery_harness.store_service import serve
from tests.fakes import FakeStore


class TestConfig:

    def test_scaled_random_int_within_bounds(self):
        rng = random.Random(1)
        values = [HarnessConfig.scaled_random_int_between(3, 10, rng) for _ in range(100)]
        assert all(3 <= v <= 10 for v in values)

    def test_multiplier_never_exceeds_high(self, monkeypatch):
        monkeypatch.setattr(HarnessConfig, "RANDOM_MULTIPLIER", 5)
        assert HarnessConfig.scaled_random_int_between(200, 300, random.Random(3)) == 300

    def test_validate_accepts_defaults(self):
        assert HarnessConfig.validate() is True

    def test_validate_rejects_bad_budget(self, monkeypatch):
        monkeypatch.setattr(HarnessConfig, "STOP_GRACE_SEC", 0)
        with pytest.raises(ValueError, match="STOP_GRACE_SEC"):
            HarnessConfig.validate()

    def test_validate_rejects_inverted_writer_range(self, monkeypatch):
        monkeypatch.setattr(HarnessConfig, "MIN_WRITERS", 12)
        with pytest.raises(ValueError, match="writer range"):
            HarnessConfig.validate()

    def test_quick_timeouts(self):
        HarnessConfig.set_quick_timeouts()
        assert HarnessConfig.STOP_GRACE_SEC == 30
        assert HarnessConfig.DOCS_WAIT_SEC == 10


class TestCli:

    def test_defaults(self):
        args = build_parser().parse_args(["--target", "localhost:50051"])
        assert args.scenario == "allocate-backups"
        assert args.collection == "test"
        assert args.docs is None
        assert args.dashboard_port is None

    def test_rejects_unknown_scenario(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--target", "localhost:50051", "--scenario", "split-brain"])

    def test_runs_scenario_against_served_store(self):
        store = FakeStore()
        server, port = serve(store, port=0)
        try:
            status = main([
                "--target", f"localhost:{port}",
                "--scenario", "allocate-backups",
                "--shards", "3",
                "--docs", "300",
                "--writers", "3",
            ])
        finally:
            server.stop(0)

        assert status == 0
        assert store.count("test") > 300

    def test_harness_failure_exits_non_zero(self):
        store = FakeStore()
        store.stuck_topology = True
        server, port = serve(store, port=0)
        try:
            status = main(["--target", f"localhost:{port}", "--docs", "300", "--writers", "2"])
        finally:
            server.stop(0)

        assert status == 1

    def test_quick_run_with_dashboard(self, monkeypatch):
        started = []
        monkeypatch.setattr(cli, "start_dashboard", lambda state, port: started.append((state, port)))

        store = FakeStore()
        server, port = serve(store, port=0)
        try:
            status = main([
                "--target", f"localhost:{port}",
                "--docs", "200",
                "--writers", "2",
                "--quick",
                "--dashboard-port", "9123",
            ])
        finally:
            server.stop(0)

        assert status == 0
        assert HarnessConfig.STOP_GRACE_SEC == 30
        assert HarnessConfig.HEALTH_TIMEOUT_SEC == 10

        (state, dashboard_port), = started
        assert dashboard_port == 9123
        assert state.collection == "test"
        assert state.phase == "done"
