"""
Shared fixtures: short budgets and an in-memory store.
"""

import random

import pytest

from recovery_harness.config import HarnessConfig
from tests.fakes import FakeStore


@pytest.fixture(autouse=True)
def quick_config(monkeypatch):
    """Shrink every wait so a failing test fails in seconds, not minutes."""
    monkeypatch.setattr(HarnessConfig, "CHECK_INTERVAL_SEC", 0.01)
    monkeypatch.setattr(HarnessConfig, "STOP_GRACE_SEC", 10)
    monkeypatch.setattr(HarnessConfig, "DOCS_WAIT_SEC", 2)
    monkeypatch.setattr(HarnessConfig, "REFRESH_WAIT_SEC", 1)
    monkeypatch.setattr(HarnessConfig, "CONVERGENCE_WAIT_SEC", 0.5)
    monkeypatch.setattr(HarnessConfig, "HEALTH_TIMEOUT_SEC", 1)
    monkeypatch.setattr(HarnessConfig, "RANDOM_MULTIPLIER", 1)


@pytest.fixture(autouse=True)
def seed_random():
    """Seed random for reproducible scenarios."""
    random.seed(42)
    yield
    random.seed()


@pytest.fixture
def store():
    store = FakeStore()
    store.create_collection("test", shards=3, replicas=1)
    return store
