"""
Shared fixtures.

Services get a deterministic id factory and a fixed clock so tests can
assert on ids and dates. The state store is backed by in-memory storage.
"""

import itertools
from datetime import datetime

import pytest

from finflow.audit import AuditLogger
from finflow.ledger import EntityService, PlannerService, TransactionService
from finflow.models.ledger import default_state
from finflow.services.host import NullHostBridge
from finflow.services.storage import InMemoryStateStorage
from finflow.store import StateStore


FIXED_NOW = datetime(2024, 3, 10, 12, 0)


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}_{next(counter)}"


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def storage():
    return InMemoryStateStorage()


@pytest.fixture
def store(storage, audit_logger):
    return StateStore(
        storage,
        user_id="user-1",
        debounce_seconds=0.01,
        load_timeout_seconds=1.0,
        audit_logger=audit_logger,
        initial_state=default_state(),
    )


@pytest.fixture
def transactions(store, audit_logger, id_factory):
    return TransactionService(
        store,
        audit_logger,
        id_factory=id_factory,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def entities(store, audit_logger, id_factory):
    return EntityService(
        store,
        audit_logger,
        id_factory=id_factory,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def host():
    return NullHostBridge(user_id="user-1")


@pytest.fixture
def planner(store, transactions, host, audit_logger):
    return PlannerService(store, transactions, host, audit_logger)
