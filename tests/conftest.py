from __future__ import annotations

import logging

import pytest

from ledgersync.ledger.paths import ledger_collection_path
from ledgersync.store.memory import InMemoryLedgerStore
from tests.helpers import ManualClock


@pytest.fixture
def ledger_path() -> str:
    return ledger_collection_path("test-app")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def memory_store(clock: ManualClock) -> InMemoryLedgerStore:
    return InMemoryLedgerStore(clock=clock)


@pytest.fixture(autouse=True)
def _quiet_client_loggers() -> None:
    for name in ("google", "grpc", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)
