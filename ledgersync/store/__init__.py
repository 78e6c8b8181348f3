"""
Remote ledger store boundary.

- base: the LedgerStore protocol every backend satisfies
- firestore: Google Cloud Firestore (real-time `on_snapshot` + writes)
- memory: in-process store for local runs and tests
"""

from .base import LedgerStore, StoredDocument, StoreSubscription
from .memory import InMemoryLedgerStore

__all__ = [
    "LedgerStore",
    "StoredDocument",
    "StoreSubscription",
    "InMemoryLedgerStore",
]
