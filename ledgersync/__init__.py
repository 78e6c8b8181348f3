"""
Real-time ledger synchronization + aggregation over a shared Firestore collection.

Layout:
- ledger: entry model, mirror, aggregation, mutation gateway
- store: remote store boundary (Firestore, in-memory)
- identity: session identity (Firebase Auth, static)
- common: config + structured logging
"""

__version__ = "0.1.0"
