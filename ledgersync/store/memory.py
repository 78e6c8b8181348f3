from __future__ import annotations

import itertools
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from ledgersync.ledger.models import EntryRef
from ledgersync.store.base import CREATED_AT_FIELD, ChangeHandler, ErrorHandler, StoredDocument


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class _Row:
    id: str
    seq: int
    created_at: datetime
    data: Dict[str, Any]

    def to_document(self) -> StoredDocument:
        return StoredDocument(id=self.id, data={**self.data, CREATED_AT_FIELD: self.created_at})


class _MemorySubscription:
    def __init__(self, store: "InMemoryLedgerStore", path: str, on_change: ChangeHandler, on_error: ErrorHandler) -> None:
        self._store = store
        self.path = path
        self.on_change = on_change
        self.on_error = on_error
        self.active = True

    def unsubscribe(self) -> None:
        self._store._remove_subscription(self)


class InMemoryLedgerStore:
    """
    In-process ledger store with the same contract as the Firestore backend.

    This is NOT a durable store; it exists so the mirror/gateway can run locally and
    in tests without Firestore. Writes and deliveries are serialized under one lock, so
    subscribers observe change events in the order writes were applied.
    """

    def __init__(self, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._lock = threading.RLock()
        self._clock = clock or _utc_now
        self._seq = itertools.count(1)
        self._last_ts: Optional[datetime] = None
        self._rows: Dict[str, Dict[str, _Row]] = {}
        self._subs: Dict[str, List[_MemorySubscription]] = {}
        self.writes = 0

    def _next_ts(self) -> datetime:
        ts = self._clock()
        if self._last_ts is not None and ts < self._last_ts:
            ts = self._last_ts
        self._last_ts = ts
        return ts

    def _documents_locked(self, path: str) -> list[StoredDocument]:
        rows = sorted(self._rows.get(path, {}).values(), key=lambda r: (r.created_at, r.seq), reverse=True)
        return [r.to_document() for r in rows]

    def _notify_locked(self, path: str) -> None:
        docs = self._documents_locked(path)
        for sub in list(self._subs.get(path, [])):
            sub.on_change(list(docs))

    def documents(self, path: str) -> list[StoredDocument]:
        with self._lock:
            return self._documents_locked(path)

    def subscribe(self, path: str, on_change: ChangeHandler, on_error: ErrorHandler) -> _MemorySubscription:
        with self._lock:
            sub = _MemorySubscription(self, path, on_change, on_error)
            self._subs.setdefault(path, []).append(sub)
            on_change(self._documents_locked(path))
            return sub

    def _remove_subscription(self, sub: _MemorySubscription) -> None:
        with self._lock:
            sub.active = False
            subs = self._subs.get(sub.path, [])
            if sub in subs:
                subs.remove(sub)

    def insert(self, path: str, fields: Mapping[str, Any]) -> EntryRef:
        with self._lock:
            row = _Row(id=uuid.uuid4().hex, seq=next(self._seq), created_at=self._next_ts(), data=dict(fields))
            self._rows.setdefault(path, {})[row.id] = row
            self.writes += 1
            self._notify_locked(path)
            return EntryRef(id=row.id, created_at=row.created_at)

    def delete(self, path: str, entry_id: str) -> bool:
        with self._lock:
            self.writes += 1
            existed = self._rows.get(path, {}).pop(entry_id, None) is not None
            if existed:
                self._notify_locked(path)
            return existed

    def fail_subscriptions(self, path: str, error: BaseException) -> None:
        """
        Terminate every listener on `path` with `error` (simulates a revoked or dropped stream).
        """
        with self._lock:
            subs = list(self._subs.pop(path, []))
            for sub in subs:
                sub.active = False
                sub.on_error(error)

    def subscriber_count(self, path: str) -> int:
        with self._lock:
            return len(self._subs.get(path, []))
