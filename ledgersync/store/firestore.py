from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional

from google.api_core import exceptions as gexc
from google.cloud import firestore

from ledgersync.common.logging import log_event
from ledgersync.errors import SubscriptionError
from ledgersync.ledger.models import EntryRef
from ledgersync.ledger.paths import entry_document_path
from ledgersync.persistence.firestore_retry import with_firestore_retry
from ledgersync.store.base import CREATED_AT_FIELD, ChangeHandler, ErrorHandler, StoredDocument

logger = logging.getLogger(__name__)


def _rpc_failure(rpc: Any) -> Optional[BaseException]:
    """
    Best-effort extraction of the terminal error from a finished listen RPC.
    """
    exc_fn = getattr(rpc, "exception", None)
    if not callable(exc_fn):
        return None
    try:
        exc = exc_fn(timeout=0)
    except TypeError:
        exc = exc_fn()
    except Exception as e:  # noqa: BLE001 (grpc raises CancelledError/FutureTimeoutError here)
        return e
    return exc if isinstance(exc, BaseException) else None


class _WatchSubscription:
    """
    Wraps a Firestore `Watch` so that:
    - `unsubscribe()` is idempotent,
    - callbacks after unsubscribe are dropped,
    - a listen stream that dies without recovery is reported exactly once via `on_error`.
    """

    def __init__(self, *, path: str, on_change: ChangeHandler, on_error: ErrorHandler) -> None:
        self.path = path
        self._on_change = on_change
        self._on_error = on_error
        self._lock = threading.Lock()
        self._closed = False
        self._watch: Any = None

    @property
    def closed(self) -> bool:
        return self._closed

    def attach(self, watch: Any) -> None:
        self._watch = watch
        # Watch only logs when its stream terminates; hook the RPC so the mirror hears about it.
        rpc = getattr(watch, "_rpc", None)
        add_done = getattr(rpc, "add_done_callback", None)
        if callable(add_done):
            add_done(self._on_rpc_done)

    def on_snapshot(self, docs: Any, changes: Any, read_time: Any) -> None:  # noqa: ARG002
        if self._closed:
            return
        self._on_change([StoredDocument(id=d.id, data=d.to_dict() or {}) for d in docs])

    def _on_rpc_done(self, rpc: Any) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        cause = _rpc_failure(rpc)
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "listen stream closed"
        err = SubscriptionError(f"Firestore listener on {self.path} terminated: {detail}")
        if cause is not None:
            err.__cause__ = cause
        self._on_error(err)

    def unsubscribe(self) -> None:
        with self._lock:
            if self._closed and self._watch is None:
                return
            self._closed = True
            watch, self._watch = self._watch, None
        if watch is not None:
            watch.unsubscribe()


class FirestoreLedgerStore:
    """
    Ledger store backed by a Firestore collection.

    Reads:  collection(path).order_by("createdAt", DESCENDING).on_snapshot(...)
    Writes: client-generated document id + create() with SERVER_TIMESTAMP, delete() by reference.

    `write_attempts` > 1 enables bounded retry of transient errors. Inserts stay
    idempotent across attempts because the document id is fixed before the first try.
    """

    def __init__(self, db: Any, *, write_attempts: int = 1) -> None:
        self._db = db
        self._write_attempts = max(1, int(write_attempts))

    def subscribe(self, path: str, on_change: ChangeHandler, on_error: ErrorHandler) -> _WatchSubscription:
        sub = _WatchSubscription(path=path, on_change=on_change, on_error=on_error)
        query = self._db.collection(path).order_by(CREATED_AT_FIELD, direction=firestore.Query.DESCENDING)
        try:
            watch = query.on_snapshot(sub.on_snapshot)
        except Exception as e:
            raise SubscriptionError(f"Failed to listen on {path}: {type(e).__name__}: {e}") from e
        sub.attach(watch)
        log_event(logger, "firestore_store.listen", severity="DEBUG", path=path)
        return sub

    def insert(self, path: str, fields: Mapping[str, Any]) -> EntryRef:
        ref = self._db.collection(path).document()
        doc = dict(fields)
        doc[CREATED_AT_FIELD] = firestore.SERVER_TIMESTAMP

        def _create() -> EntryRef:
            try:
                result = ref.create(doc)
            except gexc.AlreadyExists:
                # Only an earlier attempt of this same call can own this id.
                return EntryRef(id=ref.id)
            return EntryRef(id=ref.id, created_at=getattr(result, "update_time", None))

        return with_firestore_retry(_create, max_attempts=self._write_attempts)

    def delete(self, path: str, entry_id: str) -> bool:
        ref = self._db.document(entry_document_path(path, entry_id))

        def _delete() -> bool:
            try:
                ref.delete()
            except gexc.NotFound:
                return False
            return True

        return with_firestore_retry(_delete, max_attempts=self._write_attempts)
