from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Optional, Sequence

from pydantic import ValidationError as SchemaValidationError

from ledgersync.common.logging import log_event
from ledgersync.errors import SubscriptionError
from ledgersync.ledger.models import LedgerEntry, Snapshot
from ledgersync.ledger.schema import LedgerEntryDocument
from ledgersync.store.base import LedgerStore, StoredDocument, StoreSubscription

logger = logging.getLogger(__name__)


class MirrorState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


def decode_documents(docs: Sequence[StoredDocument], *, path: str = "") -> list[LedgerEntry]:
    entries: list[LedgerEntry] = []
    for d in docs:
        try:
            entries.append(LedgerEntryDocument.model_validate(dict(d.data)).to_entry(d.id))
        except (SchemaValidationError, ValueError) as e:
            log_event(
                logger,
                "ledger_mirror.document_skipped",
                severity="WARNING",
                path=path,
                entry_id=d.id,
                error=f"{type(e).__name__}: {e}",
            )
    return entries


class LedgerMirror:
    """
    Ordered local copy of one remote ledger collection.

    Lifecycle: IDLE -> LOADING (subscribed, nothing received yet) -> READY.
    FAILED and CLOSED are terminal; a new mirror is needed to resubscribe.

    Store callbacks may fire on store-owned threads; they are marshalled onto the
    mirror's event loop, so `snapshot`/`state` are only ever touched from that loop.
    Consumers always see the latest Snapshot. Intermediate ones may be skipped, but
    an older Snapshot is never delivered after a newer one.
    """

    def __init__(self, store: LedgerStore, path: str, *, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._store = store
        self.path = path
        self._loop = loop
        self._state = MirrorState.IDLE
        self._snapshot: Optional[Snapshot] = None
        self._version = 0
        self._error: Optional[SubscriptionError] = None
        self._sub: Optional[StoreSubscription] = None
        self._unsubscribed = False
        self._changed = asyncio.Event()

    @property
    def state(self) -> MirrorState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._state in (MirrorState.IDLE, MirrorState.LOADING)

    @property
    def snapshot(self) -> Optional[Snapshot]:
        """Latest Snapshot; None while loading (distinct from an empty Snapshot)."""
        return self._snapshot

    @property
    def error(self) -> Optional[SubscriptionError]:
        return self._error

    # --- subscription lifecycle -------------------------------------------------

    def subscribe(self) -> "LedgerMirror":
        if self._state in (MirrorState.LOADING, MirrorState.READY):
            return self
        if self._state is not MirrorState.IDLE:
            raise SubscriptionError(f"mirror for {self.path} is {self._state.value}; create a new one to resubscribe")

        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._state = MirrorState.LOADING
        try:
            self._sub = self._store.subscribe(self.path, self._on_change, self._on_error)
        except SubscriptionError as e:
            self._fail(e)
            raise
        except Exception as e:
            err = SubscriptionError(f"Failed to subscribe to {self.path}: {type(e).__name__}: {e}")
            self._fail(err)
            raise err from e
        log_event(logger, "ledger_mirror.subscribed", path=self.path)
        return self

    def unsubscribe(self) -> None:
        """Release the store listener. Safe to call any number of times, in any state."""
        if self._unsubscribed:
            return
        self._unsubscribed = True
        self._release()
        if self._state is not MirrorState.FAILED:
            self._state = MirrorState.CLOSED
            self._snapshot = None
        self._notify()
        log_event(logger, "ledger_mirror.unsubscribed", path=self.path, snapshot_version=self._version)

    async def __aenter__(self) -> "LedgerMirror":
        return self.subscribe()

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.unsubscribe()

    def _release(self) -> None:
        sub, self._sub = self._sub, None
        if sub is not None:
            sub.unsubscribe()

    # --- store callbacks (any thread) -------------------------------------------

    def _on_change(self, docs: Sequence[StoredDocument]) -> None:
        self._dispatch(self._apply_documents, list(docs))

    def _on_error(self, exc: BaseException) -> None:
        self._dispatch(self._apply_error, exc)

    def _dispatch(self, fn: Any, arg: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("ledger_mirror: dropping callback, event loop is gone path=%s", self.path)
            return
        try:
            loop.call_soon_threadsafe(fn, arg)
        except RuntimeError:
            # Loop closed between the check and the call.
            logger.debug("ledger_mirror: dropping callback, event loop closed path=%s", self.path)

    # --- event-loop side --------------------------------------------------------

    def _apply_documents(self, docs: list[StoredDocument]) -> None:
        if self._state not in (MirrorState.LOADING, MirrorState.READY):
            return
        entries = decode_documents(docs, path=self.path)
        self._version += 1
        self._snapshot = Snapshot.build(entries, version=self._version)
        self._state = MirrorState.READY
        log_event(
            logger,
            "ledger_mirror.snapshot",
            severity="DEBUG",
            path=self.path,
            snapshot_version=self._version,
            entries=len(entries),
            skipped=len(docs) - len(entries),
        )
        self._notify()

    def _apply_error(self, exc: BaseException) -> None:
        if self._state in (MirrorState.FAILED, MirrorState.CLOSED):
            return
        if isinstance(exc, SubscriptionError):
            err = exc
        else:
            err = SubscriptionError(f"Change stream for {self.path} failed: {type(exc).__name__}: {exc}")
            err.__cause__ = exc
        self._fail(err)
        self._release()

    def _fail(self, err: SubscriptionError) -> None:
        self._error = err
        self._state = MirrorState.FAILED
        log_event(logger, "ledger_mirror.subscription_failed", severity="ERROR", path=self.path, error=str(err))
        self._notify()

    def _notify(self) -> None:
        waiter, self._changed = self._changed, asyncio.Event()
        waiter.set()

    # --- consumption ------------------------------------------------------------

    async def next_snapshot(self, after: Optional[Snapshot] = None) -> Snapshot:
        """
        Wait for a Snapshot newer than `after` (or the current one when `after` is None).

        Raises the mirror's SubscriptionError once it has failed, and SubscriptionError
        when the mirror was never subscribed or has been unsubscribed.
        """
        while True:
            if self._state is MirrorState.FAILED:
                if self._error is not None:
                    raise self._error
                raise SubscriptionError(f"subscription to {self.path} failed")
            if self._state is MirrorState.CLOSED:
                raise SubscriptionError(f"mirror for {self.path} is unsubscribed")
            if self._state is MirrorState.IDLE:
                raise SubscriptionError(f"mirror for {self.path} is not subscribed")
            snap = self._snapshot
            if snap is not None and snap.is_newer_than(after):
                return snap
            await self._changed.wait()

    async def snapshots(self) -> AsyncIterator[Snapshot]:
        """
        Non-finite lazy sequence of Snapshots, starting at the latest one.

        Ends cleanly on unsubscribe; raises SubscriptionError on failure. Each call
        starts a fresh iteration, so the sequence can be restarted at any time.
        """
        last: Optional[Snapshot] = None
        while True:
            try:
                snap = await self.next_snapshot(after=last)
            except SubscriptionError:
                if self._state is MirrorState.CLOSED:
                    return
                raise
            last = snap
            yield snap

    def __aiter__(self) -> AsyncIterator[Snapshot]:
        return self.snapshots()
