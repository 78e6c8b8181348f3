from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, TypeVar

from pydantic import ValidationError as SchemaValidationError

from ledgersync.common.logging import bind_session_id, log_event
from ledgersync.errors import AuthError, LedgerError, MutationInFlightError, ValidationError, WriteError
from ledgersync.identity.session import IdentitySession
from ledgersync.ledger.models import EntryRef
from ledgersync.ledger.schema import NewEntry
from ledgersync.store.base import LedgerStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _validation_error(e: SchemaValidationError) -> ValidationError:
    first = (e.errors() or [{}])[0]
    loc = first.get("loc") or ()
    field = str(loc[0]) if loc else None
    msg = str(first.get("msg") or "invalid input")
    # pydantic prefixes messages raised from validators with "Value error, ".
    msg = msg.removeprefix("Value error, ")
    return ValidationError(f"{field}: {msg}" if field else msg, field=field)


class MutationGateway:
    """
    Validated add/delete against the remote store for one session.

    - Input is validated before any store interaction.
    - At most one mutation is in flight; `busy` reports it and a second submission
      is rejected with MutationInFlightError.
    - Success does NOT touch any local Snapshot; the new state arrives through the
      mirror's next change event.
    - `last_error` is the single user-visible mutation error (cleared on next success).
    - An issued write runs to completion even if the awaiting task is cancelled; the
      gateway stays busy until it settles.
    """

    def __init__(self, store: LedgerStore, path: str, *, identity: Optional[IdentitySession] = None) -> None:
        self._store = store
        self.path = path
        self._identity = identity
        self._in_flight = False
        self._pending: Optional[asyncio.Future[Any]] = None
        self.last_error: Optional[LedgerError] = None

    @property
    def busy(self) -> bool:
        return self._in_flight

    def _begin(self, op: str) -> None:
        if self._in_flight:
            raise MutationInFlightError(f"another mutation is still in flight; {op} rejected")
        self._in_flight = True

    def _finish(self) -> None:
        pending, self._pending = self._pending, None
        if pending is not None and not pending.done():
            pending.add_done_callback(self._settle_orphan)
            return
        self._in_flight = False

    def _settle_orphan(self, fut: "asyncio.Future[Any]") -> None:
        self._in_flight = False
        exc = None if fut.cancelled() else fut.exception()
        log_event(
            logger,
            "ledger_gateway.orphaned_write_settled",
            severity="WARNING" if exc is not None else "INFO",
            path=self.path,
            error=f"{type(exc).__name__}: {exc}" if exc is not None else None,
        )

    async def _resolve_author(self, author_id: Optional[str]) -> str:
        if author_id:
            return author_id
        if self._identity is None:
            raise AuthError("No author id given and no identity session configured")
        return await self._identity.wait_uid()

    async def _write(self, op: str, fn: Callable[[], T], **fields: Any) -> T:
        inner: asyncio.Future[T] = asyncio.ensure_future(asyncio.to_thread(fn))
        self._pending = inner
        try:
            return await asyncio.shield(inner)
        except asyncio.CancelledError:
            raise
        except LedgerError:
            raise
        except Exception as e:
            err = WriteError(f"Could not {op} the item: {type(e).__name__}: {e}")
            log_event(logger, "ledger_gateway.write_failed", severity="ERROR", op=op, path=self.path, error=str(err), **fields)
            raise err from e

    async def add(self, description: Any, amount: Any, type: Any, author_id: Optional[str] = None) -> EntryRef:  # noqa: A002
        self._begin("add")
        try:
            try:
                entry = NewEntry(description=description, amount=amount, type=type)
            except SchemaValidationError as e:
                raise _validation_error(e) from e
            author = await self._resolve_author(author_id)
            fields = entry.model_copy(update={"author_id": author}).to_fields()
            with bind_session_id(author):
                ref = await self._write("add", lambda: self._store.insert(self.path, fields), entry_type=entry.type)
        except LedgerError as e:
            self.last_error = e
            raise
        finally:
            self._finish()

        self.last_error = None
        log_event(logger, "ledger_gateway.add", path=self.path, entry_id=ref.id, entry_type=entry.type, author_id=author)
        return ref

    async def delete(self, entry_id: Any) -> bool:
        """
        Delete by id. Returns False when the entry was already gone; that is still a success.
        """
        self._begin("delete")
        eid = str(entry_id or "").strip()
        try:
            if not eid or "/" in eid:
                raise ValidationError("entry_id must be a non-empty document id", field="entry_id")
            existed = await self._write("delete", lambda: self._store.delete(self.path, eid), entry_id=eid)
        except LedgerError as e:
            self.last_error = e
            raise
        finally:
            self._finish()

        self.last_error = None
        log_event(logger, "ledger_gateway.delete", path=self.path, entry_id=eid, existed=bool(existed))
        return bool(existed)
