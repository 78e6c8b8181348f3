from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, Sequence

from ledgersync.ledger.models import EntryRef


CREATED_AT_FIELD = "createdAt"


@dataclass(frozen=True, slots=True)
class StoredDocument:
    id: str
    data: Mapping[str, Any] = field(default_factory=dict)


ChangeHandler = Callable[[Sequence[StoredDocument]], None]
ErrorHandler = Callable[[BaseException], None]


class StoreSubscription(Protocol):
    def unsubscribe(self) -> None:
        """Release the underlying listener. Idempotent."""


class LedgerStore(Protocol):
    """
    Shared, durable collection with ordered real-time subscription.

    Contract:
    - `subscribe` delivers the FULL current set of documents (not a diff) after every
      change anywhere in the collection, starting with the initial set. Handlers may be
      invoked from a store-owned thread. A terminal failure is reported once via `on_error`,
      after which `on_change` is never called again.
    - `insert` assigns the id and the `createdAt` server timestamp.
    - `delete` returns False when the id did not exist; that is not an error.
    """

    def subscribe(self, path: str, on_change: ChangeHandler, on_error: ErrorHandler) -> StoreSubscription: ...

    def insert(self, path: str, fields: Mapping[str, Any]) -> EntryRef: ...

    def delete(self, path: str, entry_id: str) -> bool: ...
