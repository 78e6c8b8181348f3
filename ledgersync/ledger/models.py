from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Iterator, Literal, Optional


EntryType = Literal["income", "expense"]
ENTRY_TYPES: tuple[str, ...] = ("income", "expense")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_decimal(v: Any) -> Decimal:
    """
    Convert a numeric-ish value to Decimal safely.

    Never call Decimal(float) directly (binary float artifacts); go through str().
    """
    if isinstance(v, Decimal):
        return v
    if isinstance(v, bool):
        raise TypeError("bool is not an amount")
    if isinstance(v, (int, float)):
        return Decimal(str(v))
    if isinstance(v, str):
        return Decimal(v.strip())
    raise TypeError(f"unsupported amount type: {type(v).__name__}")


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """
    Immutable income/expense record.

    Firestore path:
      artifacts/{app_id}/public/data/budget-items/{id}

    Notes:
    - `amount` is always positive; direction is expressed via `type`.
    - `created_at` is server-assigned. It is None only while a server timestamp
      is still pending, in which case the entry sorts as the newest.
    """

    id: str
    description: str
    amount: Decimal
    type: EntryType
    created_at: Optional[datetime] = None
    author_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("id is required")
        if not (self.description or "").strip():
            raise ValueError("description is required")
        if self.type not in ENTRY_TYPES:
            raise ValueError("type must be 'income' or 'expense'")
        amount = to_decimal(self.amount)
        if not amount.is_finite() or amount <= 0:
            raise ValueError("amount must be a positive number")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "created_at", as_utc(self.created_at))

    @property
    def is_income(self) -> bool:
        return self.type == "income"


def _order_key(e: LedgerEntry) -> tuple[int, datetime]:
    pending = 1 if e.created_at is None else 0
    return (pending, e.created_at or _EPOCH)


def order_entries(entries: Iterable[LedgerEntry]) -> tuple[LedgerEntry, ...]:
    """
    `createdAt` descending. The sort is stable, so entries with equal timestamps
    keep the order the store delivered them in (Firestore's own tiebreak, or
    insertion order for the in-memory store).
    """
    return tuple(sorted(entries, key=_order_key, reverse=True))


@dataclass(frozen=True, slots=True)
class EntryRef:
    """What the store hands back for a newly created entry."""

    id: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    Complete ordered materialization of the collection at one observed point.

    `version` increases by one per delivered change event within a subscription.
    """

    entries: tuple[LedgerEntry, ...]
    version: int

    @classmethod
    def build(cls, entries: Iterable[LedgerEntry], *, version: int) -> "Snapshot":
        return cls(entries=order_entries(entries), version=int(version))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(self.entries)

    def is_newer_than(self, other: Optional["Snapshot"]) -> bool:
        return other is None or self.version > other.version


@dataclass(frozen=True, slots=True)
class Aggregate:
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal
    income_items: tuple[LedgerEntry, ...]
    expense_items: tuple[LedgerEntry, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_income": str(self.total_income),
            "total_expenses": str(self.total_expenses),
            "balance": str(self.balance),
            "income_count": len(self.income_items),
            "expense_count": len(self.expense_items),
        }
