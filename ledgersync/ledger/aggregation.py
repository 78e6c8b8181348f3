from __future__ import annotations

"""
Totals over a ledger Snapshot.

Properties relied on by callers:
- `derive` is pure: same snapshot contents -> same Aggregate.
- Sums are Decimal, so `total_income - total_expenses == balance` holds exactly.
- Partitioning is total and exclusive; each partition keeps Snapshot order.
"""

from decimal import Decimal
from typing import Iterable, Optional

from ledgersync.ledger.models import Aggregate, LedgerEntry, Snapshot


_ZERO = Decimal("0")


def derive(snapshot: Snapshot | Iterable[LedgerEntry]) -> Aggregate:
    income: list[LedgerEntry] = []
    expenses: list[LedgerEntry] = []
    total_income = _ZERO
    total_expenses = _ZERO

    for e in snapshot:
        if e.is_income:
            income.append(e)
            total_income += e.amount
        else:
            expenses.append(e)
            total_expenses += e.amount

    return Aggregate(
        total_income=total_income,
        total_expenses=total_expenses,
        balance=total_income - total_expenses,
        income_items=tuple(income),
        expense_items=tuple(expenses),
    )


EMPTY_AGGREGATE = derive(())


class AggregationEngine:
    """
    Memoizes `derive` on Snapshot identity.

    Recomputes iff the snapshot passed in is not the very object seen last time,
    so a newer Snapshot can never be answered from a stale cache entry.
    """

    def __init__(self) -> None:
        self._snapshot: Optional[Snapshot] = None
        self._aggregate: Aggregate = EMPTY_AGGREGATE
        self.recomputations = 0

    def aggregate(self, snapshot: Snapshot) -> Aggregate:
        if snapshot is not self._snapshot:
            self._aggregate = derive(snapshot)
            self._snapshot = snapshot
            self.recomputations += 1
        return self._aggregate

    def reset(self) -> None:
        self._snapshot = None
        self._aggregate = EMPTY_AGGREGATE
