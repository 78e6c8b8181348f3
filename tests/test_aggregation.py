from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from ledgersync.ledger.aggregation import EMPTY_AGGREGATE, AggregationEngine, derive
from ledgersync.ledger.models import LedgerEntry, Snapshot

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _snap(rows: list[tuple[str, str, str]], *, version: int = 1) -> Snapshot:
    entries = [
        LedgerEntry(id=eid, description=eid, amount=Decimal(amount), type=typ, created_at=T0 + timedelta(minutes=i))
        for i, (eid, typ, amount) in enumerate(rows)
    ]
    return Snapshot.build(entries, version=version)


def test_empty_snapshot_is_all_zero() -> None:
    agg = derive(Snapshot.build([], version=1))
    assert agg.total_income == 0
    assert agg.total_expenses == 0
    assert agg.balance == 0
    assert agg.income_items == ()
    assert agg.expense_items == ()
    assert agg == EMPTY_AGGREGATE


def test_paycheck_and_groceries() -> None:
    agg = derive(_snap([("paycheck", "income", "1000"), ("groceries", "expense", "150.50")]))
    assert agg.total_income == Decimal("1000")
    assert agg.total_expenses == Decimal("150.50")
    assert agg.balance == Decimal("849.50")
    assert [e.id for e in agg.income_items] == ["paycheck"]
    assert [e.id for e in agg.expense_items] == ["groceries"]


def test_balance_identity_holds_exactly_for_cents() -> None:
    rows = [(f"i{n}", "income", "0.10") for n in range(10)] + [(f"e{n}", "expense", "0.20") for n in range(3)]
    agg = derive(_snap(rows))
    assert agg.total_income == Decimal("1.00")
    assert agg.total_expenses == Decimal("0.60")
    assert agg.total_income - agg.total_expenses == agg.balance == Decimal("0.40")


def test_partitions_are_exclusive_and_keep_snapshot_order() -> None:
    snap = _snap(
        [
            ("a", "income", "1"),
            ("b", "expense", "2"),
            ("c", "income", "3"),
            ("d", "expense", "4"),
        ]
    )
    agg = derive(snap)
    assert len(agg.income_items) + len(agg.expense_items) == len(snap)
    assert not {e.id for e in agg.income_items} & {e.id for e in agg.expense_items}
    # Snapshot order is newest first.
    assert [e.id for e in agg.income_items] == ["c", "a"]
    assert [e.id for e in agg.expense_items] == ["d", "b"]


def test_derive_is_pure() -> None:
    snap = _snap([("a", "income", "5"), ("b", "expense", "2")])
    assert derive(snap) == derive(snap)
    assert derive(snap) == derive(list(snap))


def test_engine_recomputes_only_for_a_new_snapshot_object() -> None:
    engine = AggregationEngine()
    s1 = _snap([("a", "income", "5")], version=1)
    first = engine.aggregate(s1)
    again = engine.aggregate(s1)
    assert first is again
    assert engine.recomputations == 1

    s2 = _snap([("a", "income", "5"), ("b", "expense", "1")], version=2)
    second = engine.aggregate(s2)
    assert engine.recomputations == 2
    assert second.balance == Decimal("4")


def test_engine_reset_drops_cached_snapshot() -> None:
    engine = AggregationEngine()
    s1 = _snap([("a", "income", "5")])
    engine.aggregate(s1)
    engine.reset()
    engine.aggregate(s1)
    assert engine.recomputations == 2


def test_aggregate_to_dict_uses_strings() -> None:
    d = derive(_snap([("a", "income", "10.25")])).to_dict()
    assert d == {
        "total_income": "10.25",
        "total_expenses": "0",
        "balance": "10.25",
        "income_count": 1,
        "expense_count": 0,
    }
