from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from ledgersync.errors import SubscriptionError
from ledgersync.ledger.aggregation import AggregationEngine
from ledgersync.ledger.mirror import LedgerMirror
from ledgersync.ledger.models import Aggregate, Snapshot


@dataclass(frozen=True, slots=True)
class LedgerState:
    snapshot: Snapshot
    aggregate: Aggregate


class LedgerView:
    """
    Mirror + aggregation composed for a presentation layer.

    Every LedgerState pairs a Snapshot with the Aggregate derived from that very
    Snapshot; totals are recomputed only when the mirror publishes a new one.
    """

    def __init__(self, mirror: LedgerMirror, engine: Optional[AggregationEngine] = None) -> None:
        self.mirror = mirror
        self.engine = engine or AggregationEngine()

    @property
    def loading(self) -> bool:
        return self.mirror.loading

    @property
    def error(self) -> Optional[SubscriptionError]:
        return self.mirror.error

    def current(self) -> Optional[LedgerState]:
        snap = self.mirror.snapshot
        if snap is None:
            return None
        return LedgerState(snapshot=snap, aggregate=self.engine.aggregate(snap))

    async def next_state(self, after: Optional[LedgerState] = None) -> LedgerState:
        snap = await self.mirror.next_snapshot(after=after.snapshot if after is not None else None)
        return LedgerState(snapshot=snap, aggregate=self.engine.aggregate(snap))

    async def states(self) -> AsyncIterator[LedgerState]:
        async for snap in self.mirror.snapshots():
            yield LedgerState(snapshot=snap, aggregate=self.engine.aggregate(snap))

    async def __aenter__(self) -> "LedgerView":
        await self.mirror.__aenter__()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.mirror.__aexit__(exc_type, exc, tb)
        self.engine.reset()
