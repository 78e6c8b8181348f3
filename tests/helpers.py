from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable


class ManualClock:
    """
    Deterministic server clock: every read advances by `step`, so inserts get
    strictly increasing createdAt values.
    """

    def __init__(self, start: datetime | None = None, *, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        ts = self.now
        self.now = self.now + self.step
        return ts


async def eventually(predicate: Callable[[], Any], *, timeout_s: float = 2.0) -> None:
    """Yield to the loop until `predicate()` is truthy (store callbacks land via call_soon_threadsafe)."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)
