from __future__ import annotations

import asyncio
import os
import uuid
from decimal import Decimal

import pytest
from google.cloud import firestore

from ledgersync.identity.providers import StaticIdentityProvider
from ledgersync.identity.session import IdentitySession
from ledgersync.ledger.gateway import MutationGateway
from ledgersync.ledger.mirror import LedgerMirror
from ledgersync.ledger.paths import ledger_collection_path
from ledgersync.store.firestore import FirestoreLedgerStore

pytestmark = pytest.mark.skipif(
    not os.getenv("FIRESTORE_EMULATOR_HOST"),
    reason="FIRESTORE_EMULATOR_HOST is not set; run under Firestore emulator",
)


@pytest.mark.asyncio
async def test_mirror_follows_gateway_writes_on_emulator() -> None:
    """
    Integration gate: the ledger store talks to the local emulator end to end.

    Intended to run under:
      firebase emulators:exec --only firestore "pytest tests/test_firestore_emulator_integration.py"
    """
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or os.getenv("GCLOUD_PROJECT") or "demo-ledgersync-ci"
    store = FirestoreLedgerStore(firestore.Client(project=project))
    path = ledger_collection_path(f"ci-{uuid.uuid4().hex[:12]}")
    gateway = MutationGateway(store, path, identity=IdentitySession(StaticIdentityProvider("ci-user")))

    async with LedgerMirror(store, path) as mirror:
        snap = await asyncio.wait_for(mirror.next_snapshot(), timeout=10)
        assert len(snap) == 0

        ref = await gateway.add("Paycheck", "1000", "income")
        while ref.id not in {e.id for e in snap if e.created_at is not None}:
            snap = await asyncio.wait_for(mirror.next_snapshot(after=snap), timeout=10)
        assert {e.id: e for e in snap}[ref.id].amount == Decimal("1000")

        assert await gateway.delete(ref.id) is True
        while len(snap):
            snap = await asyncio.wait_for(mirror.next_snapshot(after=snap), timeout=10)
