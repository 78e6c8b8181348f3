from __future__ import annotations

from typing import Any

import pytest

from ledgersync.common.config import LedgerConfig
from ledgersync.context import build_context, build_identity_provider, build_store
from ledgersync.identity.providers import FirebaseIdentityProvider, StaticIdentityProvider
from ledgersync.store.firestore import FirestoreLedgerStore
from ledgersync.store.memory import InMemoryLedgerStore


def test_memory_backend_builds_local_store_and_identity() -> None:
    cfg = LedgerConfig(app_id="household", store_backend="memory")
    assert isinstance(build_store(cfg), InMemoryLedgerStore)
    provider = build_identity_provider(cfg)
    assert isinstance(provider, StaticIdentityProvider)
    assert provider.sign_in().startswith("local-")


def test_identity_provider_selection() -> None:
    assert isinstance(build_identity_provider(LedgerConfig(static_uid="svc")), StaticIdentityProvider)
    assert isinstance(build_identity_provider(LedgerConfig(api_key="AIza")), FirebaseIdentityProvider)
    assert build_identity_provider(LedgerConfig()) is None


def test_firestore_backend_wires_client_and_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, Any] = {}

    def fake_client(*, project_id: str | None = None) -> object:
        seen["project_id"] = project_id
        return object()

    monkeypatch.setattr("ledgersync.persistence.firebase_client.get_firestore_client", fake_client)
    store = build_store(LedgerConfig(project_id="demo-ledger", write_attempts=3))
    assert isinstance(store, FirestoreLedgerStore)
    assert seen == {"project_id": "demo-ledger"}


def test_context_handles_share_store_and_path() -> None:
    store = InMemoryLedgerStore()
    ctx = build_context(LedgerConfig(app_id="household", store_backend="memory"), store=store)
    assert ctx.collection_path == "artifacts/household/public/data/budget-items"
    mirror = ctx.mirror()
    gateway = ctx.gateway()
    assert mirror.path == gateway.path == ctx.collection_path
    assert ctx.view().mirror.path == ctx.collection_path
