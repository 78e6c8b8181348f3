from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from ledgersync.common.config import LedgerConfig
from ledgersync.errors import ConfigurationError
from ledgersync.identity.providers import FirebaseIdentityProvider, IdentityProvider, StaticIdentityProvider
from ledgersync.identity.session import IdentitySession
from ledgersync.ledger.gateway import MutationGateway
from ledgersync.ledger.mirror import LedgerMirror
from ledgersync.ledger.view import LedgerView
from ledgersync.store.base import LedgerStore
from ledgersync.store.memory import InMemoryLedgerStore


@dataclass(frozen=True, slots=True)
class LedgerContext:
    """
    Process/session-scoped handles, created once by the composition root and passed down.

    - store: the shared remote ledger store
    - identity: the session's identity handshake (uid may still be pending)
    - collection_path: deployment-scoped ledger collection
    """

    config: LedgerConfig
    store: LedgerStore
    identity: IdentitySession

    @property
    def collection_path(self) -> str:
        return self.config.collection_path

    def mirror(self) -> LedgerMirror:
        return LedgerMirror(self.store, self.collection_path)

    def view(self) -> LedgerView:
        return LedgerView(self.mirror())

    def gateway(self) -> MutationGateway:
        return MutationGateway(self.store, self.collection_path, identity=self.identity)


def build_store(config: LedgerConfig) -> LedgerStore:
    if config.store_backend == "memory":
        return InMemoryLedgerStore()
    if config.store_backend == "firestore":
        # Lazy: keeps the memory backend importable without Google client libraries initialised.
        from ledgersync.persistence.firebase_client import get_firestore_client
        from ledgersync.store.firestore import FirestoreLedgerStore

        return FirestoreLedgerStore(get_firestore_client(project_id=config.project_id), write_attempts=config.write_attempts)
    raise ConfigurationError(f"unknown store backend: {config.store_backend!r}")


def build_identity_provider(config: LedgerConfig) -> Optional[IdentityProvider]:
    if config.static_uid:
        return StaticIdentityProvider(config.static_uid)
    if config.api_key:
        return FirebaseIdentityProvider(api_key=config.api_key, custom_token=config.auth_token)
    if config.store_backend == "memory":
        return StaticIdentityProvider(f"local-{uuid.uuid4().hex[:8]}")
    return None


def build_context(
    config: LedgerConfig,
    *,
    store: Optional[LedgerStore] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> LedgerContext:
    """
    Composition root. `store` / `identity_provider` override the configured backends (tests, embedding).
    """
    return LedgerContext(
        config=config,
        store=store if store is not None else build_store(config),
        identity=IdentitySession(identity_provider if identity_provider is not None else build_identity_provider(config)),
    )
