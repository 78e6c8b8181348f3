from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ledgersync.common.logging import log_event
from ledgersync.errors import AuthError
from ledgersync.identity.providers import IdentityProvider

logger = logging.getLogger(__name__)


class IdentitySession:
    """
    Asynchronous identity handshake for one process/session.

    - `uid` is None until the handshake completes (not-yet-ready is a normal state).
    - A failed handshake is terminal: `error` holds the AuthError and `wait_uid()` re-raises it.
    - The handshake runs at most once; concurrent waiters share it.
    """

    def __init__(self, provider: Optional[IdentityProvider]) -> None:
        self._provider = provider
        self._task: Optional[asyncio.Task[str]] = None
        self.uid: Optional[str] = None
        self.error: Optional[AuthError] = None

    @property
    def ready(self) -> bool:
        return self.uid is not None

    def start(self) -> "asyncio.Task[str]":
        """Kick off the handshake in the background (idempotent). Must run inside an event loop."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._handshake())
            # The failure is kept on `error`; mark it retrieved so a fire-and-forget start stays quiet.
            self._task.add_done_callback(lambda t: t.cancelled() or t.exception())
        return self._task

    async def _handshake(self) -> str:
        if self._provider is None:
            self.error = AuthError("No identity provider configured")
            raise self.error
        try:
            uid = await asyncio.to_thread(self._provider.sign_in)
        except AuthError as e:
            self.error = e
            log_event(logger, "identity.sign_in_failed", severity="ERROR", error=str(e))
            raise
        except Exception as e:
            self.error = AuthError(f"Identity handshake failed: {type(e).__name__}: {e}")
            log_event(logger, "identity.sign_in_failed", severity="ERROR", error=str(self.error))
            raise self.error from e
        self.uid = uid
        return uid

    async def wait_uid(self) -> str:
        if self.uid is not None:
            return self.uid
        if self.error is not None:
            raise self.error
        return await asyncio.shield(self.start())
