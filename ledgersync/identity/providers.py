from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import requests

from ledgersync.common.logging import log_event
from ledgersync.errors import AuthError

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"


class IdentityProvider(Protocol):
    def sign_in(self) -> str:
        """Blocking handshake; returns the session uid or raises AuthError."""


class StaticIdentityProvider:
    """Fixed uid (local runs, tests, service accounts that write on behalf of a known user)."""

    def __init__(self, uid: str) -> None:
        uid = str(uid or "").strip()
        if not uid:
            raise AuthError("StaticIdentityProvider requires a non-empty uid")
        self._uid = uid

    def sign_in(self) -> str:
        return self._uid


class FirebaseIdentityProvider:
    """
    Firebase Auth via the Identity Toolkit REST API.

    - With a custom token: accounts:signInWithCustomToken, then accounts:lookup for the uid.
    - Without one: anonymous sign-up (accounts:signUp), which returns the uid directly.

    Never logs token values.
    """

    def __init__(
        self,
        *,
        api_key: str,
        custom_token: Optional[str] = None,
        base_url: str = IDENTITY_TOOLKIT_URL,
        timeout_s: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise AuthError("Firebase API key is required for sign-in")
        self._api_key = api_key
        self._custom_token = custom_token or None
        self._base_url = base_url.rstrip("/")
        self._timeout_s = float(timeout_s)
        self._http = session or requests.Session()

    def _post(self, method: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}/accounts:{method}"
        try:
            resp = self._http.post(url, params={"key": self._api_key}, json=body, timeout=self._timeout_s)
        except requests.RequestException as e:
            raise AuthError(f"Identity handshake failed ({method}): {type(e).__name__}") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if resp.status_code >= 400:
            reason = ((payload.get("error") or {}).get("message") if isinstance(payload, dict) else None) or resp.reason
            raise AuthError(f"Identity handshake rejected ({method}): HTTP {resp.status_code} {reason}")
        if not isinstance(payload, dict):
            raise AuthError(f"Identity handshake returned a non-object body ({method})")
        return payload

    def sign_in(self) -> str:
        mode = "custom_token" if self._custom_token else "anonymous"
        if self._custom_token:
            tokens = self._post("signInWithCustomToken", {"token": self._custom_token, "returnSecureToken": True})
            id_token = str(tokens.get("idToken") or "")
            if not id_token:
                raise AuthError("Identity handshake returned no idToken")
            users = self._post("lookup", {"idToken": id_token}).get("users") or []
            uid = str((users[0] if users else {}).get("localId") or "").strip()
        else:
            uid = str(self._post("signUp", {"returnSecureToken": True}).get("localId") or "").strip()

        if not uid:
            raise AuthError("Identity handshake returned no uid")
        log_event(logger, "identity.sign_in", mode=mode, uid=uid)
        return uid
