from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ledgersync.errors import ConfigurationError
from ledgersync.ledger.paths import ledger_collection_path


DEFAULT_APP_ID = "default-app-id"
DEFAULT_WRITE_ATTEMPTS = 1
STORE_BACKENDS = ("firestore", "memory")


def _environ(environ: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return os.environ if environ is None else environ


def env_str(name: str, default: str | None = None, *, environ: Optional[Mapping[str, str]] = None) -> str | None:
    v = _environ(environ).get(name)
    if v is None:
        return default
    s = str(v).strip()
    return s if s else default


def _parse_int_env(name: str, default: int, *, environ: Optional[Mapping[str, str]] = None) -> int:
    raw = (_environ(environ).get(name) or "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer (got {raw!r})") from e


def _parse_firebase_config(raw: str | None) -> dict[str, Any]:
    """
    Parse the Firebase web-config JSON blob (the same shape the web SDK takes).
    """
    if not raw:
        return {}
    try:
        cfg = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"FIREBASE_CONFIG is not valid JSON: {e.msg}") from e
    if not isinstance(cfg, dict):
        raise ConfigurationError("FIREBASE_CONFIG must be a JSON object")
    return cfg


@dataclass(frozen=True, slots=True)
class LedgerConfig:
    """
    Connection parameters for one deployment of the ledger.

    `app_id` namespaces the collection path so deployments never observe
    each other's data.
    """

    app_id: str = DEFAULT_APP_ID
    store_backend: str = "firestore"
    project_id: Optional[str] = None
    api_key: Optional[str] = None
    auth_token: Optional[str] = None
    static_uid: Optional[str] = None
    write_attempts: int = DEFAULT_WRITE_ATTEMPTS
    log_level: str = "INFO"

    @property
    def collection_path(self) -> str:
        return ledger_collection_path(self.app_id)

    def to_dict(self) -> dict[str, Any]:
        # Never include credentials.
        return {
            "app_id": self.app_id,
            "store_backend": self.store_backend,
            "project_id": self.project_id,
            "api_key_present": bool(self.api_key),
            "auth_token_present": bool(self.auth_token),
            "static_uid": self.static_uid,
            "write_attempts": self.write_attempts,
            "collection_path": self.collection_path,
        }


def load_config(environ: Optional[Mapping[str, str]] = None) -> LedgerConfig:
    """
    Build a LedgerConfig from the environment.

    Fails fast with ConfigurationError; nothing is subscribed before this passes.
    """
    app_id = env_str("LEDGER_APP_ID", environ=environ) or env_str("APP_ID", environ=environ) or DEFAULT_APP_ID
    backend = (env_str("LEDGER_STORE", "firestore", environ=environ) or "firestore").lower()
    if backend not in STORE_BACKENDS:
        raise ConfigurationError(f"LEDGER_STORE must be one of {', '.join(STORE_BACKENDS)} (got {backend!r})")

    firebase_cfg = _parse_firebase_config(env_str("FIREBASE_CONFIG", environ=environ))
    project_id = (
        env_str("FIREBASE_PROJECT_ID", environ=environ)
        # Back-compat: older env name
        or env_str("FIRESTORE_PROJECT_ID", environ=environ)
        or env_str("GOOGLE_CLOUD_PROJECT", environ=environ)
        or (str(firebase_cfg.get("projectId") or "").strip() or None)
    )
    api_key = env_str("FIREBASE_API_KEY", environ=environ) or (str(firebase_cfg.get("apiKey") or "").strip() or None)
    static_uid = env_str("LEDGER_UID", environ=environ)

    if backend == "firestore":
        if not firebase_cfg and not project_id:
            raise ConfigurationError(
                "Firebase configuration is missing. Set FIREBASE_CONFIG (web config JSON) "
                "or FIREBASE_PROJECT_ID."
            )
        if not project_id:
            raise ConfigurationError("FIREBASE_CONFIG has no projectId and no FIREBASE_PROJECT_ID is set")
        if not api_key and not static_uid:
            raise ConfigurationError(
                "Firebase Auth needs an API key (FIREBASE_CONFIG.apiKey / FIREBASE_API_KEY), "
                "or set LEDGER_UID to use a fixed session id."
            )

    write_attempts = _parse_int_env("LEDGER_WRITE_ATTEMPTS", DEFAULT_WRITE_ATTEMPTS, environ=environ)
    if write_attempts < 1:
        raise ConfigurationError("LEDGER_WRITE_ATTEMPTS must be >= 1")

    try:
        ledger_collection_path(app_id)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    return LedgerConfig(
        app_id=app_id,
        store_backend=backend,
        project_id=project_id,
        api_key=api_key,
        auth_token=env_str("FIREBASE_AUTH_TOKEN", environ=environ),
        static_uid=static_uid,
        write_attempts=write_attempts,
        log_level=(env_str("LOG_LEVEL", "INFO", environ=environ) or "INFO").upper(),
    )
