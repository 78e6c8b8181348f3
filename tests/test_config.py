from __future__ import annotations

import json

import pytest

from ledgersync.common.config import DEFAULT_APP_ID, load_config
from ledgersync.errors import ConfigurationError

_WEB_CONFIG = json.dumps({"apiKey": "AIza-test", "projectId": "demo-ledger", "authDomain": "demo-ledger.firebaseapp.com"})


def test_firestore_config_from_web_config_blob() -> None:
    cfg = load_config({"FIREBASE_CONFIG": _WEB_CONFIG, "LEDGER_APP_ID": "household"})
    assert cfg.store_backend == "firestore"
    assert cfg.project_id == "demo-ledger"
    assert cfg.api_key == "AIza-test"
    assert cfg.collection_path == "artifacts/household/public/data/budget-items"
    assert cfg.write_attempts == 1


def test_explicit_env_overrides_web_config() -> None:
    cfg = load_config(
        {
            "FIREBASE_CONFIG": _WEB_CONFIG,
            "FIREBASE_PROJECT_ID": "other-project",
            "FIREBASE_API_KEY": "AIza-other",
            "FIREBASE_AUTH_TOKEN": "custom-token",
        }
    )
    assert cfg.project_id == "other-project"
    assert cfg.api_key == "AIza-other"
    assert cfg.auth_token == "custom-token"


def test_app_id_defaults_and_legacy_name() -> None:
    assert load_config({"LEDGER_STORE": "memory"}).app_id == DEFAULT_APP_ID
    assert load_config({"LEDGER_STORE": "memory", "APP_ID": "legacy"}).app_id == "legacy"
    assert load_config({"LEDGER_STORE": "memory", "APP_ID": "legacy", "LEDGER_APP_ID": "new"}).app_id == "new"


def test_missing_firebase_config_fails_fast() -> None:
    with pytest.raises(ConfigurationError, match="FIREBASE_CONFIG"):
        load_config({})


def test_firestore_needs_a_way_to_identify() -> None:
    with pytest.raises(ConfigurationError, match="API key"):
        load_config({"FIREBASE_PROJECT_ID": "demo-ledger"})
    cfg = load_config({"FIREBASE_PROJECT_ID": "demo-ledger", "LEDGER_UID": "svc"})
    assert cfg.static_uid == "svc"


@pytest.mark.parametrize(
    "env,match",
    [
        ({"FIREBASE_CONFIG": "{not json"}, "not valid JSON"),
        ({"FIREBASE_CONFIG": "[1, 2]"}, "JSON object"),
        ({"FIREBASE_CONFIG": json.dumps({"apiKey": "k"})}, "projectId"),
        ({"LEDGER_STORE": "postgres"}, "LEDGER_STORE"),
        ({"LEDGER_STORE": "memory", "LEDGER_WRITE_ATTEMPTS": "many"}, "integer"),
        ({"LEDGER_STORE": "memory", "LEDGER_WRITE_ATTEMPTS": "0"}, ">= 1"),
        ({"LEDGER_STORE": "memory", "LEDGER_APP_ID": "a/b"}, "app_id"),
    ],
)
def test_malformed_config_is_rejected(env: dict[str, str], match: str) -> None:
    with pytest.raises(ConfigurationError, match=match):
        load_config(env)


def test_memory_backend_needs_no_firebase_settings() -> None:
    cfg = load_config({"LEDGER_STORE": "Memory", "LEDGER_WRITE_ATTEMPTS": "3", "LOG_LEVEL": "debug"})
    assert cfg.store_backend == "memory"
    assert cfg.write_attempts == 3
    assert cfg.log_level == "DEBUG"


def test_to_dict_never_exposes_credentials() -> None:
    cfg = load_config({"FIREBASE_CONFIG": _WEB_CONFIG, "FIREBASE_AUTH_TOKEN": "secret-token"})
    dumped = json.dumps(cfg.to_dict())
    assert "AIza-test" not in dumped
    assert "secret-token" not in dumped
    assert cfg.to_dict()["api_key_present"] is True


def test_reads_process_environment_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEDGER_STORE", "memory")
    monkeypatch.setenv("LEDGER_APP_ID", "from-env")
    assert load_config().app_id == "from-env"
