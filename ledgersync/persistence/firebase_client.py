from __future__ import annotations

import os
import threading
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore
import google.auth
from google.auth import exceptions as gauth_exceptions
from google.cloud import firestore as gcf

from ledgersync.errors import ConfigurationError


_CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


def is_local_execution() -> bool:
    """
    Heuristic: treat execution as "local" when either:
    - ENV=local, OR
    - we're not on a managed GCP runtime (no K_SERVICE, no CLOUD_RUN_JOB, and no GAE_* env vars).
    """
    if (os.getenv("ENV") or "").strip().lower() == "local":
        return True
    if (os.getenv("K_SERVICE") or "").strip():
        return False
    if (os.getenv("CLOUD_RUN_JOB") or "").strip():
        return False
    for k in os.environ.keys():
        if str(k).startswith("GAE_"):
            return False
    return True


def require_firestore_emulator_or_allow_prod(*, caller: str) -> None:
    """
    Safety guard: fail-closed locally unless the Firestore emulator is configured.

    Local execution MUST set FIRESTORE_EMULATOR_HOST, unless explicitly overridden with:
      ALLOW_PROD_FIRESTORE=1
    """
    if not is_local_execution():
        return
    if (os.getenv("FIRESTORE_EMULATOR_HOST") or "").strip():
        return
    if (os.getenv("ALLOW_PROD_FIRESTORE") or "").strip() == "1":
        return

    raise ConfigurationError(
        "Refusing to use production Firestore from local execution "
        f"(caller={caller}). Set FIRESTORE_EMULATOR_HOST (example: '127.0.0.1:8080'), "
        "or intentionally override with ALLOW_PROD_FIRESTORE=1."
    )


_init_lock = threading.Lock()


def init_firebase_admin(*, project_id: Optional[str] = None) -> firebase_admin.App:
    """
    Initialize the Firebase Admin SDK exactly once and return the default app.

    Credentials: Application Default Credentials (GOOGLE_APPLICATION_CREDENTIALS,
      `gcloud auth application-default login`, or the runtime service account).
    """
    require_firestore_emulator_or_allow_prod(caller="ledgersync.persistence.firebase_client.init_firebase_admin")

    with _init_lock:
        try:
            return firebase_admin.get_app()
        except ValueError:
            pass

        try:
            cred = credentials.ApplicationDefault()
        except Exception as e:
            raise ConfigurationError(
                "Failed to load Application Default Credentials (ADC) for Firebase Admin SDK. "
                "Locally: run `gcloud auth application-default login`."
            ) from e

        if not project_id:
            # Ask ADC for the active project id (common on Cloud Run / GCE).
            try:
                _, project_id = google.auth.default(scopes=[_CLOUD_PLATFORM_SCOPE])
            except gauth_exceptions.DefaultCredentialsError:
                project_id = None
        if not project_id:
            raise ConfigurationError(
                "Firebase project id could not be resolved. Set FIREBASE_PROJECT_ID "
                "(or ensure your ADC environment provides a project id)."
            )

        try:
            return firebase_admin.initialize_app(cred, {"projectId": project_id})
        except Exception as e:
            raise ConfigurationError(f"Failed to initialize Firebase Admin SDK: {type(e).__name__}: {e}") from e


def get_firestore_client(*, project_id: Optional[str] = None):
    """
    Firestore client for the ledger store.

    Under the emulator the plain `google.cloud.firestore.Client` is used (it picks up
    FIRESTORE_EMULATOR_HOST and anonymous credentials on its own).
    """
    if (os.getenv("FIRESTORE_EMULATOR_HOST") or "").strip():
        if not project_id:
            raise ConfigurationError("A project id is required when using the Firestore emulator")
        return gcf.Client(project=project_id)
    app = init_firebase_admin(project_id=project_id)
    return firestore.client(app)
