from __future__ import annotations


LEDGER_COLLECTION_TEMPLATE = "artifacts/{app_id}/public/data/budget-items"


def _segment(value: str, *, what: str) -> str:
    s = str(value or "").strip()
    if not s:
        raise ValueError(f"{what} is required")
    if "/" in s:
        raise ValueError(f"{what} must be a single path segment (got {s!r})")
    return s


def ledger_collection_path(app_id: str) -> str:
    """
    Deployment-scoped collection path.

    Example:
      ledger_collection_path("prod")
      => artifacts/prod/public/data/budget-items
    """
    return LEDGER_COLLECTION_TEMPLATE.format(app_id=_segment(app_id, what="app_id"))


def entry_document_path(collection_path: str, entry_id: str) -> str:
    return f"{collection_path.rstrip('/')}/{_segment(entry_id, what='entry_id')}"
