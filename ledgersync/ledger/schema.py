from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledgersync.ledger.models import LedgerEntry, to_decimal


def _positive_amount(v: Any) -> Decimal:
    try:
        d = to_decimal(v)
    except (InvalidOperation, TypeError) as e:
        raise ValueError("amount must be a number") from e
    if not d.is_finite():
        raise ValueError("amount must be a finite number")
    if d <= 0:
        raise ValueError("amount must be greater than zero")
    return d


def _storable_amount(v: Any) -> Decimal:
    """
    Positive amount that survives the float number type the store writes.

    Anything the float cannot carry exactly is rejected here, before any write.
    """
    d = _positive_amount(v)
    as_float = float(d)
    if not math.isfinite(as_float):
        raise ValueError("amount is too large to store")
    if Decimal(str(as_float)) != d:
        raise ValueError("amount has more precision than can be stored")
    return d


def _non_empty(v: Any) -> str:
    s = str(v if v is not None else "").strip()
    if not s:
        raise ValueError("description must not be empty")
    return s


class LedgerEntryDocument(BaseModel):
    """
    Stored shape of one entry (camelCase field names on the wire).

    Notes:
    - `extra=allow` so documents written by other clients with additional fields still decode.
    - `createdAt` may be missing while a server timestamp is pending.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    description: str
    amount: Decimal
    type: Literal["income", "expense"]
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    author_id: Optional[str] = Field(default=None, alias="authorId")

    @field_validator("description", mode="before")
    @classmethod
    def check_description(cls, v: Any) -> str:
        return _non_empty(v)

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, v: Any) -> Decimal:
        return _positive_amount(v)

    def to_entry(self, entry_id: str) -> LedgerEntry:
        return LedgerEntry(
            id=entry_id,
            description=self.description,
            amount=self.amount,
            type=self.type,
            created_at=self.created_at,
            author_id=self.author_id,
        )


class NewEntry(BaseModel):
    """
    Validated add intent, as typed into a form: amount may arrive as text.
    """

    model_config = ConfigDict(extra="forbid")

    description: str
    amount: Decimal
    type: Literal["income", "expense"]
    author_id: Optional[str] = None

    @field_validator("description", mode="before")
    @classmethod
    def check_description(cls, v: Any) -> str:
        return _non_empty(v)

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, v: Any) -> Decimal:
        return _storable_amount(v)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    def to_fields(self) -> dict[str, Any]:
        """
        Insert payload. The store adds `createdAt` itself.
        """
        return {
            "description": self.description,
            "amount": float(self.amount),
            "type": self.type,
            "authorId": self.author_id,
        }
