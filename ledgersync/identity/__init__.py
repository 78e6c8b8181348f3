"""
Session identity for ledger writes.

The uid is informational (stamped as `authorId`), never used for access control here.
"""

from .providers import FirebaseIdentityProvider, IdentityProvider, StaticIdentityProvider
from .session import IdentitySession

__all__ = [
    "FirebaseIdentityProvider",
    "IdentityProvider",
    "IdentitySession",
    "StaticIdentityProvider",
]
