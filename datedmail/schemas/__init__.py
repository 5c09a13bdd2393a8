"""Schemas package"""

from datedmail.schemas.registry import Alias, Registry
from datedmail.schemas.lifecycle import ExpirySpec, RefreshResult

__all__ = [
    "Alias",
    "Registry",
    "ExpirySpec",
    "RefreshResult",
]
