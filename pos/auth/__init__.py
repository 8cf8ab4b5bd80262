"""Authentication package."""
from .dependencies import Identity, get_identity, require_store_access

__all__ = [
    "Identity",
    "get_identity",
    "require_store_access",
]
