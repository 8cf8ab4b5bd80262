"""FastAPI dependencies for the caller identity.

Tokens are verified by the upstream gateway, which forwards the resolved
identity as X-User-* headers. This service trusts those headers and only
enforces store scoping.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import Header, HTTPException

SUPER_ADMIN_ROLE = "super_admin"


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str = ""
    store_id: Optional[str] = None
    permissions: List[str] = field(default_factory=list)

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN_ROLE

    def can_access_store(self, store_id: Optional[str]) -> bool:
        return self.is_super_admin or (bool(store_id) and self.store_id == store_id)


async def get_identity(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_store_id: Optional[str] = Header(None),
    x_user_permissions: Optional[str] = Header(None),
) -> Identity:
    """Resolve the caller from gateway headers.

    Usage:
        @router.get("/carts/{cart_id}")
        async def get_cart(cart_id: str, identity: Identity = Depends(get_identity)):
            ...
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")

    permissions = [p.strip() for p in (x_user_permissions or "").split(",") if p.strip()]
    return Identity(
        user_id=x_user_id.strip(),
        role=(x_user_role or "").strip(),
        store_id=(x_store_id or "").strip() or None,
        permissions=permissions,
    )


def require_store_access(identity: Identity, store_id: Optional[str]) -> None:
    """Raise 403 unless the caller is assigned to the store (or super admin)."""
    if not identity.can_access_store(store_id):
        raise HTTPException(status_code=403, detail="Access denied to this store")
