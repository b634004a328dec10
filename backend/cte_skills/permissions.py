from typing import Annotated, Any

from fastapi import Depends, HTTPException, status

from .auth import get_current_user
from .errors import AuthorizationError
from .repositories import roles as roles_repo

ADMIN_REQUIRED = "Access denied: Admin privileges required"


async def ensure_admin(user: dict[str, Any]) -> dict[str, Any]:
    """Role gate for backend functions: a ``user_roles`` row with role ``admin``."""
    if not await roles_repo.is_admin(str(user["id"])):
        raise AuthorizationError(ADMIN_REQUIRED)
    return user


async def require_admin(current: Annotated[dict, Depends(get_current_user)]) -> dict:
    if not await roles_repo.is_admin(str(current["id"])):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ADMIN_REQUIRED)
    return current


AdminUser = Annotated[dict, Depends(require_admin)]

__all__ = ["ADMIN_REQUIRED", "AdminUser", "ensure_admin", "require_admin"]
