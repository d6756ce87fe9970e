from fastapi import Depends, HTTPException, status

from school_billing.auth.dependencies import get_current_user
from school_billing.auth.schemas import CurrentUser


def require_roles(*roles: str):
    """
    Dependency factory to restrict an endpoint to the given roles.

    Example:
        Depends(require_roles("admin", "staff"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


# Shared gates: writes for office staff, destructive operations for admins only
require_staff = require_roles("admin", "staff")
require_admin = require_roles("admin")
