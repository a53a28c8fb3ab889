"""Admin authentication dependency."""

from fastapi import Depends, HTTPException, status

from qr_service.dependencies.auth import get_current_user
from qr_service.models import User, UserRole


def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """Require admin privileges.

    The role is read from the account, not the token, so a demoted admin
    loses access without waiting for their session to expire.
    """
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user
