"""
Shared FastAPI dependencies for the v1 API.
"""
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from planwright.models import get_db, User
from planwright.infrastructure.repositories import UserRepository


def get_current_user(
    x_user: Optional[str] = Header(None, description="Login name of the acting user"),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """
    Resolve the acting user from the X-User header.

    Anonymous requests get None; an unknown login name is rejected.
    """
    if x_user is None:
        return None
    user = UserRepository(db).find_by_login_name(x_user)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown user '{x_user}'"
        )
    return user
