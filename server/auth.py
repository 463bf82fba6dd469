"""Identity dependency: the upstream auth layer sets X-User-Id."""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session as DBSession

from server.db.models import User
from server.dependencies import get_db_session
from server.services import user_service


def get_current_user_optional(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    db: DBSession = Depends(get_db_session),
) -> Optional[User]:
    """Return current user or None if the header is missing or unknown."""
    if not x_user_id:
        return None
    return user_service.get_user(db, x_user_id.strip())


def get_current_user(
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """Require a known user. Raises 401 otherwise."""
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user
