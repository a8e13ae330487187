# backend/coursepay/api/dependencies/auth.py
"""
Authentication and role dependencies.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWTError
from sqlalchemy.orm import Session

from ...auth import decode_access_token
from ...models.user import User
from ...repositories.user_repository import UserRepository
from .database import get_db

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to a user row.

    Raises:
        HTTPException: 401 if the token is missing, invalid, or names no user
    """
    if credentials is None or not credentials.credentials:
        raise _credentials_exception()
    try:
        payload = decode_access_token(credentials.credentials)
    except PyJWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise _credentials_exception() from exc

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise _credentials_exception()
    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        raise _credentials_exception()
    return user


def get_current_student(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_student:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Student access required")
    return current_user


def get_current_instructor(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_instructor:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Instructor access required"
        )
    return current_user
