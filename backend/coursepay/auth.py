"""
Bearer token helpers.

Tokens are HS256 JWTs whose ``sub`` claim is the user id. Issuing tokens
(login, OTP) lives outside this service; ``create_access_token`` exists for
operators and tests.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

import jwt

from .core.config import settings

logger = logging.getLogger(__name__)


def _secret_value() -> str:
    return settings.secret_key.get_secret_value()


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: The claims to encode; ``sub`` should carry the user id
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, _secret_value(), algorithm=settings.algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a JWT access token.

    Raises:
        jwt.PyJWTError: signature, expiry or format problems
    """
    payload_raw = jwt.decode(token, _secret_value(), algorithms=[settings.algorithm])
    return cast(Dict[str, Any], payload_raw)
