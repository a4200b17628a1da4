"""
Security utilities for authentication and authorization

Tokens are minted by the external auth provider; this service only decodes
them into a principal.
"""

import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from app.config import settings
from app.core.exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

ROLE_USER = "user"
ROLE_ADMIN = "admin"


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated principal"""
    id: uuid.UUID
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def create_access_token(
    user_id: uuid.UUID,
    role: str = ROLE_USER,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token (seeding and tests)
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a JWT token
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.info(f"JWT decode error: {e}")
        raise AuthenticationError("Could not validate credentials")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> CurrentUser:
    """
    Get current principal from the bearer token
    """
    if credentials is None:
        raise AuthenticationError()

    payload = decode_token(credentials.credentials)
    subject = payload.get("sub")
    if subject is None:
        raise AuthenticationError("Could not validate credentials")

    try:
        user_id = uuid.UUID(str(subject))
    except ValueError:
        raise AuthenticationError("Invalid token subject")

    role = payload.get("role", ROLE_USER)
    if role not in (ROLE_USER, ROLE_ADMIN):
        raise AuthenticationError("Invalid token role")

    return CurrentUser(id=user_id, role=role)


async def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """
    Require admin role for endpoint
    """
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user
