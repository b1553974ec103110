"""
Security utilities for authentication and authorization
Handles merchant JWT tokens and the shared cron secret
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import hmac
import uuid

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from .config import settings
from .exceptions import UnauthorizedException

# Security scheme; auto_error is off so we answer with our own 401 body
security = HTTPBearer(auto_error=False)


class SecurityUtils:
    """Security utility functions"""

    @staticmethod
    def create_access_token(data: Dict[str, Any], expires_minutes: int = 30) -> str:
        """Create JWT access token"""
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
        to_encode.update({"exp": expire, "type": "access"})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> Dict[str, Any]:
        """Decode and validate JWT token"""
        try:
            return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            raise UnauthorizedException("Invalid authentication credentials")

    @staticmethod
    def verify_cron_secret(token: Optional[str]) -> bool:
        """Constant-time comparison against CRON_SECRET; unset secret rejects everything"""
        expected = settings.CRON_SECRET
        if not expected or not token:
            return False
        return hmac.compare_digest(token.encode(), expected.encode())


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> uuid.UUID:
    """Resolve the authenticated merchant id from the bearer token"""
    if not credentials:
        raise UnauthorizedException()

    payload = SecurityUtils.decode_token(credentials.credentials)
    if payload.get("type") != "access":
        raise UnauthorizedException("Invalid token type")

    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise UnauthorizedException("Invalid token subject")


async def require_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Guard for scheduler and internal event endpoints"""
    token = credentials.credentials if credentials else None
    if not SecurityUtils.verify_cron_secret(token):
        raise UnauthorizedException()
