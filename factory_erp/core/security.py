"""Password hashing, session tokens, and request authentication helpers."""

import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional, List

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from factory_erp.core.config import settings
from factory_erp.core.exceptions import AuthenticationError
from factory_erp.db.session import get_db
from factory_erp.models.user import User
from factory_erp.services.authorization_service import authorization_service

# Bearer scheme is accepted alongside the session cookie
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash. A missing or malformed hash never matches."""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_session_token(
    user_id: int,
    email: str,
    name: str,
    role: str,
    roles: List[str],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create the signed session credential carried in the auth cookie."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(days=settings.SESSION_EXPIRY_DAYS)
    )
    claims = {
        "sub": str(user_id),
        "userId": user_id,
        "email": email,
        "name": name,
        "role": role,
        "roles": list(roles),
        "exp": expire,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a session token."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("session_expired")
    if payload.get("sub") is None:
        raise AuthenticationError("session_expired")
    return payload


def extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    if credentials is not None:
        return credentials.credentials
    return None


async def get_session_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> dict:
    """Return the verified claims of the caller's session credential."""
    token = extract_token(request, credentials)
    if not token:
        raise AuthenticationError("not_authenticated")
    return decode_token(token)


async def get_current_user_id(claims: dict = Depends(get_session_claims)) -> int:
    """Extract the user id from the session credential."""
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("session_expired")


def session_cookie_options() -> dict:
    return {
        "key": settings.SESSION_COOKIE_NAME,
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "lax",
        "path": "/",
        "max_age": settings.SESSION_EXPIRY_DAYS * 24 * 60 * 60,
    }


class RequirePermission:
    """Dependency that checks the caller holds ``module.action`` right now.

    Grants are re-resolved from the database on every request, so a role
    change takes effect without a new login. Deactivated accounts are
    rejected even while their token is still valid.
    """

    def __init__(self, module: Optional[str] = None, action: Optional[str] = None):
        self.module = module
        self.action = action

    async def __call__(
        self,
        claims: dict = Depends(get_session_claims),
        db: Session = Depends(get_db),
    ) -> dict:
        user_id = await get_current_user_id(claims)
        user = db.query(User).filter(User.id == user_id).first()
        if user is None or not user.is_active:
            raise AuthenticationError("session_expired")
        if self.module is not None:
            authorization_service.require(db, user_id, self.module, self.action)
        return claims


# Authenticated caller, no specific grant needed
require_session = RequirePermission()
