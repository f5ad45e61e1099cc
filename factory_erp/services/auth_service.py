"""Auth service: credential check, session issuance, profile updates."""

import logging

from typing import Dict, Any, List, Optional

from sqlalchemy.orm import Session

from factory_erp.core.config import settings
from factory_erp.core.exceptions import AuthenticationError, NotFoundError, ValidationError
from factory_erp.core.security import hash_password, verify_password, create_session_token
from factory_erp.db.base import utcnow
from factory_erp.models.user import User
from factory_erp.services.authorization_service import authorization_service

logger = logging.getLogger("factory_erp")

MIN_PASSWORD_LENGTH = 6


def choose_primary_role(role_names: List[str], precedence: Optional[List[str]] = None) -> str:
    """First name of the precedence list the user holds, else the generic default."""
    for candidate in precedence if precedence is not None else settings.PRIMARY_ROLE_PRECEDENCE:
        if candidate in role_names:
            return candidate
    return settings.DEFAULT_PRIMARY_ROLE


def serialize_session_user(user: User, primary_role: str, roles: List[str]) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": primary_role,
        "roles": roles,
    }


class AuthService:
    """Handles authentication and the caller's own profile."""

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Dict[str, Any]:
        """Verify credentials and issue a session token.

        Unknown email, deactivated account, missing hash and wrong password
        all raise the same ``invalid_credentials`` error.

        Raises:
            AuthenticationError: If credentials are invalid.
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if (
            user is None
            or not user.is_active
            or not user.hashed_password
            or not verify_password(password, user.hashed_password)
        ):
            logger.info("Failed login attempt")
            raise AuthenticationError("invalid_credentials")

        roles = authorization_service.active_role_names(db, user.id)
        primary_role = choose_primary_role(roles)

        token = create_session_token(
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=primary_role,
            roles=roles,
        )

        user.last_login_at = utcnow()
        db.commit()
        logger.info("User %s logged in (primary role: %s)", user.id, primary_role)

        return {
            "token": token,
            "user": serialize_session_user(user, primary_role, roles),
        }

    @staticmethod
    def get_session_user(db: Session, user_id: int) -> Dict[str, Any]:
        """Current session identity, re-read from the database."""
        user = db.query(User).filter(User.id == user_id).first()
        if user is None or not user.is_active:
            raise AuthenticationError("session_expired")
        roles = authorization_service.active_role_names(db, user.id)
        return serialize_session_user(user, choose_primary_role(roles), roles)

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("user_not_found")
        return user

    @staticmethod
    def update_profile(
        db: Session,
        user_id: int,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        current_password: Optional[str] = None,
        new_password: Optional[str] = None,
    ) -> User:
        """Update the caller's own name, phone, or password."""
        user = AuthService.get_user(db, user_id)
        if name:
            user.name = name.strip()
        if phone is not None:
            user.phone = phone or None
        if new_password:
            if len(new_password) < MIN_PASSWORD_LENGTH:
                raise ValidationError("password_too_short")
            if not current_password or not verify_password(current_password, user.hashed_password):
                raise ValidationError("current_password_invalid")
            user.hashed_password = hash_password(new_password)
        db.commit()
        db.refresh(user)
        return user


auth_service = AuthService()
