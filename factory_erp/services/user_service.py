"""User administration and user-role assignments."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from factory_erp.core.exceptions import ConflictError, NotFoundError, ValidationError
from factory_erp.core.security import hash_password
from factory_erp.models.role import Role
from factory_erp.models.user import User
from factory_erp.models.user_role import UserRole
from factory_erp.services.auth_service import MIN_PASSWORD_LENGTH

logger = logging.getLogger("factory_erp")


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "active": user.is_active,
        "legacyRole": user.legacy_role,
        "lastLogin": user.last_login_at,
        "createdAt": user.created_at,
        "updatedAt": user.updated_at,
        "roles": [
            {
                "id": a.role.id,
                "name": a.role.name,
                "active": a.role.is_active,
                "assignmentActive": a.is_active,
            }
            for a in user.role_assignments
            if a.role is not None
        ],
    }


class UserService:
    """Administrative user management."""

    @staticmethod
    def _normalize_email(email: Optional[str]) -> str:
        return (email or "").strip().lower()

    @staticmethod
    def _check_password(password: str) -> None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("password_too_short")

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError("user_not_found")
        return user

    @staticmethod
    def list_users(
        db: Session,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        role_id: Optional[int] = None,
        active: Optional[bool] = None,
    ) -> Dict[str, Any]:
        query = db.query(User)
        if search:
            like = f"%{search}%"
            query = query.filter(or_(User.name.ilike(like), User.email.ilike(like)))
        if active is not None:
            query = query.filter(User.is_active.is_(active))
        if role_id is not None:
            query = query.join(UserRole, UserRole.user_id == User.id).filter(
                UserRole.role_id == role_id, UserRole.is_active.is_(True)
            )

        total = query.count()
        users = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "users": users,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": (total + limit - 1) // limit,
            },
        }

    @staticmethod
    def _load_roles(db: Session, role_ids: Iterable[int]) -> List[Role]:
        ids = list(dict.fromkeys(role_ids))
        if not ids:
            return []
        roles = db.query(Role).filter(Role.id.in_(ids)).all()
        if len(roles) != len(ids):
            raise NotFoundError("role_not_found")
        return roles

    @staticmethod
    def _apply_roles(db: Session, user: User, role_ids: Iterable[int], actor_id: Optional[int]) -> None:
        """Activate the listed roles and deactivate every other assignment."""
        wanted = {role.id for role in UserService._load_roles(db, role_ids)}
        existing = {a.role_id: a for a in user.role_assignments}
        for role_id, assignment in existing.items():
            assignment.is_active = role_id in wanted
        for role_id in wanted - set(existing):
            user.role_assignments.append(
                UserRole(role_id=role_id, is_active=True, assigned_by_id=actor_id)
            )

    @staticmethod
    def create_user(
        db: Session,
        name: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        active: bool = True,
        role_ids: Optional[List[int]] = None,
        actor_id: Optional[int] = None,
    ) -> User:
        """Create a user with its initial role assignments."""
        email = UserService._normalize_email(email)
        if not name or not name.strip() or not email or not password:
            raise ValidationError("user_fields_required")
        UserService._check_password(password)
        if db.query(User).filter(User.email == email).first():
            raise ConflictError("email_exists")

        try:
            user = User(
                name=name.strip(),
                email=email,
                hashed_password=hash_password(password),
                phone=phone or None,
                is_active=active,
            )
            db.add(user)
            db.flush()
            UserService._apply_roles(db, user, role_ids or [], actor_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(user)
        logger.info("User %s created", user.id)
        return user

    @staticmethod
    def update_user(
        db: Session,
        user_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        active: Optional[bool] = None,
        password: Optional[str] = None,
        role_ids: Optional[List[int]] = None,
        actor_id: Optional[int] = None,
    ) -> User:
        user = UserService.get_user(db, user_id)
        try:
            if email is not None:
                email = UserService._normalize_email(email)
                if email != user.email:
                    taken = db.query(User).filter(User.email == email, User.id != user.id).first()
                    if taken:
                        raise ConflictError("email_exists")
                    user.email = email
            if name:
                user.name = name.strip()
            if phone is not None:
                user.phone = phone or None
            if active is not None:
                user.is_active = active
            if password:
                UserService._check_password(password)
                user.hashed_password = hash_password(password)
            if role_ids is not None:
                UserService._apply_roles(db, user, role_ids, actor_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(user)
        return user

    @staticmethod
    def deactivate_user(db: Session, user_id: int, actor_id: int) -> User:
        """Soft delete: the account and all of its assignments are deactivated."""
        if user_id == actor_id:
            raise ValidationError("cannot_delete_self")
        user = UserService.get_user(db, user_id)
        user.is_active = False
        for assignment in user.role_assignments:
            assignment.is_active = False
        db.commit()
        db.refresh(user)
        logger.info("User %s deactivated by %s", user_id, actor_id)
        return user

    @staticmethod
    def reset_password(db: Session, user_id: int, new_password: str) -> None:
        UserService._check_password(new_password)
        user = UserService.get_user(db, user_id)
        user.hashed_password = hash_password(new_password)
        db.commit()
        logger.info("Password reset for user %s", user_id)

    @staticmethod
    def assign_role(db: Session, user_id: int, role_id: int, actor_id: Optional[int] = None) -> UserRole:
        """Create the assignment, or re-activate it when it already exists."""
        user = UserService.get_user(db, user_id)
        UserService._load_roles(db, [role_id])
        assignment = (
            db.query(UserRole)
            .filter(UserRole.user_id == user.id, UserRole.role_id == role_id)
            .first()
        )
        if assignment is None:
            assignment = UserRole(user_id=user.id, role_id=role_id, is_active=True, assigned_by_id=actor_id)
            db.add(assignment)
        else:
            assignment.is_active = True
        db.commit()
        db.refresh(assignment)
        return assignment

    @staticmethod
    def set_user_roles(db: Session, user_id: int, role_ids: List[int], actor_id: Optional[int] = None) -> User:
        """Replace the user's active role set; dropped roles keep an inactive assignment."""
        user = UserService.get_user(db, user_id)
        try:
            UserService._apply_roles(db, user, role_ids, actor_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(user)
        logger.info("User %s roles set to %s", user_id, sorted(set(role_ids)))
        return user

    @staticmethod
    def set_assignment_active(db: Session, user_id: int, role_id: int, active: bool) -> UserRole:
        """Activate or revoke one assignment without touching the others."""
        assignment = (
            db.query(UserRole)
            .filter(UserRole.user_id == user_id, UserRole.role_id == role_id)
            .first()
        )
        if assignment is None:
            raise NotFoundError("assignment_not_found")
        assignment.is_active = active
        db.commit()
        db.refresh(assignment)
        logger.info("Assignment user=%s role=%s active=%s", user_id, role_id, active)
        return assignment


user_service = UserService()
