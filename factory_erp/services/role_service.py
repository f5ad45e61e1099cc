"""Role service: role CRUD and atomic permission replacement."""

import logging
from typing import Iterable, List, Optional, Tuple, Dict, Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from factory_erp.core.exceptions import ConflictError, NotFoundError, ValidationError
from factory_erp.models.role import Role, Permission, RolePermission
from factory_erp.models.user_role import UserRole
from factory_erp.permissions import (
    is_known_permission, pairs_to_matrix, permission_label, permission_name,
)

logger = logging.getLogger("factory_erp")

PermissionPair = Tuple[str, str]


def serialize_role(role: Role) -> Dict[str, Any]:
    """Role in the client-facing per-module matrix form."""
    return {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "active": role.is_active,
        "permissions": pairs_to_matrix(role.permission_pairs),
        "createdAt": role.created_at,
        "updatedAt": role.updated_at,
    }


class RoleService:
    """Persisted roles and their permission links."""

    @staticmethod
    def _clean_name(name: Optional[str]) -> str:
        cleaned = (name or "").strip()
        if len(cleaned) < 2:
            raise ValidationError("role_name_invalid")
        return cleaned

    @staticmethod
    def _ensure_name_free(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
        query = db.query(Role).filter(Role.name == name)
        if exclude_id is not None:
            query = query.filter(Role.id != exclude_id)
        if query.first() is not None:
            raise ConflictError("role_name_exists")

    @staticmethod
    def _get_or_create_permission(db: Session, module: str, action: str) -> Permission:
        if not is_known_permission(module, action):
            raise ValidationError("unknown_permission", module=module, action=action)
        permission = (
            db.query(Permission)
            .filter(Permission.module == module, Permission.action == action)
            .first()
        )
        if permission is None:
            permission = Permission(
                module=module,
                action=action,
                name=permission_name(module, action),
                description=permission_label(module, action),
            )
            db.add(permission)
            db.flush()
        return permission

    @staticmethod
    def get_role(db: Session, role_id: int) -> Role:
        role = db.query(Role).filter(Role.id == role_id).first()
        if role is None:
            raise NotFoundError("role_not_found")
        return role

    @staticmethod
    def list_roles(
        db: Session,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        active: Optional[bool] = None,
    ) -> Dict[str, Any]:
        query = db.query(Role)
        if search:
            like = f"%{search}%"
            query = query.filter(or_(Role.name.ilike(like), Role.description.ilike(like)))
        if active is not None:
            query = query.filter(Role.is_active.is_(active))

        total = query.count()
        roles = (
            query.order_by(Role.created_at.desc(), Role.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "roles": roles,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": (total + limit - 1) // limit,
            },
        }

    @staticmethod
    def _replace_permissions(db: Session, role: Role, pairs: Iterable[PermissionPair]) -> int:
        """Delete-all-then-insert-all; caller owns the transaction."""
        unique_pairs = list(dict.fromkeys((m, a) for m, a in pairs))
        permissions = [RoleService._get_or_create_permission(db, m, a) for m, a in unique_pairs]

        # Orphaned links are deleted on the first flush, before any insert
        role.permissions.clear()
        db.flush()
        for permission in permissions:
            role.permissions.append(RolePermission(permission=permission))
        db.flush()
        return len(permissions)

    @staticmethod
    def create_role(
        db: Session,
        name: str,
        description: Optional[str] = None,
        active: bool = True,
        permissions: Optional[List[PermissionPair]] = None,
        created_by_id: Optional[int] = None,
    ) -> Role:
        """Create a role and its permission links in one transaction."""
        clean_name = RoleService._clean_name(name)
        RoleService._ensure_name_free(db, clean_name)
        try:
            role = Role(
                name=clean_name,
                description=(description or "").strip() or None,
                is_active=active,
                created_by_id=created_by_id,
            )
            db.add(role)
            db.flush()
            RoleService._replace_permissions(db, role, permissions or [])
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(role)
        logger.info("Role %s created with %d permissions", role.id, len(role.permissions))
        return role

    @staticmethod
    def set_role_permissions(db: Session, role_id: int, pairs: List[PermissionPair]) -> Role:
        """Replace the role's entire permission set atomically."""
        role = RoleService.get_role(db, role_id)
        try:
            count = RoleService._replace_permissions(db, role, pairs)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(role)
        logger.info("Role %s permissions replaced (%d links)", role_id, count)
        return role

    @staticmethod
    def update_role(
        db: Session,
        role_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        active: Optional[bool] = None,
        permissions: Optional[List[PermissionPair]] = None,
    ) -> Role:
        """Update role fields and, when given, its full permission set together."""
        role = RoleService.get_role(db, role_id)
        try:
            if name is not None:
                clean_name = RoleService._clean_name(name)
                if clean_name != role.name:
                    RoleService._ensure_name_free(db, clean_name, exclude_id=role.id)
                role.name = clean_name
            if description is not None:
                role.description = description.strip() or None
            if active is not None:
                role.is_active = active
            if permissions is not None:
                RoleService._replace_permissions(db, role, permissions)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(role)
        return role

    @staticmethod
    def toggle_role(db: Session, role_id: int) -> Role:
        role = RoleService.get_role(db, role_id)
        role.is_active = not role.is_active
        db.commit()
        db.refresh(role)
        logger.info("Role %s active=%s", role.id, role.is_active)
        return role

    @staticmethod
    def delete_role(db: Session, role_id: int) -> None:
        """Delete a role unless an active assignment still references it.

        Permission links and inactive assignments go with the role.
        """
        role = RoleService.get_role(db, role_id)
        in_use = (
            db.query(UserRole)
            .filter(UserRole.role_id == role.id, UserRole.is_active.is_(True))
            .count()
        )
        if in_use:
            raise ConflictError("role_in_use")
        try:
            db.delete(role)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Role %s deleted", role_id)


role_service = RoleService()
