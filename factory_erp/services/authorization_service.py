"""Authorization resolver: flattens a user's active role grants.

Permissions are always re-derived from persisted state; nothing here trusts
claims carried in the session token.
"""

import logging
from collections import defaultdict
from typing import Dict, Set, List

from sqlalchemy.orm import Session

from factory_erp.core.exceptions import AuthorizationError
from factory_erp.models.role import Role, Permission, RolePermission
from factory_erp.models.user import User
from factory_erp.models.user_role import UserRole
from factory_erp.permissions import to_persisted_action

logger = logging.getLogger("factory_erp")

PermissionMap = Dict[str, Set[str]]


class AuthorizationService:
    """Resolves and checks (module, action) grants."""

    @staticmethod
    def resolve_permissions(db: Session, user_id: int) -> PermissionMap:
        """Union of permissions over active assignments to active roles."""
        rows = (
            db.query(Permission.module, Permission.action)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(
                UserRole.user_id == user_id,
                UserRole.is_active.is_(True),
                Role.is_active.is_(True),
            )
            .distinct()
            .all()
        )
        resolved: PermissionMap = defaultdict(set)
        for module, action in rows:
            resolved[module].add(action)
        return dict(resolved)

    @staticmethod
    def check_permission(permissions: PermissionMap, module: str, action: str) -> bool:
        """Exact-match lookup; client action names are translated first. Deny by default."""
        persisted = to_persisted_action(action)
        if persisted is None:
            return False
        return persisted in permissions.get(module, ())

    @staticmethod
    def require(db: Session, user_id: int, module: str, action: str) -> PermissionMap:
        """Resolve and check in one step, raising ``AuthorizationError`` on denial."""
        permissions = AuthorizationService.resolve_permissions(db, user_id)
        if not AuthorizationService.check_permission(permissions, module, action):
            logger.info("Permission denied: user=%s needs %s.%s", user_id, module, action)
            raise AuthorizationError("permission_denied")
        return permissions

    @staticmethod
    def active_role_names(db: Session, user_id: int) -> List[str]:
        rows = (
            db.query(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(
                UserRole.user_id == user_id,
                UserRole.is_active.is_(True),
                Role.is_active.is_(True),
            )
            .order_by(UserRole.assigned_at, UserRole.id)
            .all()
        )
        return [name for (name,) in rows]

    @staticmethod
    def user_permissions_payload(db: Session, user: User) -> dict:
        """Shape returned by ``GET /api/user/permissions``."""
        rows = (
            db.query(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(
                UserRole.user_id == user.id,
                UserRole.is_active.is_(True),
                Role.is_active.is_(True),
            )
            .distinct()
            .order_by(Permission.module, Permission.action)
            .all()
        )
        permissions = [
            {
                "id": p.id,
                "name": p.name,
                "module": p.module,
                "action": p.action,
                "description": p.description,
            }
            for p in rows
        ]
        grouped: Dict[str, list] = {}
        for perm in permissions:
            grouped.setdefault(perm["module"], []).append(perm)

        roles = [
            {
                "id": role.id,
                "name": role.name,
                "description": role.description,
                "active": role.is_active,
            }
            for role in user.active_roles
        ]
        return {
            "permissions": permissions,
            "groupedPermissions": grouped,
            "roles": roles,
        }


authorization_service = AuthorizationService()
