"""Idempotent seed routine: permission catalog, default roles, first admin.

Existing rows are never modified or removed, so running the seed again
after roles were edited through the API changes nothing.
"""

import logging
from typing import Dict, List, Tuple

from sqlalchemy.orm import Session

from factory_erp.core.config import settings
from factory_erp.core.security import hash_password
from factory_erp.models.role import Permission, Role, RolePermission
from factory_erp.models.user import User
from factory_erp.models.user_role import UserRole
from factory_erp.permissions import (
    PERSISTED_ACTIONS, all_permission_pairs, pairs_to_matrix,
    permission_label, permission_name,
)

logger = logging.getLogger("factory_erp")

ADMIN_ROLE = "مدير النظام"


def _module(name: str) -> List[Tuple[str, str]]:
    return [(name, action) for action in PERSISTED_ACTIONS]


DEFAULT_ROLES = [
    {
        "name": ADMIN_ROLE,
        "description": "صلاحيات كاملة لإدارة النظام",
        "permissions": all_permission_pairs(),
    },
    {
        "name": "مدير",
        "description": "صلاحيات إدارية محدودة",
        "permissions": _module("users") + _module("dashboard") + [("roles", "read")],
    },
    {
        "name": "مشرف عام",
        "description": "صلاحيات إشرافية محدودة - عرض فقط في قسم المستخدمين",
        "permissions": _module("dashboard") + [("users", "read")],
    },
    {
        "name": "مستخدم",
        "description": "صلاحيات أساسية للمستخدم",
        "permissions": [("dashboard", "read")],
    },
]


def predefined_roles() -> List[Dict]:
    """Default roles in the client matrix form, for the role editor."""
    return [
        {
            "name": role["name"],
            "description": role["description"],
            "active": True,
            "permissions": pairs_to_matrix(role["permissions"]),
        }
        for role in DEFAULT_ROLES
    ]


def seed_permissions(db: Session) -> Dict[Tuple[str, str], Permission]:
    """Insert any catalog permission that is missing."""
    existing = {(p.module, p.action): p for p in db.query(Permission).all()}
    for module, action in all_permission_pairs():
        if (module, action) not in existing:
            permission = Permission(
                module=module,
                action=action,
                name=permission_name(module, action),
                description=permission_label(module, action),
            )
            db.add(permission)
            existing[(module, action)] = permission
    db.flush()
    return existing


def seed_roles(db: Session, permissions: Dict[Tuple[str, str], Permission]) -> Dict[str, Role]:
    """Create missing default roles; a role's links are only added when it is new."""
    roles = {}
    for data in DEFAULT_ROLES:
        role = db.query(Role).filter(Role.name == data["name"]).first()
        if role is None:
            role = Role(name=data["name"], description=data["description"], is_active=True)
            for pair in data["permissions"]:
                role.permissions.append(RolePermission(permission=permissions[pair]))
            db.add(role)
            logger.info("Seeded role %s", data["name"])
        roles[data["name"]] = role
    db.flush()
    return roles


def seed_admin(db: Session, admin_role: Role) -> User:
    email = settings.SEED_ADMIN_EMAIL.strip().lower()
    admin = db.query(User).filter(User.email == email).first()
    if admin is None:
        admin = User(
            email=email,
            name=settings.SEED_ADMIN_NAME,
            hashed_password=hash_password(settings.SEED_ADMIN_PASSWORD),
            legacy_role="ADMIN",
            is_active=True,
        )
        db.add(admin)
        db.flush()
        logger.info("Seeded administrator %s", email)

    assigned = (
        db.query(UserRole)
        .filter(UserRole.user_id == admin.id, UserRole.role_id == admin_role.id)
        .first()
    )
    if assigned is None:
        db.add(UserRole(user_id=admin.id, role_id=admin_role.id, is_active=True))
    if admin_role.created_by_id is None:
        admin_role.created_by_id = admin.id
    db.flush()
    return admin


def run_seeds(db: Session) -> User:
    """Run every seed step in one transaction and return the administrator."""
    try:
        permissions = seed_permissions(db)
        roles = seed_roles(db, permissions)
        admin = seed_admin(db, roles[ADMIN_ROLE])
        db.commit()
    except Exception:
        db.rollback()
        raise
    return admin
