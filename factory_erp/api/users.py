"""Users API router: administration and role assignments."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from factory_erp.api.deps import actor_id, get_language
from factory_erp.core.messages import translate
from factory_erp.core.security import RequirePermission
from factory_erp.db.session import get_db
from factory_erp.schemas.schemas import (
    PasswordResetRequest, RoleAssignmentCreate, RoleAssignmentUpdate, RoleSetRequest,
    UserCreate, UserUpdate,
)
from factory_erp.services.audit_service import audit_service
from factory_erp.services.user_service import serialize_user, user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    role_id: Optional[int] = Query(None, alias="roleId"),
    active: Optional[bool] = None,
    claims: dict = Depends(RequirePermission("users", "read")),
    db: Session = Depends(get_db),
):
    result = user_service.list_users(db, page, limit, search, role_id, active)
    return {
        "users": [serialize_user(u) for u in result["users"]],
        "pagination": result["pagination"],
    }


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    claims: dict = Depends(RequirePermission("users", "read")),
    db: Session = Depends(get_db),
):
    return serialize_user(user_service.get_user(db, user_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    request: Request,
    claims: dict = Depends(RequirePermission("users", "create")),
    db: Session = Depends(get_db),
):
    user = user_service.create_user(
        db,
        name=body.name,
        email=body.email,
        password=body.password,
        phone=body.phone,
        active=body.active,
        role_ids=body.role_ids,
        actor_id=actor_id(claims),
    )
    data = serialize_user(user)
    audit_service.log_from_request(
        db, request, claims,
        action="user.created",
        resource_type="user",
        resource_id=user.id,
        new_value={"email": user.email, "roles": [r["name"] for r in data["roles"]]},
    )
    return data


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    body: UserUpdate,
    request: Request,
    claims: dict = Depends(RequirePermission("users", "update")),
    db: Session = Depends(get_db),
):
    before = serialize_user(user_service.get_user(db, user_id))
    user = user_service.update_user(
        db,
        user_id,
        name=body.name,
        email=body.email,
        phone=body.phone,
        active=body.active,
        password=body.password,
        role_ids=body.role_ids,
        actor_id=actor_id(claims),
    )
    after = serialize_user(user)
    audit_service.log_from_request(
        db, request, claims,
        action="user.updated",
        resource_type="user",
        resource_id=user.id,
        old_value={"email": before["email"], "active": before["active"], "roles": before["roles"]},
        new_value={"email": after["email"], "active": after["active"], "roles": after["roles"]},
    )
    return after


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    request: Request,
    claims: dict = Depends(RequirePermission("users", "delete")),
    db: Session = Depends(get_db),
    language: str = Depends(get_language),
):
    """Deactivate the account; users are never hard-deleted."""
    user_service.deactivate_user(db, user_id, actor_id(claims))
    audit_service.log_from_request(
        db, request, claims,
        action="user.deactivated",
        resource_type="user",
        resource_id=user_id,
    )
    return {"message": translate("user_deactivated", language)}


@router.post("/{user_id}/roles", status_code=status.HTTP_201_CREATED)
async def assign_role(
    user_id: int,
    body: RoleAssignmentCreate,
    request: Request,
    claims: dict = Depends(RequirePermission("users", "update")),
    db: Session = Depends(get_db),
):
    assignment = user_service.assign_role(db, user_id, body.role_id, actor_id(claims))
    audit_service.log_from_request(
        db, request, claims,
        action="user.role_assigned",
        resource_type="user",
        resource_id=user_id,
        new_value={"roleId": body.role_id},
    )
    return {
        "userId": assignment.user_id,
        "roleId": assignment.role_id,
        "active": assignment.is_active,
        "assignedAt": assignment.assigned_at,
    }


@router.put("/{user_id}/roles")
async def set_user_roles(
    user_id: int,
    body: RoleSetRequest,
    request: Request,
    claims: dict = Depends(RequirePermission("users", "update")),
    db: Session = Depends(get_db),
):
    """Replace the full role set of a user."""
    user = user_service.set_user_roles(db, user_id, body.role_ids, actor_id(claims))
    data = serialize_user(user)
    audit_service.log_from_request(
        db, request, claims,
        action="user.roles_set",
        resource_type="user",
        resource_id=user_id,
        new_value={"roleIds": sorted(set(body.role_ids))},
    )
    return data


@router.patch("/{user_id}/roles/{role_id}")
async def set_assignment_active(
    user_id: int,
    role_id: int,
    body: RoleAssignmentUpdate,
    request: Request,
    claims: dict = Depends(RequirePermission("users", "update")),
    db: Session = Depends(get_db),
):
    """Activate or revoke a single role assignment."""
    assignment = user_service.set_assignment_active(db, user_id, role_id, body.active)
    audit_service.log_from_request(
        db, request, claims,
        action="user.role_activated" if body.active else "user.role_revoked",
        resource_type="user",
        resource_id=user_id,
        new_value={"roleId": role_id, "active": body.active},
    )
    return {
        "userId": assignment.user_id,
        "roleId": assignment.role_id,
        "active": assignment.is_active,
    }


@router.post("/{user_id}/reset-password")
async def reset_password(
    user_id: int,
    body: PasswordResetRequest,
    request: Request,
    claims: dict = Depends(RequirePermission("users", "update")),
    db: Session = Depends(get_db),
    language: str = Depends(get_language),
):
    user_service.reset_password(db, user_id, body.new_password)
    audit_service.log_from_request(
        db, request, claims,
        action="user.password_reset",
        resource_type="user",
        resource_id=user_id,
    )
    return {"message": translate("password_reset", language)}
