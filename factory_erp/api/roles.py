"""Roles API router: role CRUD with the per-module permission matrix."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from factory_erp.api.deps import actor_id, get_language
from factory_erp.core.messages import translate
from factory_erp.core.security import RequirePermission
from factory_erp.db.seeds import predefined_roles
from factory_erp.db.session import get_db
from factory_erp.permissions import matrix_to_pairs
from factory_erp.schemas.schemas import RoleCreate, RoleUpdate
from factory_erp.services.audit_service import audit_service
from factory_erp.services.role_service import role_service, serialize_role

router = APIRouter(prefix="/roles", tags=["roles"])


def _pairs(entries):
    return matrix_to_pairs(entry.model_dump() for entry in entries)


@router.get("")
async def list_roles(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    active: Optional[bool] = None,
    claims: dict = Depends(RequirePermission("roles", "read")),
    db: Session = Depends(get_db),
):
    result = role_service.list_roles(db, page, limit, search, active)
    return {
        "roles": [serialize_role(r) for r in result["roles"]],
        "pagination": result["pagination"],
    }


@router.get("/predefined")
async def list_predefined_roles(claims: dict = Depends(RequirePermission("roles", "read"))):
    """Templates the role editor can start from."""
    return {"roles": predefined_roles()}


@router.get("/{role_id}")
async def get_role(
    role_id: int,
    claims: dict = Depends(RequirePermission("roles", "read")),
    db: Session = Depends(get_db),
):
    return serialize_role(role_service.get_role(db, role_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_role(
    body: RoleCreate,
    request: Request,
    claims: dict = Depends(RequirePermission("roles", "create")),
    db: Session = Depends(get_db),
):
    role = role_service.create_role(
        db,
        name=body.name,
        description=body.description,
        active=body.active,
        permissions=_pairs(body.permissions),
        created_by_id=actor_id(claims),
    )
    audit_service.log_from_request(
        db, request, claims,
        action="role.created",
        resource_type="role",
        resource_id=role.id,
        new_value={"name": role.name, "permissions": sorted(f"{m}.{a}" for m, a in role.permission_pairs)},
    )
    return serialize_role(role)


@router.put("/{role_id}")
async def update_role(
    role_id: int,
    body: RoleUpdate,
    request: Request,
    claims: dict = Depends(RequirePermission("roles", "update")),
    db: Session = Depends(get_db),
    language: str = Depends(get_language),
):
    """Update fields and, when given, replace the whole permission set."""
    before = role_service.get_role(db, role_id)
    old_value = {
        "name": before.name,
        "active": before.is_active,
        "permissions": sorted(f"{m}.{a}" for m, a in before.permission_pairs),
    }
    role = role_service.update_role(
        db,
        role_id,
        name=body.name,
        description=body.description,
        active=body.active,
        permissions=_pairs(body.permissions) if body.permissions is not None else None,
    )
    audit_service.log_from_request(
        db, request, claims,
        action="role.updated",
        resource_type="role",
        resource_id=role.id,
        old_value=old_value,
        new_value={
            "name": role.name,
            "active": role.is_active,
            "permissions": sorted(f"{m}.{a}" for m, a in role.permission_pairs),
        },
    )
    return {"message": translate("role_updated", language), "role": serialize_role(role)}


@router.patch("/{role_id}/toggle")
async def toggle_role(
    role_id: int,
    request: Request,
    claims: dict = Depends(RequirePermission("roles", "update")),
    db: Session = Depends(get_db),
):
    role = role_service.toggle_role(db, role_id)
    audit_service.log_from_request(
        db, request, claims,
        action="role.activated" if role.is_active else "role.deactivated",
        resource_type="role",
        resource_id=role.id,
    )
    return serialize_role(role)


@router.delete("/{role_id}")
async def delete_role(
    role_id: int,
    request: Request,
    claims: dict = Depends(RequirePermission("roles", "delete")),
    db: Session = Depends(get_db),
    language: str = Depends(get_language),
):
    role = role_service.get_role(db, role_id)
    name = role.name
    role_service.delete_role(db, role_id)
    audit_service.log_from_request(
        db, request, claims,
        action="role.deleted",
        resource_type="role",
        resource_id=role_id,
        old_value={"name": name},
    )
    return {"message": translate("role_deleted", language)}
