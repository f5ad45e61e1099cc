"""Raw materials API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from factory_erp.api.deps import actor_id, get_language
from factory_erp.core.messages import translate
from factory_erp.core.security import RequirePermission
from factory_erp.db.session import get_db
from factory_erp.schemas.schemas import RawMaterialCreate, RawMaterialUpdate, StockAdjustmentRequest
from factory_erp.services.audit_service import audit_service
from factory_erp.services.raw_material_service import (
    raw_material_service, serialize_movement, serialize_raw_material,
)

router = APIRouter(prefix="/raw-materials", tags=["raw-materials"])


@router.get("")
async def list_raw_materials(
    search: Optional[str] = None,
    low_stock: bool = False,
    claims: dict = Depends(RequirePermission("inventory", "read")),
    db: Session = Depends(get_db),
):
    materials = raw_material_service.list_materials(db, search, low_stock)
    return {"rawMaterials": [serialize_raw_material(m) for m in materials]}


@router.get("/{material_id}")
async def get_raw_material(
    material_id: int,
    claims: dict = Depends(RequirePermission("inventory", "read")),
    db: Session = Depends(get_db),
):
    return serialize_raw_material(raw_material_service.get_material(db, material_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_raw_material(
    body: RawMaterialCreate,
    request: Request,
    claims: dict = Depends(RequirePermission("inventory", "create")),
    db: Session = Depends(get_db),
):
    material = raw_material_service.create_material(db, **body.model_dump())
    audit_service.log_from_request(
        db, request, claims,
        action="raw_material.created",
        resource_type="raw_material",
        resource_id=material.id,
        new_value={"name": material.name, "unit": material.unit},
    )
    return serialize_raw_material(material)


@router.put("/{material_id}")
async def update_raw_material(
    material_id: int,
    body: RawMaterialUpdate,
    request: Request,
    claims: dict = Depends(RequirePermission("inventory", "update")),
    db: Session = Depends(get_db),
):
    changes = body.model_dump(exclude_unset=True)
    material = raw_material_service.update_material(db, material_id, **changes)
    audit_service.log_from_request(
        db, request, claims,
        action="raw_material.updated",
        resource_type="raw_material",
        resource_id=material.id,
        new_value=changes,
    )
    return serialize_raw_material(material)


@router.delete("/{material_id}")
async def delete_raw_material(
    material_id: int,
    request: Request,
    claims: dict = Depends(RequirePermission("inventory", "delete")),
    db: Session = Depends(get_db),
    language: str = Depends(get_language),
):
    raw_material_service.delete_material(db, material_id)
    audit_service.log_from_request(
        db, request, claims,
        action="raw_material.deleted",
        resource_type="raw_material",
        resource_id=material_id,
    )
    return {"message": translate("raw_material_deleted", language)}


@router.post("/{material_id}/stock")
async def adjust_stock(
    material_id: int,
    body: StockAdjustmentRequest,
    request: Request,
    claims: dict = Depends(RequirePermission("inventory", "update")),
    db: Session = Depends(get_db),
    language: str = Depends(get_language),
):
    """Manual IN/OUT adjustment with a recorded stock movement."""
    movement = raw_material_service.adjust_stock(
        db,
        material_id,
        movement_type=body.type,
        quantity=body.quantity,
        reason=body.reason,
        notes=body.notes,
        user_id=actor_id(claims),
    )
    material = raw_material_service.get_material(db, material_id)
    audit_service.log_from_request(
        db, request, claims,
        action="raw_material.stock_adjusted",
        resource_type="raw_material",
        resource_id=material_id,
        new_value={"type": movement.type, "quantity": movement.quantity, "reason": movement.reason},
    )
    message_key = "stock_added" if movement.type == "IN" else "stock_removed"
    return {
        "material": serialize_raw_material(material),
        "stockMovement": serialize_movement(movement),
        "message": translate(
            message_key, language, quantity=movement.quantity, unit=material.unit, name=material.name,
        ),
    }


@router.get("/{material_id}/stock")
async def list_stock_movements(
    material_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[str] = None,
    claims: dict = Depends(RequirePermission("inventory", "read")),
    db: Session = Depends(get_db),
):
    result = raw_material_service.list_movements(db, material_id, page, limit, type)
    material = result["material"]
    return {
        "material": {"id": material.id, "name": material.name},
        "stockMovements": [serialize_movement(m) for m in result["movements"]],
        "pagination": result["pagination"],
        "filters": {"type": type},
    }
