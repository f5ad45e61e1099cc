"""Suppliers API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from factory_erp.api.deps import get_cache, get_language
from factory_erp.core.messages import translate
from factory_erp.core.security import RequirePermission
from factory_erp.db.session import get_db
from factory_erp.schemas.schemas import SupplierCreate, SupplierUpdate
from factory_erp.services.audit_service import audit_service
from factory_erp.services.cache_service import CacheService
from factory_erp.services.purchase_order_service import (
    CACHE_PREFIX, purchase_order_service, serialize_order,
)
from factory_erp.services.supplier_service import serialize_supplier, supplier_service

router = APIRouter(prefix="/suppliers", tags=["suppliers"])


@router.get("")
async def list_suppliers(
    search: Optional[str] = None,
    active: Optional[bool] = None,
    claims: dict = Depends(RequirePermission("suppliers", "read")),
    db: Session = Depends(get_db),
):
    return {"suppliers": supplier_service.list_suppliers(db, search, active)}


@router.get("/{supplier_id}")
async def get_supplier(
    supplier_id: int,
    claims: dict = Depends(RequirePermission("suppliers", "read")),
    db: Session = Depends(get_db),
):
    return serialize_supplier(supplier_service.get_supplier(db, supplier_id))


@router.get("/{supplier_id}/purchase-orders")
async def list_supplier_orders(
    supplier_id: int,
    claims: dict = Depends(RequirePermission("suppliers", "read")),
    db: Session = Depends(get_db),
):
    orders = purchase_order_service.list_supplier_orders(db, supplier_id)
    return {"orders": [serialize_order(o) for o in orders]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_supplier(
    body: SupplierCreate,
    request: Request,
    claims: dict = Depends(RequirePermission("suppliers", "create")),
    db: Session = Depends(get_db),
):
    supplier = supplier_service.create_supplier(db, **body.model_dump())
    audit_service.log_from_request(
        db, request, claims,
        action="supplier.created",
        resource_type="supplier",
        resource_id=supplier.id,
        new_value={"name": supplier.name},
    )
    return serialize_supplier(supplier)


@router.put("/{supplier_id}")
async def update_supplier(
    supplier_id: int,
    body: SupplierUpdate,
    request: Request,
    claims: dict = Depends(RequirePermission("suppliers", "update")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    changes = body.model_dump(exclude_unset=True)
    supplier = supplier_service.update_supplier(db, supplier_id, **changes)
    # Order list pages embed the supplier name and status
    cache.invalidate_pattern(f"{CACHE_PREFIX}:*")
    audit_service.log_from_request(
        db, request, claims,
        action="supplier.updated",
        resource_type="supplier",
        resource_id=supplier.id,
        new_value=changes,
    )
    return serialize_supplier(supplier)


@router.delete("/{supplier_id}")
async def delete_supplier(
    supplier_id: int,
    request: Request,
    claims: dict = Depends(RequirePermission("suppliers", "delete")),
    db: Session = Depends(get_db),
    language: str = Depends(get_language),
):
    supplier_service.delete_supplier(db, supplier_id)
    audit_service.log_from_request(
        db, request, claims,
        action="supplier.deleted",
        resource_type="supplier",
        resource_id=supplier_id,
    )
    return {"message": translate("supplier_deleted", language)}
