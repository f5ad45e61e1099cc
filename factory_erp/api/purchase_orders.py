"""Purchase orders API router: list, lifecycle transitions, stats."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from factory_erp.api.deps import actor_id, get_cache, get_language
from factory_erp.core.messages import translate
from factory_erp.core.security import RequirePermission
from factory_erp.db.session import get_db
from factory_erp.models.purchase_order import PurchaseOrder, PurchaseOrderStatus
from factory_erp.schemas.schemas import (
    OrderCancelRequest, OrderExecuteRequest, OrderNoteRequest, OrderReasonRequest,
    PurchaseOrderCreate, PurchaseOrderUpdate,
)
from factory_erp.services.audit_service import audit_service
from factory_erp.services.cache_service import CacheService
from factory_erp.services.purchase_order_service import purchase_order_service, serialize_order

router = APIRouter(prefix="/purchase-orders", tags=["purchase-orders"])


def _audit(db: Session, request: Request, claims: dict, action: str, order: PurchaseOrder, **extra):
    audit_service.log_from_request(
        db, request, claims,
        action=f"purchase_order.{action}",
        resource_type="purchase_order",
        resource_id=order.id,
        new_value={"orderNumber": order.order_number, "status": order.status.value, **extra},
    )


def _transition_response(order: PurchaseOrder, message_key: str, language: str) -> dict:
    return {
        "message": translate(message_key, language, order_number=order.order_number),
        "order": serialize_order(order),
    }


@router.get("")
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status_filter: Optional[PurchaseOrderStatus] = Query(None, alias="status"),
    supplier_id: Optional[int] = Query(None, alias="supplierId"),
    claims: dict = Depends(RequirePermission("purchases", "read")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return purchase_order_service.list_orders(
        db, cache, page=page, limit=limit, search=search,
        status=status_filter, supplier_id=supplier_id,
    )


@router.get("/stats")
async def order_stats(
    claims: dict = Depends(RequirePermission("purchases", "read")),
    db: Session = Depends(get_db),
):
    return purchase_order_service.stats(db)


@router.get("/generate-number")
async def generate_order_number(
    claims: dict = Depends(RequirePermission("purchases", "read")),
    db: Session = Depends(get_db),
    language: str = Depends(get_language),
):
    """Preview the next order number; it is only reserved on create."""
    return {
        "orderNumber": purchase_order_service.generate_number(db),
        "message": translate("order_number_generated", language),
    }


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    claims: dict = Depends(RequirePermission("purchases", "read")),
    db: Session = Depends(get_db),
):
    return serialize_order(purchase_order_service.get_order(db, order_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    body: PurchaseOrderCreate,
    request: Request,
    claims: dict = Depends(RequirePermission("purchases", "create")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    order = purchase_order_service.create_order(
        db,
        supplier_id=body.supplier_id,
        items=[item.model_dump() for item in body.items],
        created_by_id=actor_id(claims),
        expected_delivery_date=body.expected_delivery_date,
        notes=body.notes,
        cache=cache,
    )
    _audit(db, request, claims, "created", order, totalAmount=order.total_amount)
    return serialize_order(order)


@router.post("/{order_id}/duplicate", status_code=status.HTTP_201_CREATED)
async def duplicate_order(
    order_id: int,
    request: Request,
    claims: dict = Depends(RequirePermission("purchases", "create")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    order = purchase_order_service.duplicate_order(db, order_id, actor_id(claims), cache=cache)
    _audit(db, request, claims, "duplicated", order, sourceId=order_id)
    return serialize_order(order)


@router.put("/{order_id}")
async def update_order(
    order_id: int,
    body: PurchaseOrderUpdate,
    request: Request,
    claims: dict = Depends(RequirePermission("purchases", "update")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    order = purchase_order_service.update_order(
        db,
        order_id,
        supplier_id=body.supplier_id,
        items=[item.model_dump() for item in body.items] if body.items is not None else None,
        expected_delivery_date=body.expected_delivery_date,
        notes=body.notes,
        cache=cache,
    )
    _audit(db, request, claims, "updated", order, totalAmount=order.total_amount)
    return serialize_order(order)


@router.post("/{order_id}/submit")
async def submit_order(
    order_id: int,
    request: Request,
    claims: dict = Depends(RequirePermission("purchases", "update")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    order = purchase_order_service.submit_order(db, order_id, cache=cache)
    _audit(db, request, claims, "submitted", order)
    return serialize_order(order)


@router.post("/{order_id}/approve")
async def approve_order(
    order_id: int,
    request: Request,
    body: Optional[OrderNoteRequest] = None,
    claims: dict = Depends(RequirePermission("purchases", "update")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    language: str = Depends(get_language),
):
    order = purchase_order_service.approve_order(
        db, order_id, actor_id(claims), notes=body.notes if body else None, cache=cache,
    )
    _audit(db, request, claims, "approved", order)
    return _transition_response(order, "order_approved", language)


@router.post("/{order_id}/reject")
async def reject_order(
    order_id: int,
    body: OrderReasonRequest,
    request: Request,
    claims: dict = Depends(RequirePermission("purchases", "update")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    language: str = Depends(get_language),
):
    order = purchase_order_service.reject_order(db, order_id, body.reason, cache=cache)
    _audit(db, request, claims, "rejected", order, reason=body.reason)
    return _transition_response(order, "order_rejected", language)


@router.post("/{order_id}/execute")
async def execute_order(
    order_id: int,
    body: OrderExecuteRequest,
    request: Request,
    claims: dict = Depends(RequirePermission("purchases", "update")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    language: str = Depends(get_language),
):
    order = purchase_order_service.execute_order(
        db,
        order_id,
        actor_id(claims),
        actual_delivery_date=body.actual_delivery_date,
        received_items=[item.model_dump() for item in body.received_items],
        notes=body.notes,
        cache=cache,
    )
    _audit(db, request, claims, "executed", order)
    return _transition_response(order, "order_executed", language)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    body: OrderCancelRequest,
    request: Request,
    claims: dict = Depends(RequirePermission("purchases", "update")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    language: str = Depends(get_language),
):
    order = purchase_order_service.cancel_order(
        db, order_id, actor_id(claims), body.reason, notes=body.notes, cache=cache
    )
    _audit(db, request, claims, "cancelled", order, reason=body.reason)
    return _transition_response(order, "order_cancelled", language)


@router.post("/{order_id}/restore")
async def restore_order(
    order_id: int,
    request: Request,
    body: Optional[OrderNoteRequest] = None,
    claims: dict = Depends(RequirePermission("purchases", "update")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    language: str = Depends(get_language),
):
    notes = body.notes if body else None
    order = purchase_order_service.restore_order(db, order_id, notes=notes, cache=cache)
    _audit(db, request, claims, "restored", order)
    return _transition_response(order, "order_restored", language)


@router.delete("/clear")
async def clear_orders(
    request: Request,
    claims: dict = Depends(RequirePermission("purchases", "delete")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    language: str = Depends(get_language),
):
    """Delete every purchase order."""
    count = purchase_order_service.clear_orders(db, cache=cache)
    audit_service.log_from_request(
        db, request, claims,
        action="purchase_order.cleared",
        resource_type="purchase_order",
        new_value={"count": count},
    )
    return {"message": translate("orders_cleared", language, count=count), "count": count}


@router.delete("/{order_id}")
async def delete_order(
    order_id: int,
    request: Request,
    claims: dict = Depends(RequirePermission("purchases", "delete")),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    language: str = Depends(get_language),
):
    order = purchase_order_service.get_order(db, order_id)
    order_number = order.order_number
    purchase_order_service.delete_order(db, order_id, cache=cache)
    audit_service.log_from_request(
        db, request, claims,
        action="purchase_order.deleted",
        resource_type="purchase_order",
        resource_id=order_id,
        old_value={"orderNumber": order_number},
    )
    return {"message": translate("order_deleted", language)}
