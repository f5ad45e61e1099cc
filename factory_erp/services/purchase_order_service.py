"""Purchase order service: lifecycle, numbering, stock receipt and stats.

Status machine::

    DRAFT -> PENDING -> APPROVED -> EXECUTED
      ^         |          |
      +---------+----------+   (reject, with reason)
    DRAFT/PENDING/APPROVED -> CANCELLED -> DRAFT or APPROVED (restore)

Every mutation commits in one transaction and then invalidates the cached
list pages under ``purchase-orders:*``.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from factory_erp.core.config import settings
from factory_erp.db.base import utcnow
from factory_erp.core.exceptions import (
    AuthorizationError, InternalError, NotFoundError, ValidationError,
)
from factory_erp.models.purchase_order import (
    PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus,
)
from factory_erp.models.raw_material import RawMaterial, StockMovement
from factory_erp.models.supplier import Supplier
from factory_erp.services.cache_service import CacheService
from factory_erp.services.order_numbers import allocate_order_number, preview_order_number
from factory_erp.services.supplier_service import supplier_service

logger = logging.getLogger("factory_erp")

CACHE_PREFIX = "purchase-orders"
CLOSED_STATUSES = (PurchaseOrderStatus.EXECUTED, PurchaseOrderStatus.CANCELLED)

APPROVAL_NOTE = "ملاحظات الاعتماد:"
REJECTION_NOTE = "سبب الرفض:"
CANCELLATION_NOTE = "سبب الإلغاء:"
RESTORE_NOTE = "تم استعادة الأمر"
DUPLICATE_NOTE = "نسخة من أمر الشراء"
CANCEL_NOTES_LABEL = "ملاحظات الإلغاء:"

# MySQL deadlock and lock-wait timeout
RETRYABLE_LOCK_ERRORS = (1213, 1205)


def is_retryable_conflict(exc: Exception) -> bool:
    """Unique-key collisions and lock conflicts are worth retrying."""
    if isinstance(exc, IntegrityError):
        return True
    if isinstance(exc, OperationalError):
        args = getattr(exc.orig, "args", ())
        return bool(args) and args[0] in RETRYABLE_LOCK_ERRORS
    return False


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def is_overdue(order: PurchaseOrder, now: Optional[datetime] = None) -> bool:
    if order.expected_delivery_date is None or order.status in CLOSED_STATUSES:
        return False
    return order.expected_delivery_date < (now or utcnow())


def serialize_order(order: PurchaseOrder, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": order.status.value,
        "supplier": {
            "id": order.supplier.id,
            "name": order.supplier.name,
            "active": order.supplier.is_active,
        } if order.supplier is not None else None,
        "supplierId": order.supplier_id,
        "totalAmount": order.total_amount,
        "expectedDeliveryDate": order.expected_delivery_date,
        "actualDeliveryDate": order.actual_delivery_date,
        "notes": order.notes,
        "createdById": order.created_by_id,
        "approvedById": order.approved_by_id,
        "approvedAt": order.approved_at,
        "executedAt": order.executed_at,
        "cancelledById": order.cancelled_by_id,
        "cancelledAt": order.cancelled_at,
        "cancelReason": order.cancel_reason,
        "createdAt": order.created_at,
        "updatedAt": order.updated_at,
        "isOverdue": is_overdue(order, now),
        "daysSinceCreated": (now - order.created_at).days if order.created_at else 0,
        "items": [
            {
                "id": item.id,
                "rawMaterialId": item.raw_material_id,
                "rawMaterialName": item.raw_material.name if item.raw_material else None,
                "unit": item.raw_material.unit if item.raw_material else None,
                "quantity": item.quantity,
                "unitPrice": item.unit_price,
                "totalPrice": item.total_price,
                "receivedQuantity": item.received_quantity,
            }
            for item in order.items
        ],
    }


class PurchaseOrderService:
    """Purchase-order workflows."""

    # -- helpers ---------------------------------------------------------

    @staticmethod
    def _invalidate(cache: Optional[CacheService]) -> None:
        if cache is not None:
            cache.invalidate_pattern(f"{CACHE_PREFIX}:*")

    @staticmethod
    def _require_status(order: PurchaseOrder, *allowed: PurchaseOrderStatus) -> None:
        if order.status not in allowed:
            raise ValidationError("order_invalid_state")

    @staticmethod
    def _require_reason(reason: Optional[str]) -> str:
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ValidationError("order_reason_required")
        return cleaned

    @staticmethod
    def _append_note(order: PurchaseOrder, label: str, text: Optional[str] = None) -> None:
        line = f"{label} {text}" if text else label
        order.notes = f"{order.notes}\n{line}" if order.notes else line

    @staticmethod
    def _active_supplier(db: Session, supplier_id: int) -> Supplier:
        supplier = supplier_service.get_supplier(db, supplier_id)
        if not supplier.is_active:
            raise ValidationError("supplier_inactive")
        return supplier

    @staticmethod
    def _build_items(db: Session, items: Iterable[Dict[str, Any]]) -> List[PurchaseOrderItem]:
        """Validate item dicts and turn them into unsaved order lines."""
        items = list(items or [])
        if not items:
            raise ValidationError("order_items_required")
        for item in items:
            if (item.get("quantity") or 0) <= 0 or (item.get("unit_price") or 0) <= 0:
                raise ValidationError("order_item_invalid")

        material_ids = {item["raw_material_id"] for item in items}
        found = db.query(RawMaterial.id).filter(RawMaterial.id.in_(material_ids)).count()
        if found != len(material_ids):
            raise NotFoundError("raw_material_not_found")

        return [
            PurchaseOrderItem(
                raw_material_id=item["raw_material_id"],
                quantity=item["quantity"],
                unit_price=item["unit_price"],
                total_price=item["quantity"] * item["unit_price"],
            )
            for item in items
        ]

    # -- reads -----------------------------------------------------------

    @staticmethod
    def get_order(db: Session, order_id: int) -> PurchaseOrder:
        order = db.query(PurchaseOrder).filter(PurchaseOrder.id == order_id).first()
        if order is None:
            raise NotFoundError("order_not_found")
        return order

    @staticmethod
    def list_orders(
        db: Session,
        cache: Optional[CacheService] = None,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[PurchaseOrderStatus] = None,
        supplier_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Paginated list; pages are cached until the next mutation or TTL."""
        status_value = status.value if status is not None else ""
        cache_key = f"{CACHE_PREFIX}:{page}:{limit}:{search or ''}:{status_value}:{supplier_id or ''}"
        if cache is not None:
            cached = cache.get_json(cache_key)
            if cached is not None:
                return cached

        query = db.query(PurchaseOrder).join(Supplier, Supplier.id == PurchaseOrder.supplier_id)
        if search:
            like = f"%{search}%"
            query = query.filter(or_(PurchaseOrder.order_number.ilike(like), Supplier.name.ilike(like)))
        if status is not None:
            query = query.filter(PurchaseOrder.status == status)
        if supplier_id is not None:
            query = query.filter(PurchaseOrder.supplier_id == supplier_id)

        total = query.count()
        orders = (
            query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        now = utcnow()
        payload = jsonable_encoder({
            "orders": [serialize_order(o, now) for o in orders],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": (total + limit - 1) // limit,
            },
        })
        if cache is not None:
            cache.set_json(cache_key, payload, settings.CACHE_TTL_SECONDS)
        return payload

    @staticmethod
    def list_supplier_orders(db: Session, supplier_id: int) -> List[PurchaseOrder]:
        supplier = supplier_service.get_supplier(db, supplier_id)
        return (
            db.query(PurchaseOrder)
            .filter(PurchaseOrder.supplier_id == supplier.id)
            .order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
            .all()
        )

    @staticmethod
    def stats(db: Session) -> Dict[str, Any]:
        rows = (
            db.query(PurchaseOrder.status, func.count(PurchaseOrder.id), func.sum(PurchaseOrder.total_amount))
            .group_by(PurchaseOrder.status)
            .all()
        )
        by_status = {s.value: 0 for s in PurchaseOrderStatus}
        total_amount = 0.0
        executed_amount = 0.0
        for status, count, amount in rows:
            by_status[status.value] = count
            total_amount += amount or 0.0
            if status == PurchaseOrderStatus.EXECUTED:
                executed_amount = amount or 0.0

        overdue = (
            db.query(PurchaseOrder)
            .filter(
                PurchaseOrder.expected_delivery_date.isnot(None),
                PurchaseOrder.expected_delivery_date < utcnow(),
                PurchaseOrder.status.notin_(CLOSED_STATUSES),
            )
            .count()
        )
        return {
            "totalOrders": sum(by_status.values()),
            "byStatus": by_status,
            "totalAmount": total_amount,
            "executedAmount": executed_amount,
            "overdueCount": overdue,
        }

    @staticmethod
    def generate_number(db: Session) -> str:
        """Preview of the next number; nothing is reserved."""
        return preview_order_number(db)

    # -- mutations -------------------------------------------------------

    @staticmethod
    def create_order(
        db: Session,
        supplier_id: int,
        items: List[Dict[str, Any]],
        created_by_id: Optional[int],
        expected_delivery_date: Optional[datetime] = None,
        notes: Optional[str] = None,
        cache: Optional[CacheService] = None,
    ) -> PurchaseOrder:
        """Create a DRAFT order with a freshly allocated number.

        The number is taken from the monthly counter inside the same
        transaction as the order rows. A unique-key collision or a lock
        deadlock rolls everything back and the whole creation is retried.

        Raises:
            ValidationError: Inactive supplier, no items, or bad quantities.
            NotFoundError: Unknown supplier or raw material.
            InternalError: No number could be allocated after all retries.
        """
        PurchaseOrderService._active_supplier(db, supplier_id)
        PurchaseOrderService._build_items(db, items)

        for attempt in range(1, settings.ORDER_NUMBER_RETRIES + 1):
            try:
                order = PurchaseOrder(
                    order_number=allocate_order_number(db),
                    supplier_id=supplier_id,
                    status=PurchaseOrderStatus.DRAFT,
                    expected_delivery_date=to_naive_utc(expected_delivery_date),
                    notes=(notes or "").strip() or None,
                    created_by_id=created_by_id,
                )
                order.items = PurchaseOrderService._build_items(db, items)
                order.total_amount = sum(i.total_price for i in order.items)
                db.add(order)
                db.commit()
            except Exception as exc:
                db.rollback()
                if not is_retryable_conflict(exc):
                    raise
                logger.warning(
                    "Order number conflict (%s), attempt %d/%d",
                    type(exc).__name__, attempt, settings.ORDER_NUMBER_RETRIES,
                )
                continue
            db.refresh(order)
            logger.info("Purchase order %s created by %s", order.order_number, created_by_id)
            PurchaseOrderService._invalidate(cache)
            return order

        raise InternalError("order_number_unavailable")

    @staticmethod
    def update_order(
        db: Session,
        order_id: int,
        supplier_id: Optional[int] = None,
        items: Optional[List[Dict[str, Any]]] = None,
        expected_delivery_date: Optional[datetime] = None,
        notes: Optional[str] = None,
        cache: Optional[CacheService] = None,
    ) -> PurchaseOrder:
        """Edit a DRAFT or PENDING order; ``items`` replaces every line."""
        order = PurchaseOrderService.get_order(db, order_id)
        PurchaseOrderService._require_status(order, PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.PENDING)
        try:
            if supplier_id is not None and supplier_id != order.supplier_id:
                PurchaseOrderService._active_supplier(db, supplier_id)
                order.supplier_id = supplier_id
            if expected_delivery_date is not None:
                order.expected_delivery_date = to_naive_utc(expected_delivery_date)
            if notes is not None:
                order.notes = notes.strip() or None
            if items is not None:
                new_items = PurchaseOrderService._build_items(db, items)
                order.items.clear()
                db.flush()
                order.items.extend(new_items)
                order.total_amount = sum(i.total_price for i in new_items)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(order)
        PurchaseOrderService._invalidate(cache)
        return order

    @staticmethod
    def submit_order(db: Session, order_id: int, cache: Optional[CacheService] = None) -> PurchaseOrder:
        order = PurchaseOrderService.get_order(db, order_id)
        PurchaseOrderService._require_status(order, PurchaseOrderStatus.DRAFT)
        order.status = PurchaseOrderStatus.PENDING
        db.commit()
        db.refresh(order)
        logger.info("Purchase order %s submitted", order.order_number)
        PurchaseOrderService._invalidate(cache)
        return order

    @staticmethod
    def approve_order(
        db: Session,
        order_id: int,
        actor_id: int,
        notes: Optional[str] = None,
        cache: Optional[CacheService] = None,
    ) -> PurchaseOrder:
        order = PurchaseOrderService.get_order(db, order_id)
        PurchaseOrderService._require_status(order, PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.PENDING)
        if order.created_by_id is not None and order.created_by_id == actor_id:
            raise AuthorizationError("order_self_approval")
        if not order.supplier.is_active:
            raise ValidationError("supplier_inactive")

        order.status = PurchaseOrderStatus.APPROVED
        order.approved_by_id = actor_id
        order.approved_at = utcnow()
        if notes and notes.strip():
            PurchaseOrderService._append_note(order, APPROVAL_NOTE, notes.strip())
        db.commit()
        db.refresh(order)
        logger.info("Purchase order %s approved by %s", order.order_number, actor_id)
        PurchaseOrderService._invalidate(cache)
        return order

    @staticmethod
    def reject_order(
        db: Session,
        order_id: int,
        reason: Optional[str],
        cache: Optional[CacheService] = None,
    ) -> PurchaseOrder:
        """Send a PENDING or APPROVED order back to DRAFT."""
        order = PurchaseOrderService.get_order(db, order_id)
        PurchaseOrderService._require_status(order, PurchaseOrderStatus.PENDING, PurchaseOrderStatus.APPROVED)
        reason = PurchaseOrderService._require_reason(reason)

        order.status = PurchaseOrderStatus.DRAFT
        order.approved_by_id = None
        order.approved_at = None
        PurchaseOrderService._append_note(order, REJECTION_NOTE, reason)
        db.commit()
        db.refresh(order)
        logger.info("Purchase order %s rejected", order.order_number)
        PurchaseOrderService._invalidate(cache)
        return order

    @staticmethod
    def execute_order(
        db: Session,
        order_id: int,
        actor_id: int,
        actual_delivery_date: Optional[datetime],
        received_items: Optional[List[Dict[str, Any]]] = None,
        notes: Optional[str] = None,
        cache: Optional[CacheService] = None,
    ) -> PurchaseOrder:
        """Receive an APPROVED order into stock.

        Items without an explicit received quantity are taken as fully
        received. Each receipt moves the raw material to the weighted
        average of its current cost and the order price.
        """
        order = PurchaseOrderService.get_order(db, order_id)
        PurchaseOrderService._require_status(order, PurchaseOrderStatus.APPROVED)
        if actual_delivery_date is None:
            raise ValidationError("order_delivery_date_required")

        received: Dict[int, float] = {}
        item_ids = {item.id for item in order.items}
        for entry in received_items or []:
            if entry["item_id"] not in item_ids:
                raise ValidationError("order_item_not_in_order")
            if entry["received_quantity"] < 0:
                raise ValidationError("order_received_negative")
            received[entry["item_id"]] = entry["received_quantity"]

        try:
            for item in order.items:
                quantity = received.get(item.id, item.quantity)
                item.received_quantity = quantity
                if quantity <= 0:
                    continue
                material = item.raw_material
                new_quantity = material.quantity + quantity
                material.unit_cost = (
                    material.quantity * material.unit_cost + quantity * item.unit_price
                ) / new_quantity
                material.quantity = new_quantity
                db.add(StockMovement(
                    raw_material_id=material.id,
                    type="IN",
                    quantity=quantity,
                    reason="PURCHASE_ORDER",
                    reference=order.order_number,
                    user_id=actor_id,
                ))

            order.status = PurchaseOrderStatus.EXECUTED
            order.actual_delivery_date = to_naive_utc(actual_delivery_date)
            order.executed_at = utcnow()
            if notes and notes.strip():
                PurchaseOrderService._append_note(order, notes.strip())
            db.flush()
            supplier_service.recompute_total_purchases(db, order.supplier_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(order)
        logger.info("Purchase order %s executed by %s", order.order_number, actor_id)
        PurchaseOrderService._invalidate(cache)
        return order

    @staticmethod
    def cancel_order(
        db: Session,
        order_id: int,
        actor_id: int,
        reason: Optional[str],
        notes: Optional[str] = None,
        cache: Optional[CacheService] = None,
    ) -> PurchaseOrder:
        order = PurchaseOrderService.get_order(db, order_id)
        PurchaseOrderService._require_status(
            order,
            PurchaseOrderStatus.DRAFT,
            PurchaseOrderStatus.PENDING,
            PurchaseOrderStatus.APPROVED,
        )
        reason = PurchaseOrderService._require_reason(reason)

        order.status = PurchaseOrderStatus.CANCELLED
        order.cancelled_by_id = actor_id
        order.cancelled_at = utcnow()
        order.cancel_reason = reason
        PurchaseOrderService._append_note(order, CANCELLATION_NOTE, reason)
        if notes and notes.strip():
            PurchaseOrderService._append_note(order, CANCEL_NOTES_LABEL, notes.strip())
        db.commit()
        db.refresh(order)
        logger.info("Purchase order %s cancelled by %s", order.order_number, actor_id)
        PurchaseOrderService._invalidate(cache)
        return order

    @staticmethod
    def restore_order(
        db: Session,
        order_id: int,
        notes: Optional[str] = None,
        cache: Optional[CacheService] = None,
    ) -> PurchaseOrder:
        """Bring a CANCELLED order back to where approval left it."""
        order = PurchaseOrderService.get_order(db, order_id)
        PurchaseOrderService._require_status(order, PurchaseOrderStatus.CANCELLED)

        order.status = PurchaseOrderStatus.APPROVED if order.approved_at else PurchaseOrderStatus.DRAFT
        order.cancelled_by_id = None
        order.cancelled_at = None
        order.cancel_reason = None
        restore_notes = (notes or "").strip()
        if restore_notes:
            PurchaseOrderService._append_note(order, f"{RESTORE_NOTE}:", restore_notes)
        else:
            PurchaseOrderService._append_note(order, RESTORE_NOTE)
        db.commit()
        db.refresh(order)
        logger.info("Purchase order %s restored to %s", order.order_number, order.status.value)
        PurchaseOrderService._invalidate(cache)
        return order

    @staticmethod
    def duplicate_order(
        db: Session,
        order_id: int,
        created_by_id: Optional[int],
        cache: Optional[CacheService] = None,
    ) -> PurchaseOrder:
        source = PurchaseOrderService.get_order(db, order_id)
        items = [
            {
                "raw_material_id": item.raw_material_id,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
            }
            for item in source.items
        ]
        return PurchaseOrderService.create_order(
            db,
            supplier_id=source.supplier_id,
            items=items,
            created_by_id=created_by_id,
            expected_delivery_date=source.expected_delivery_date,
            notes=f"{DUPLICATE_NOTE} {source.order_number}",
            cache=cache,
        )

    @staticmethod
    def delete_order(db: Session, order_id: int, cache: Optional[CacheService] = None) -> None:
        order = PurchaseOrderService.get_order(db, order_id)
        PurchaseOrderService._require_status(order, PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.CANCELLED)
        db.delete(order)
        db.commit()
        logger.info("Purchase order %s deleted", order_id)
        PurchaseOrderService._invalidate(cache)

    @staticmethod
    def clear_orders(db: Session, cache: Optional[CacheService] = None) -> int:
        """Delete every order and line in one transaction."""
        try:
            db.query(PurchaseOrderItem).delete(synchronize_session=False)
            count = db.query(PurchaseOrder).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.expire_all()
        logger.warning("All purchase orders cleared (%d)", count)
        PurchaseOrderService._invalidate(cache)
        return count


purchase_order_service = PurchaseOrderService()
