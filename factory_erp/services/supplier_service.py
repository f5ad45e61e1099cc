"""Supplier service."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from factory_erp.core.exceptions import ConflictError, NotFoundError, ValidationError
from factory_erp.models.purchase_order import PurchaseOrder, PurchaseOrderStatus
from factory_erp.models.supplier import Supplier

logger = logging.getLogger("factory_erp")

EDITABLE_FIELDS = ("name", "contact_person", "phone", "address", "is_active", "credit_limit")


def serialize_supplier(supplier: Supplier, orders_count: Optional[int] = None) -> Dict[str, Any]:
    data = {
        "id": supplier.id,
        "name": supplier.name,
        "contactPerson": supplier.contact_person,
        "phone": supplier.phone,
        "address": supplier.address,
        "active": supplier.is_active,
        "accountBalance": supplier.account_balance,
        "creditLimit": supplier.credit_limit,
        "totalPurchases": supplier.total_purchases,
        "createdAt": supplier.created_at,
        "updatedAt": supplier.updated_at,
    }
    if orders_count is not None:
        data["purchaseOrdersCount"] = orders_count
    return data


class SupplierService:
    """Supplier CRUD."""

    @staticmethod
    def get_supplier(db: Session, supplier_id: int) -> Supplier:
        supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
        if supplier is None:
            raise NotFoundError("supplier_not_found")
        return supplier

    @staticmethod
    def list_suppliers(db: Session, search: Optional[str] = None, active: Optional[bool] = None):
        """Suppliers with their purchase-order counts, newest first."""
        counts = (
            db.query(PurchaseOrder.supplier_id, func.count(PurchaseOrder.id).label("orders"))
            .group_by(PurchaseOrder.supplier_id)
            .subquery()
        )
        query = db.query(Supplier, func.coalesce(counts.c.orders, 0)).outerjoin(
            counts, counts.c.supplier_id == Supplier.id
        )
        if search:
            query = query.filter(Supplier.name.ilike(f"%{search}%"))
        if active is not None:
            query = query.filter(Supplier.is_active.is_(active))
        rows = query.order_by(Supplier.created_at.desc(), Supplier.id.desc()).all()
        return [serialize_supplier(supplier, count) for supplier, count in rows]

    @staticmethod
    def create_supplier(db: Session, **fields) -> Supplier:
        name = (fields.get("name") or "").strip()
        if not name:
            raise ValidationError("supplier_name_required")
        supplier = Supplier(
            name=name,
            contact_person=fields.get("contact_person"),
            phone=fields.get("phone"),
            address=fields.get("address"),
            credit_limit=fields.get("credit_limit") or 0.0,
            is_active=True,
        )
        db.add(supplier)
        db.commit()
        db.refresh(supplier)
        logger.info("Supplier %s created", supplier.id)
        return supplier

    @staticmethod
    def update_supplier(db: Session, supplier_id: int, **fields) -> Supplier:
        supplier = SupplierService.get_supplier(db, supplier_id)
        if "name" in fields and fields["name"] is not None and not fields["name"].strip():
            raise ValidationError("supplier_name_required")
        for key in EDITABLE_FIELDS:
            value = fields.get(key)
            if value is not None:
                setattr(supplier, key, value.strip() if isinstance(value, str) else value)
        db.commit()
        db.refresh(supplier)
        return supplier

    @staticmethod
    def delete_supplier(db: Session, supplier_id: int) -> None:
        supplier = SupplierService.get_supplier(db, supplier_id)
        if db.query(PurchaseOrder).filter(PurchaseOrder.supplier_id == supplier.id).count():
            raise ConflictError("supplier_has_orders")
        db.delete(supplier)
        db.commit()
        logger.info("Supplier %s deleted", supplier_id)

    @staticmethod
    def recompute_total_purchases(db: Session, supplier_id: int) -> float:
        """Sum of executed orders; caller owns the transaction."""
        total = (
            db.query(func.coalesce(func.sum(PurchaseOrder.total_amount), 0.0))
            .filter(
                PurchaseOrder.supplier_id == supplier_id,
                PurchaseOrder.status == PurchaseOrderStatus.EXECUTED,
            )
            .scalar()
        )
        supplier = SupplierService.get_supplier(db, supplier_id)
        supplier.total_purchases = float(total or 0.0)
        return supplier.total_purchases


supplier_service = SupplierService()
