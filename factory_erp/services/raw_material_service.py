"""Raw material service: catalog CRUD and manual stock adjustments."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from factory_erp.core.exceptions import ConflictError, NotFoundError, ValidationError
from factory_erp.models.purchase_order import PurchaseOrderItem
from factory_erp.models.raw_material import RawMaterial, StockMovement

logger = logging.getLogger("factory_erp")

EDITABLE_FIELDS = ("name", "unit", "minimum_stock", "description", "is_active")
MOVEMENT_TYPES = ("IN", "OUT")


def serialize_raw_material(material: RawMaterial) -> Dict[str, Any]:
    return {
        "id": material.id,
        "name": material.name,
        "unit": material.unit,
        "quantity": material.quantity,
        "unitCost": material.unit_cost,
        "minimumStock": material.minimum_stock,
        "description": material.description,
        "active": material.is_active,
        "isLowStock": material.is_low_stock,
        "createdAt": material.created_at,
        "updatedAt": material.updated_at,
    }


def serialize_movement(movement: StockMovement) -> Dict[str, Any]:
    return {
        "id": movement.id,
        "type": movement.type,
        "quantity": movement.quantity,
        "reason": movement.reason,
        "reference": movement.reference,
        "notes": movement.notes,
        "createdAt": movement.created_at,
        "user": {"name": movement.user.name} if movement.user else None,
    }


class RawMaterialService:

    @staticmethod
    def get_material(db: Session, material_id: int) -> RawMaterial:
        material = db.query(RawMaterial).filter(RawMaterial.id == material_id).first()
        if material is None:
            raise NotFoundError("raw_material_not_found")
        return material

    @staticmethod
    def list_materials(db: Session, search: Optional[str] = None, low_stock: bool = False):
        query = db.query(RawMaterial)
        if search:
            query = query.filter(RawMaterial.name.ilike(f"%{search}%"))
        if low_stock:
            query = query.filter(RawMaterial.quantity <= RawMaterial.minimum_stock)
        return query.order_by(RawMaterial.name).all()

    @staticmethod
    def create_material(db: Session, **fields) -> RawMaterial:
        name = (fields.get("name") or "").strip()
        if not name:
            raise ValidationError("validation_failed")
        material = RawMaterial(
            name=name,
            unit=fields.get("unit") or "kg",
            quantity=fields.get("quantity") or 0.0,
            unit_cost=fields.get("unit_cost") or 0.0,
            minimum_stock=fields.get("minimum_stock") or 0.0,
            description=fields.get("description"),
        )
        db.add(material)
        db.commit()
        db.refresh(material)
        return material

    @staticmethod
    def update_material(db: Session, material_id: int, **fields) -> RawMaterial:
        material = RawMaterialService.get_material(db, material_id)
        for key in EDITABLE_FIELDS:
            value = fields.get(key)
            if value is not None:
                setattr(material, key, value)
        db.commit()
        db.refresh(material)
        return material

    @staticmethod
    def delete_material(db: Session, material_id: int) -> None:
        material = RawMaterialService.get_material(db, material_id)
        if db.query(PurchaseOrderItem).filter(PurchaseOrderItem.raw_material_id == material.id).count():
            raise ConflictError("raw_material_in_use")
        db.delete(material)
        db.commit()

    @staticmethod
    def adjust_stock(
        db: Session,
        material_id: int,
        movement_type: Optional[str],
        quantity: Optional[float],
        reason: Optional[str],
        notes: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> StockMovement:
        """Add (IN) or remove (OUT) stock and record the movement.

        The material row is locked for the duration so two concurrent OUT
        adjustments cannot both pass the availability check.

        Raises:
            ValidationError: Missing fields, unknown type, non-positive
                quantity, or an OUT larger than the stock on hand.
            NotFoundError: Unknown raw material.
        """
        reason = (reason or "").strip()
        if not movement_type or quantity is None or not reason:
            raise ValidationError("stock_fields_required")
        if movement_type not in MOVEMENT_TYPES:
            raise ValidationError("stock_type_invalid")
        if quantity <= 0:
            raise ValidationError("stock_quantity_invalid")

        try:
            material = (
                db.query(RawMaterial)
                .filter(RawMaterial.id == material_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if material is None:
                raise NotFoundError("raw_material_not_found")
            if movement_type == "OUT" and material.quantity < quantity:
                raise ValidationError("stock_insufficient", available=material.quantity)

            if movement_type == "IN":
                material.quantity += quantity
            else:
                material.quantity -= quantity
            movement = StockMovement(
                raw_material_id=material.id,
                type=movement_type,
                quantity=quantity,
                reason=reason,
                notes=(notes or "").strip() or None,
                user_id=user_id,
            )
            db.add(movement)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(movement)
        logger.info("Stock %s %s on raw material %s by %s", movement_type, quantity, material_id, user_id)
        return movement

    @staticmethod
    def list_movements(
        db: Session,
        material_id: int,
        page: int = 1,
        limit: int = 20,
        movement_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Newest-first movement history of one material."""
        material = RawMaterialService.get_material(db, material_id)
        query = db.query(StockMovement).filter(StockMovement.raw_material_id == material.id)
        if movement_type in MOVEMENT_TYPES:
            query = query.filter(StockMovement.type == movement_type)
        total = query.count()
        movements = (
            query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "material": material,
            "movements": movements,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": (total + limit - 1) // limit,
            },
        }


raw_material_service = RawMaterialService()
