"""Models package: import all models so the metadata knows every table."""

from factory_erp.models.user import User
from factory_erp.models.role import Role, Permission, RolePermission
from factory_erp.models.user_role import UserRole
from factory_erp.models.supplier import Supplier
from factory_erp.models.raw_material import RawMaterial, StockMovement
from factory_erp.models.purchase_order import (
    PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus, OrderSequence,
)
from factory_erp.models.audit_log import AuditLog

__all__ = [
    "User", "Role", "Permission", "RolePermission", "UserRole",
    "Supplier", "RawMaterial", "StockMovement",
    "PurchaseOrder", "PurchaseOrderItem", "PurchaseOrderStatus", "OrderSequence",
    "AuditLog",
]
