"""Pydantic schemas for API request/response serialization.

Request bodies accept the camelCase names the web client sends as well as
the snake_case field names.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime


class RequestModel(BaseModel):
    class Config:
        populate_by_name = True


# ---- Auth ----
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)

class ProfileUpdateRequest(RequestModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    current_password: Optional[str] = Field(None, alias="currentPassword")
    new_password: Optional[str] = Field(None, alias="newPassword")

class ProfileOut(BaseModel):
    id: int
    email: str
    name: str
    phone: Optional[str] = None
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Roles ----
class PermissionMatrixEntry(BaseModel):
    module: str
    actions: Dict[str, bool] = {}

class RoleCreate(BaseModel):
    name: str
    description: Optional[str] = None
    active: bool = True
    permissions: List[PermissionMatrixEntry] = []

class RoleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    active: Optional[bool] = None
    permissions: Optional[List[PermissionMatrixEntry]] = None


# ---- Users ----
class UserCreate(RequestModel):
    name: str
    email: str
    password: str
    phone: Optional[str] = None
    active: bool = True
    role_ids: List[int] = Field(default_factory=list, alias="roleIds")

class UserUpdate(RequestModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    active: Optional[bool] = None
    password: Optional[str] = None
    role_ids: Optional[List[int]] = Field(None, alias="roleIds")

class RoleAssignmentCreate(RequestModel):
    role_id: int = Field(..., alias="roleId")

class RoleSetRequest(RequestModel):
    role_ids: List[int] = Field(default_factory=list, alias="roleIds")

class RoleAssignmentUpdate(BaseModel):
    active: bool

class PasswordResetRequest(RequestModel):
    new_password: str = Field(..., alias="newPassword")


# ---- Suppliers ----
class SupplierCreate(RequestModel):
    name: str
    contact_person: Optional[str] = Field(None, alias="contactPerson")
    phone: Optional[str] = None
    address: Optional[str] = None
    credit_limit: Optional[float] = Field(None, ge=0, alias="creditLimit")

class SupplierUpdate(RequestModel):
    name: Optional[str] = None
    contact_person: Optional[str] = Field(None, alias="contactPerson")
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: Optional[bool] = Field(None, alias="active")
    credit_limit: Optional[float] = Field(None, ge=0, alias="creditLimit")


# ---- Raw materials ----
class RawMaterialCreate(RequestModel):
    name: str
    unit: str = "kg"
    quantity: float = Field(0.0, ge=0)
    unit_cost: float = Field(0.0, ge=0, alias="unitCost")
    minimum_stock: float = Field(0.0, ge=0, alias="minimumStock")
    description: Optional[str] = None

class RawMaterialUpdate(RequestModel):
    name: Optional[str] = None
    unit: Optional[str] = None
    minimum_stock: Optional[float] = Field(None, ge=0, alias="minimumStock")
    description: Optional[str] = None
    is_active: Optional[bool] = Field(None, alias="active")

class StockAdjustmentRequest(BaseModel):
    type: Optional[str] = None
    quantity: Optional[float] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


# ---- Purchase orders ----
class OrderItemIn(RequestModel):
    raw_material_id: int = Field(..., alias="rawMaterialId")
    quantity: float
    unit_price: float = Field(..., alias="unitPrice")

class PurchaseOrderCreate(RequestModel):
    supplier_id: int = Field(..., alias="supplierId")
    items: List[OrderItemIn] = []
    expected_delivery_date: Optional[datetime] = Field(None, alias="expectedDeliveryDate")
    notes: Optional[str] = None

class PurchaseOrderUpdate(RequestModel):
    supplier_id: Optional[int] = Field(None, alias="supplierId")
    items: Optional[List[OrderItemIn]] = None
    expected_delivery_date: Optional[datetime] = Field(None, alias="expectedDeliveryDate")
    notes: Optional[str] = None

class OrderNoteRequest(BaseModel):
    notes: Optional[str] = None

class OrderReasonRequest(BaseModel):
    reason: Optional[str] = None

class OrderCancelRequest(BaseModel):
    reason: Optional[str] = None
    notes: Optional[str] = None

class ReceivedItemIn(RequestModel):
    item_id: int = Field(..., alias="itemId")
    received_quantity: float = Field(..., alias="receivedQuantity")

class OrderExecuteRequest(RequestModel):
    actual_delivery_date: Optional[datetime] = Field(None, alias="actualDeliveryDate")
    received_items: List[ReceivedItemIn] = Field(default_factory=list, alias="receivedItems")
    notes: Optional[str] = None
