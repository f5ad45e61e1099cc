"""Role, Permission and RolePermission models for RBAC."""

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from factory_erp.db.base import Base, utcnow


class Permission(Base):
    """A (module, action) capability from the static catalog."""
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    module = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)  # create, read, update, delete, export
    name = Column(String(100), nullable=False)  # "module.action"
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("module", "action", name="uq_permission_module_action"),)


class Role(Base):
    """Named, reusable bundle of permissions."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    permissions = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    assignments = relationship(
        "UserRole",
        back_populates="role",
        cascade="all, delete-orphan",
    )

    @property
    def permission_pairs(self):
        return {(rp.permission.module, rp.permission.action) for rp in self.permissions}


class RolePermission(Base):
    """Join between a role and a permission; each pair appears once."""
    __tablename__ = "role_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)

    role = relationship("Role", back_populates="permissions")
    permission = relationship("Permission", lazy="joined")

    __table_args__ = (UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),)
