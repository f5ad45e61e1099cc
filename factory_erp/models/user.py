"""User model."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from factory_erp.db.base import Base, utcnow


class User(Base):
    """ERP account. Access is granted through role assignments only."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    legacy_role = Column(String(50), default="USER", nullable=False)  # coarse label, never used for access
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    role_assignments = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def active_roles(self):
        """Roles reachable through active assignments to active roles."""
        return [
            a.role for a in self.role_assignments
            if a.is_active and a.role is not None and a.role.is_active
        ]
