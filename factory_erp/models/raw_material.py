"""Raw material and stock movement models."""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship
from factory_erp.db.base import Base, utcnow


class RawMaterial(Base):
    """Stocked input material, valued at weighted-average unit cost."""
    __tablename__ = "raw_materials"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    unit = Column(String(30), nullable=False, default="kg")
    quantity = Column(Float, default=0.0, nullable=False)
    unit_cost = Column(Float, default=0.0, nullable=False)
    minimum_stock = Column(Float, default=0.0, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.minimum_stock


class StockMovement(Base):
    """Append-only record of a stock change."""
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    raw_material_id = Column(Integer, ForeignKey("raw_materials.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # IN / OUT
    quantity = Column(Float, nullable=False)
    reason = Column(String(50), nullable=False)  # e.g. PURCHASE_ORDER
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    raw_material = relationship("RawMaterial")
    user = relationship("User")
