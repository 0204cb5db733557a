# backend/models/stock.py
import enum

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from database import Base


# Why a product's quantity changed
class MovementReason(str, enum.Enum):
    RECEIPT = "receipt"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    # Signed delta applied to products.quantity_in_stock
    quantity_change = Column(Integer, nullable=False)

    reason = Column(String(20), nullable=False, index=True)

    # Link back to the originating event (stock_receipt, sale, return, ...)
    reference_type = Column(String(30), nullable=True)
    reference_id = Column(String(64), nullable=True, index=True)

    # Staff member who caused the movement
    actor = Column(String, nullable=False)
    notes = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    product = relationship("Product")
