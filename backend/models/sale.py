# backend/models/sale.py
import enum

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from database import Base


class PaymentStatus(str, enum.Enum):
    PAID = "paid"
    PARTIAL = "partial"
    NOT_PAID = "not_paid"


# What produced a sale line: a checkout, or a correction booked against one
class SaleEntryType(str, enum.Enum):
    SALE = "sale"
    RETURN = "return"
    RETURN_REVERSAL = "return_reversal"


# One product line of a checkout. Lines recorded together share transaction_id.
# Rows are never updated; corrections are new lines with their own entry_type.
class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(String(36), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    entry_type = Column(String(20), nullable=False, default=SaleEntryType.SALE.value, index=True)

    quantity_sold = Column(Integer, nullable=False)
    selling_price = Column(Float, nullable=False)
    buying_price = Column(Float, nullable=False)

    # Discount details
    discount_percentage = Column(Float, nullable=False, default=0.0)
    discount_amount = Column(Float, nullable=False, default=0.0)
    original_price = Column(Float, nullable=False)
    final_price = Column(Float, nullable=False)

    total_sale = Column(Float, nullable=False)
    profit = Column(Float, nullable=False)

    payment_method = Column(String, nullable=False)
    sold_by = Column(String, nullable=False)

    # Credit tracking
    customer_name = Column(String, nullable=True, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PAID.value)
    amount_paid = Column(Float, nullable=False, default=0.0)

    sale_date = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product")

    @property
    def is_compensating(self) -> bool:
        return (self.entry_type or SaleEntryType.SALE.value) != SaleEntryType.SALE.value
