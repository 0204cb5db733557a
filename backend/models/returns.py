# backend/models/returns.py
import enum

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from database import Base


class ReturnStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


# A customer return of one product. Deleting it is the only correction allowed,
# and the deletion is always paired with compensating entries.
class Return(Base):
    __tablename__ = "returns"

    id = Column(Integer, primary_key=True, index=True)
    # Loose link to the sale line the goods came from (the line may be deleted later)
    sale_id = Column(Integer, nullable=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    quantity_returned = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    # Cost basis used for the compensating profit entry
    buying_price = Column(Float, nullable=False, default=0.0)
    total_refund = Column(Float, nullable=False)
    # Profit taken back off the ledger by this return
    profit_refund = Column(Float, nullable=False, default=0.0)

    reason = Column(String, nullable=True)
    condition = Column(String, nullable=True)
    payment_method = Column(String, nullable=True)
    processed_by = Column(String, nullable=False)
    notes = Column(String, nullable=True)
    status = Column(String(20), nullable=False, default=ReturnStatus.PENDING.value)

    return_date = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    product = relationship("Product")
