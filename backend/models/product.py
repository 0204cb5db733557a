from sqlalchemy import Column, Integer, String, Float, DateTime, CheckConstraint, func
from database import Base

# Model Product
# A sellable item in the shop. quantity_in_stock only ever changes through
# stock movements (see services/ledger.py); nothing writes it directly.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    # Human-facing SKU printed on the shelf label
    code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    category = Column(String, nullable=True, index=True)

    # Prices are controlled by constraints
    buying_price = Column(Float, CheckConstraint("buying_price >= 0"), nullable=False, default=0.0)
    selling_price = Column(Float, CheckConstraint("selling_price >= 0"), nullable=False)

    # Stock data
    quantity_in_stock = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, CheckConstraint("reorder_level >= 0"), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_low_stock(self) -> bool:
        return (self.quantity_in_stock or 0) <= (self.reorder_level or 0)
