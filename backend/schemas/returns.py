# backend/schemas/returns.py
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import List, Optional


# Input schema for a customer return
class ReturnCreate(BaseModel):
    product_id: int
    quantity: int
    condition: Optional[str] = "Sealed"
    reason: Optional[str] = None
    payment_method: Optional[str] = "Cash"
    processed_by: Optional[str] = None
    sale_id: Optional[int] = None
    notes: Optional[str] = None


# Output schema for a stored return
class ReturnOut(BaseModel):
    id: int
    sale_id: Optional[int] = None
    product_id: int
    product_name: Optional[str] = None
    quantity_returned: int
    unit_price: float
    total_refund: float
    profit_refund: float = 0.0
    reason: Optional[str] = None
    condition: Optional[str] = None
    payment_method: Optional[str] = None
    processed_by: str
    notes: Optional[str] = None
    status: str
    return_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Receipt handed to the customer after a return
class ReturnReceipt(BaseModel):
    return_id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    total_refund: float
    reason: Optional[str] = None
    condition: Optional[str] = None
    payment_method: Optional[str] = None
    processed_by: str
    return_date: Optional[datetime] = None
    quantity_in_stock: int
    compensating_sale_id: int


class ReturnsPage(BaseModel):
    items: List[ReturnOut]
    total: int
    page: int
    page_size: int


# Result of reversing (deleting) a return
class ReturnReversalResult(BaseModel):
    return_id: int
    product_id: int
    quantity_removed: int
    quantity_in_stock: int
    restored_revenue: float
    restoring_sale_id: int
    movement_id: int
