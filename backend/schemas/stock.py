# backend/schemas/stock.py
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import List, Optional, Literal

# Movement reasons accepted by the audit trail filter
StockMovementFilter = Literal["all", "receipt", "sale", "return", "adjustment"]


# Schema for returning stock movement details
class StockMovementResponse(BaseModel):
    id: int
    created_at: datetime
    product_id: int
    product_name: str
    product_code: str
    quantity_change: int
    reason: str
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    actor: str
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class StockMovementList(BaseModel):
    items: List[StockMovementResponse]
    total: int


# Schema for a single line of a stock receipt
class ReceiptLine(BaseModel):
    product_id: int
    quantity: int


# Schema for registering a stock receipt (one delivery, many lines)
class StockReceiptCreate(BaseModel):
    items: List[ReceiptLine]
    received_by: Optional[str] = None
    notes: Optional[str] = None


class ReceiptLineResult(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    quantity_in_stock: int
    movement_id: int


# Result of an applied receipt batch
class StockReceiptResult(BaseModel):
    batch_id: str
    received_by: str
    lines: List[ReceiptLineResult]
    total_units: int


# Schema for a manual, signed stock correction
class StockAdjustmentCreate(BaseModel):
    product_id: int
    quantity_change: int
    actor: str
    notes: str = Field(min_length=1)


# Quantity on hand vs. the sum of recorded movements
class ReconciliationItem(BaseModel):
    product_id: int
    code: str
    name: str
    quantity_in_stock: int
    movement_total: int
    drift: int


class ReconciliationResponse(BaseModel):
    items: List[ReconciliationItem]
    products_checked: int
    products_with_drift: int
