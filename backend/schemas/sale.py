# backend/schemas/sale.py
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import List, Optional, Literal

DiscountType = Literal["none", "percentage", "amount"]


# Input schema for a single cart line
class SaleLineCreate(BaseModel):
    product_id: int
    quantity: int
    discount_type: DiscountType = "none"
    discount_value: float = 0.0


# Input schema for recording a checkout
class SaleCreate(BaseModel):
    items: List[SaleLineCreate]
    payment_method: str = "Cash"
    sold_by: Optional[str] = None
    customer_name: Optional[str] = None
    # Omit for a fully paid sale; a lower amount leaves a balance on the customer
    amount_paid: Optional[float] = None


# Per-line breakdown printed on the receipt
class SaleReceiptLine(BaseModel):
    sale_id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    original_total: float
    discount_percentage: float
    discount_amount: float
    final_total: float
    final_unit_price: float
    profit: float
    amount_paid: float
    payment_status: str


# Value object returned after a sale is recorded
class SaleReceipt(BaseModel):
    transaction_id: str
    sale_date: Optional[datetime] = None
    payment_method: str
    sold_by: str
    customer_name: Optional[str] = None
    lines: List[SaleReceiptLine]
    subtotal: float
    total_discount: float
    grand_total: float
    total_profit: float
    amount_paid: float
    balance_due: float


# Output schema for a stored sale line
class SaleOut(BaseModel):
    id: int
    transaction_id: str
    product_id: int
    product_name: Optional[str] = None
    entry_type: str = "sale"
    quantity_sold: int
    selling_price: float
    buying_price: float
    discount_percentage: float
    discount_amount: float
    original_price: float
    final_price: float
    total_sale: float
    profit: float
    payment_method: str
    sold_by: str
    customer_name: Optional[str] = None
    payment_status: str
    amount_paid: float
    sale_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SalesPage(BaseModel):
    items: List[SaleOut]
    total: int
    page: int
    page_size: int


# Sale lines grouped under one transaction id
class TransactionOut(BaseModel):
    transaction_id: str
    items: List[SaleOut]
    total_amount: float
    total_profit: float
    total_discount: float
    item_count: int
    payment_method: str
    sold_by: str
    customer_name: Optional[str] = None
    created_at: Optional[datetime] = None
    is_compensating: bool = False


class TransactionsPage(BaseModel):
    items: List[TransactionOut]
    total: int
    page: int
    page_size: int


# Result of undoing a sale line
class SaleDeletionResult(BaseModel):
    sale_id: int
    product_id: int
    quantity_restored: int
    quantity_in_stock: int
    movement_id: int


class TransactionDeletionResult(BaseModel):
    transaction_id: str
    lines: List[SaleDeletionResult]
