# schemas/reports.py
from datetime import datetime, date
from typing import List, Optional, Literal
from pydantic import BaseModel

TotalsWindow = Literal["all", "today", "month", "year"]


# Exact totals for one time window (server-side aggregate)
class SalesTotals(BaseModel):
    window: str
    total_sales: float
    total_profit: float
    sale_lines: int
    units_sold: int


# Schemas for top selling products
class TopProduct(BaseModel):
    product_id: int
    product_name: str
    product_code: str
    total_sales: float
    total_profit: float
    total_quantity_sold: int


class RecentSale(BaseModel):
    id: int
    transaction_id: str
    product_id: int
    product_name: str
    quantity_sold: int
    total_sale: float
    profit: float
    sold_by: str
    created_at: Optional[datetime] = None


class Dashboard(BaseModel):
    all_time: SalesTotals
    today: SalesTotals
    this_year: SalesTotals
    total_products: int
    low_stock_count: int
    top_products: List[TopProduct]
    # Display-only window of the latest lines; never a source for totals
    recent_sales: List[RecentSale]


# Derived per-customer rollup of unsettled sale lines
class CustomerBalance(BaseModel):
    customer_name: str
    total_sales: float
    total_paid: float
    outstanding_balance: float
    transaction_count: int
    last_transaction_date: Optional[datetime] = None
    payment_status: str


class CustomerBalancesResponse(BaseModel):
    items: List[CustomerBalance]
    total_outstanding: float
    customer_count: int


# Schemas for low stock alerting
class LowStockItem(BaseModel):
    product_id: int
    name: str
    code: Optional[str] = None
    category: Optional[str] = None
    quantity_in_stock: int
    reorder_level: int


class LowStockPage(BaseModel):
    items: List[LowStockItem]
    total: int
    page: int
    page_size: int


class DailySales(BaseModel):
    date: date
    total_sales: float
    total_profit: float


class DailySalesResponse(BaseModel):
    data: List[DailySales]
