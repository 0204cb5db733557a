# backend/schemas/product.py
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Shared base attributes for product entities
class ProductBase(ORMBase):
    code: str
    name: str
    category: Optional[str] = None
    buying_price: float = Field(default=0.0, ge=0)
    selling_price: float = Field(ge=0)
    reorder_level: int = Field(default=0, ge=0)


# Schema for creating a new product. The opening quantity becomes the first stock movement.
class ProductCreate(ProductBase):
    opening_quantity: int = Field(default=0, ge=0)
    created_by: str = "system"


# Full product representation including ID and live stock
class ProductOut(ProductBase):
    id: int
    quantity_in_stock: int
    is_low_stock: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Paginated response for product listings
class ProductListPage(ORMBase):
    items: List[ProductOut]
    total: int
    page: int
    page_size: int


# Summary of what a cascading product delete removed
class ProductDeleteResult(BaseModel):
    product_id: int
    sales_removed: int
    returns_removed: int
    movements_removed: int
