# backend/routes/products.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from services import products as product_service
from services import ledger
import schemas.product as product_schemas

router = APIRouter(prefix="/products", tags=["Products"])


@router.post("", response_model=product_schemas.ProductOut, status_code=201)
def create_product(payload: product_schemas.ProductCreate, db: Session = Depends(get_db)):
    return product_service.create_product(db, payload)


@router.get("", response_model=product_schemas.ProductListPage)
def list_products(
    q: Optional[str] = Query(None, description="Search by name, code or category"),
    category: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    items, total = product_service.list_products(db, q=q, category=category, page=page, page_size=page_size)
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/{product_id}", response_model=product_schemas.ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return ledger.get_product(db, product_id)


# Cascades: sales, returns and movements of the product go first
@router.delete("/{product_id}", response_model=product_schemas.ProductDeleteResult)
def delete_product(
    product_id: int,
    actor: str = Query("system", min_length=1),
    db: Session = Depends(get_db),
):
    return product_service.delete_product(db, product_id, actor=actor)
