# backend/routes/sales.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from services import sales as sale_service
from services import undo
import schemas.sale as sale_schemas

router = APIRouter(prefix="/sales", tags=["Sales"])


@router.post("", response_model=sale_schemas.SaleReceipt, status_code=201)
def record_sale(payload: sale_schemas.SaleCreate, db: Session = Depends(get_db)):
    return sale_service.record_sale(
        db,
        payload.items,
        payload.payment_method,
        payload.sold_by,
        customer_name=payload.customer_name,
        amount_paid=payload.amount_paid,
    )


@router.get("", response_model=sale_schemas.SalesPage)
def list_sales(
    q: Optional[str] = Query(None),
    payment_method: Optional[str] = Query(None),
    sold_by: Optional[str] = Query(None),
    customer_name: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    items, total = sale_service.list_sales(
        db, page=page, page_size=page_size, q=q, payment_method=payment_method,
        sold_by=sold_by, customer_name=customer_name, date_from=date_from, date_to=date_to,
    )
    return {"items": items, "total": total, "page": page, "page_size": page_size}


# Sales history grouped by checkout
@router.get("/transactions", response_model=sale_schemas.TransactionsPage)
def list_transactions(
    q: Optional[str] = Query(None),
    payment_method: Optional[str] = Query(None),
    sold_by: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    include_compensating: bool = Query(True),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    items, total = sale_service.list_transactions(
        db, page=page, page_size=page_size, include_compensating=include_compensating,
        q=q, payment_method=payment_method, sold_by=sold_by, date_from=date_from, date_to=date_to,
    )
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/transactions/{transaction_id}", response_model=sale_schemas.TransactionOut)
def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    return sale_service.get_transaction(db, transaction_id)


@router.delete("/transactions/{transaction_id}", response_model=sale_schemas.TransactionDeletionResult)
def delete_transaction(
    transaction_id: str,
    actor: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return undo.delete_transaction(db, transaction_id, actor=actor)


@router.delete("/{sale_id}", response_model=sale_schemas.SaleDeletionResult)
def delete_sale(
    sale_id: int,
    actor: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return undo.delete_sale(db, sale_id, actor=actor)
