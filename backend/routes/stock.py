# backend/routes/stock.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from database import get_db
from services import ledger
from services import stock as stock_service
import schemas.stock as stock_schemas

router = APIRouter(tags=["Stock"])


def _movement_out(m) -> dict:
    return {
        "id": m.id,
        "created_at": m.created_at,
        "product_id": m.product_id,
        "product_name": m.product.name if m.product else "Unknown",
        "product_code": m.product.code if m.product else "-",
        "quantity_change": int(m.quantity_change),
        "reason": m.reason,
        "reference_type": m.reference_type,
        "reference_id": m.reference_id,
        "actor": m.actor,
        "notes": m.notes,
    }


# Audit trail of stock movements, newest first
@router.get("/movements", response_model=stock_schemas.StockMovementList)
def list_movements(
    filter: stock_schemas.StockMovementFilter = Query("all"),
    search: Optional[str] = Query(None),
    product_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    movements = ledger.list_movements(db, reason=filter, search=search, limit=limit, product_id=product_id)
    items = [_movement_out(m) for m in movements]
    return {"items": items, "total": len(items)}


@router.post("/receive", response_model=stock_schemas.StockReceiptResult, status_code=201)
def receive_stock(payload: stock_schemas.StockReceiptCreate, db: Session = Depends(get_db)):
    return stock_service.receive_stock(db, payload.items, payload.received_by, notes=payload.notes)


@router.post("/adjust", response_model=stock_schemas.StockMovementResponse, status_code=201)
def adjust_stock(payload: stock_schemas.StockAdjustmentCreate, db: Session = Depends(get_db)):
    movement = stock_service.adjust_stock(
        db, payload.product_id, payload.quantity_change, payload.actor, payload.notes
    )
    return _movement_out(movement)


@router.get("/reconciliation", response_model=stock_schemas.ReconciliationResponse)
def reconciliation(
    only_drift: bool = Query(False),
    db: Session = Depends(get_db),
):
    report = ledger.reconciliation(db)
    drifted = [r for r in report if r["drift"]]
    return {
        "items": drifted if only_drift else report,
        "products_checked": len(report),
        "products_with_drift": len(drifted),
    }
