# backend/routes/returns.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from services import returns as return_service
from services import undo
import schemas.returns as return_schemas

router = APIRouter(prefix="/returns", tags=["Returns"])


@router.post("", response_model=return_schemas.ReturnReceipt, status_code=201)
def record_return(payload: return_schemas.ReturnCreate, db: Session = Depends(get_db)):
    return return_service.record_return(
        db,
        product_id=payload.product_id,
        quantity=payload.quantity,
        condition=payload.condition,
        reason=payload.reason,
        payment_method=payload.payment_method,
        processed_by=payload.processed_by,
        sale_id=payload.sale_id,
        notes=payload.notes,
    )


@router.get("", response_model=return_schemas.ReturnsPage)
def list_returns(
    product_id: Optional[int] = Query(None),
    processed_by: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    items, total = return_service.list_returns(
        db, product_id=product_id, processed_by=processed_by, page=page, page_size=page_size
    )
    return {"items": items, "total": total, "page": page, "page_size": page_size}


# Deleting a return reverses its stock and revenue effects
@router.delete("/{return_id}", response_model=return_schemas.ReturnReversalResult)
def delete_return(
    return_id: int,
    actor: Optional[str] = Query(None),
    force: bool = Query(False, description="Allow stock to go under the floor"),
    db: Session = Depends(get_db),
):
    return undo.delete_return(db, return_id, actor=actor, force=force)
