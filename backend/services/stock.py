# backend/services/stock.py
"""Stock receipts and manual adjustments.

A receipt batch is all-or-nothing: input is validated and every product is
looked up before the first write, and the writes themselves share one
transaction, so a failure on any line leaves the store as it was.
"""
import logging
import uuid
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from database import atomic
from models.product import Product
from models.stock import MovementReason, StockMovement
from schemas.stock import ReceiptLine, StockReceiptResult, ReceiptLineResult
from services import ledger
from services.errors import ValidationError, NotFoundError
from utils.audit import write_log

logger = logging.getLogger(__name__)

RECEIPT_REF_TYPE = "stock_receipt"


def receive_stock(
    db: Session,
    lines: Iterable[ReceiptLine],
    received_by: Optional[str],
    notes: Optional[str] = None,
) -> StockReceiptResult:
    lines = list(lines or [])
    received_by = (received_by or "").strip()

    if not lines:
        raise ValidationError("A stock receipt needs at least one line")
    if not received_by:
        raise ValidationError("Please select who received the stock")
    for idx, line in enumerate(lines, start=1):
        if line.quantity is None or line.quantity <= 0:
            raise ValidationError(f"Line {idx}: quantity must be greater than 0")

    # Resolve every product up front; one unknown id rejects the whole batch
    wanted = {line.product_id for line in lines}
    found = {p.id: p for p in db.query(Product).filter(Product.id.in_(wanted)).all()}
    for line in lines:
        if line.product_id not in found:
            raise NotFoundError("Product", line.product_id)

    batch_id = str(uuid.uuid4())
    results = []
    with atomic(db, "receive_stock"):
        for line in lines:
            movement = ledger.apply_movement(
                db, line.product_id, line.quantity, MovementReason.RECEIPT,
                actor=received_by, ref_type=RECEIPT_REF_TYPE, ref_id=batch_id, notes=notes,
            )
            results.append((line, movement))
        write_log(db, actor=received_by, action="STOCK_RECEIPT", resource="stock",
                  meta={"batch_id": batch_id, "lines": len(lines),
                        "units": sum(line.quantity for line in lines)})

    logger.info("Stock receipt %s: %d line(s) received by %s", batch_id, len(lines), received_by)
    return StockReceiptResult(
        batch_id=batch_id,
        received_by=received_by,
        lines=[
            ReceiptLineResult(
                product_id=line.product_id,
                product_name=found[line.product_id].name,
                quantity=line.quantity,
                quantity_in_stock=found[line.product_id].quantity_in_stock,
                movement_id=movement.id,
            )
            for line, movement in results
        ],
        total_units=sum(line.quantity for line in lines),
    )


def adjust_stock(
    db: Session,
    product_id: int,
    quantity_change: int,
    actor: str,
    notes: str,
) -> StockMovement:
    """Book a manual correction (count differences, damage, ...) as an adjustment movement."""
    if not (notes or "").strip():
        raise ValidationError("An adjustment needs a note explaining it")

    with atomic(db, "adjust_stock"):
        movement = ledger.apply_movement(
            db, product_id, quantity_change, MovementReason.ADJUSTMENT,
            actor=actor, ref_type="manual_adjustment", notes=notes.strip(),
        )
        write_log(db, actor=actor, action="STOCK_ADJUSTMENT", resource="stock",
                  meta={"product_id": product_id, "quantity_change": quantity_change})

    db.refresh(movement)
    logger.info("Adjusted product %s by %+d (%s)", product_id, quantity_change, actor)
    return movement
