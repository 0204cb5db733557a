# backend/services/undo.py
"""Undo of erroneous sales and returns.

The row is deleted and its stock effect is reversed with an ``adjustment``
movement in the same transaction, so a deletion either fully happens or
leaves everything as it was. Movements themselves are never deleted: the
audit trail keeps the original movement and the reversing one.
A sale line with returns booked against it keeps its ledger meaning only
while those returns exist, so it can be deleted only after them.
"""
import logging
import uuid
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from database import atomic
from models.returns import Return
from models.sale import Sale, PaymentStatus, SaleEntryType
from models.stock import MovementReason
from schemas.returns import ReturnReversalResult
from schemas.sale import SaleDeletionResult, TransactionDeletionResult
from services import ledger
from services.errors import ValidationError, NotFoundError
from utils.audit import write_log
from utils.money import money

logger = logging.getLogger(__name__)


def _check_deletable(db: Session, sale: Sale) -> None:
    if sale.entry_type == SaleEntryType.RETURN.value:
        raise ValidationError(
            f"Sale {sale.id} is a compensating entry; delete the return that created it instead"
        )
    if sale.is_compensating or sale.quantity_sold <= 0:
        raise ValidationError(
            f"Sale {sale.id} restores a deleted return and cannot be deleted on its own"
        )
    returned_qty = db.query(func.coalesce(func.sum(Return.quantity_returned), 0)).filter(
        Return.sale_id == sale.id
    ).scalar()
    if returned_qty:
        raise ValidationError(
            f"Sale {sale.id} has {int(returned_qty)} unit(s) returned against it; delete those returns first"
        )


def _restore_sale_stock(db: Session, sale: Sale, actor: str):
    _check_deletable(db, sale)
    product_id, quantity = sale.product_id, sale.quantity_sold
    db.delete(sale)
    db.flush()
    return ledger.apply_movement(
        db, product_id, quantity, MovementReason.ADJUSTMENT,
        actor=actor, ref_type="sale_deletion", ref_id=sale.id,
        notes=f"Sale {sale.id} ({sale.transaction_id}) deleted",
    )


def delete_sale(db: Session, sale_id: int, actor: str = None) -> SaleDeletionResult:
    sale = db.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale", sale_id)
    actor = (actor or "").strip() or sale.sold_by
    product_id, quantity = sale.product_id, sale.quantity_sold

    with atomic(db, "delete_sale"):
        movement = _restore_sale_stock(db, sale, actor)
        write_log(db, actor=actor, action="SALE_DELETE", resource="sales",
                  meta={"sale_id": sale_id, "product_id": product_id, "quantity": quantity,
                        "movement_id": movement.id})

    logger.info("Deleted sale %s, restored %d unit(s) of product %s", sale_id, quantity, product_id)
    return SaleDeletionResult(
        sale_id=sale_id,
        product_id=product_id,
        quantity_restored=quantity,
        quantity_in_stock=ledger.current_quantity(db, product_id),
        movement_id=movement.id,
    )


def delete_transaction(db: Session, transaction_id: str, actor: str = None) -> TransactionDeletionResult:
    """Delete every line of one checkout and put all of its stock back."""
    lines: List[Sale] = (db.query(Sale)
                         .filter(Sale.transaction_id == transaction_id, Sale.entry_type == SaleEntryType.SALE.value)
                         .order_by(Sale.id.asc())
                         .all())
    if not lines:
        raise NotFoundError("Transaction", transaction_id)
    actor = (actor or "").strip() or lines[0].sold_by

    restored = []
    with atomic(db, "delete_transaction"):
        for sale in lines:
            sale_id, product_id, quantity = sale.id, sale.product_id, sale.quantity_sold
            movement = _restore_sale_stock(db, sale, actor)
            restored.append((sale_id, product_id, quantity, movement))
        write_log(db, actor=actor, action="TRANSACTION_DELETE", resource="sales",
                  meta={"transaction_id": transaction_id, "lines": len(restored)})

    logger.info("Deleted transaction %s (%d line(s))", transaction_id, len(restored))
    return TransactionDeletionResult(
        transaction_id=transaction_id,
        lines=[
            SaleDeletionResult(
                sale_id=sale_id,
                product_id=product_id,
                quantity_restored=quantity,
                quantity_in_stock=ledger.current_quantity(db, product_id),
                movement_id=movement.id,
            )
            for sale_id, product_id, quantity, movement in restored
        ],
    )


def delete_return(db: Session, return_id: int, actor: str = None, force: bool = False) -> ReturnReversalResult:
    """Reverse a return: take the goods back off the shelf and restore the refunded revenue.

    ``force`` lets the removal drive stock under the floor, for when the returned
    units have already been sold again.
    """
    ret = db.get(Return, return_id)
    if ret is None:
        raise NotFoundError("Return", return_id)
    product = ledger.get_product(db, ret.product_id)
    actor = (actor or "").strip() or ret.processed_by

    quantity = ret.quantity_returned
    unit_price = float(ret.unit_price if ret.unit_price is not None else product.selling_price)
    buying_price = float(ret.buying_price if ret.buying_price is not None else product.buying_price)
    revenue = money(ret.total_refund if ret.total_refund is not None else unit_price * quantity)
    profit = money(ret.profit_refund if ret.profit_refund is not None else (unit_price - buying_price) * quantity)

    with atomic(db, "delete_return"):
        db.delete(ret)
        db.flush()

        movement = ledger.apply_movement(
            db, product.id, -quantity, MovementReason.ADJUSTMENT,
            actor=actor, ref_type="return_reversal", ref_id=return_id,
            notes=f"Return {return_id} deleted", allow_below_floor=force,
        )

        # Positive line mirroring the refund the return had taken off revenue
        restoring = Sale(
            transaction_id=str(uuid.uuid4()),
            product_id=product.id,
            entry_type=SaleEntryType.RETURN_REVERSAL.value,
            quantity_sold=quantity,
            selling_price=unit_price,
            buying_price=buying_price,
            discount_percentage=0.0,
            discount_amount=0.0,
            original_price=unit_price,
            final_price=unit_price,
            total_sale=revenue,
            profit=profit,
            payment_method=ret.payment_method or "Cash",
            sold_by=ret.processed_by,
            payment_status=PaymentStatus.PAID.value,
            amount_paid=revenue,
        )
        db.add(restoring)
        db.flush()

        write_log(db, actor=actor, action="RETURN_DELETE", resource="returns",
                  meta={"return_id": return_id, "product_id": product.id, "quantity": quantity,
                        "restored_revenue": revenue, "movement_id": movement.id, "forced": force})

    logger.info("Reversed return %s: removed %d unit(s) of product %s", return_id, quantity, product.id)
    return ReturnReversalResult(
        return_id=return_id,
        product_id=product.id,
        quantity_removed=quantity,
        quantity_in_stock=product.quantity_in_stock,
        restored_revenue=revenue,
        restoring_sale_id=restoring.id,
        movement_id=movement.id,
    )
