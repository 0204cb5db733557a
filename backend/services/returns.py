# backend/services/returns.py
"""Customer returns.

A return has three effects that are written together or not at all:
the ``returns`` row, a ``return`` stock movement putting the goods back on the
shelf, and a negative sale line so revenue and profit totals net out the
refund without any special-case filtering.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from database import atomic
from models.returns import Return, ReturnStatus
from models.sale import Sale, PaymentStatus, SaleEntryType
from models.stock import MovementReason
from schemas.returns import ReturnReceipt, ReturnOut
from services import ledger
from services.errors import ValidationError, NotFoundError
from utils.audit import write_log
from utils.money import money

logger = logging.getLogger(__name__)

RETURN_REF_TYPE = "return"


def already_returned(db: Session, sale_id: int) -> Tuple[int, float, float]:
    """Units, refund and profit already taken back from one sale line by its returns."""
    qty, refund, profit = db.query(
        func.coalesce(func.sum(Return.quantity_returned), 0),
        func.coalesce(func.sum(Return.total_refund), 0.0),
        func.coalesce(func.sum(Return.profit_refund), 0.0),
    ).filter(Return.sale_id == sale_id).one()
    return int(qty or 0), float(refund or 0), float(profit or 0)


@dataclass
class RefundBasis:
    unit_price: float
    buying_price: float
    total_refund: float
    profit_refund: float


def _refund_basis(db: Session, product, quantity: int, sale_id: Optional[int]) -> RefundBasis:
    """Refund figures: a share of the linked sale line's stored totals, else catalogue prices.

    The return that takes back the last units of a line refunds whatever is left
    of its totals, so a line returned in full always nets to exactly zero.
    """
    if sale_id is None:
        unit_price = float(product.selling_price or 0)
        buying_price = float(product.buying_price or 0)
        return RefundBasis(
            unit_price=unit_price,
            buying_price=buying_price,
            total_refund=money(unit_price * quantity),
            profit_refund=money((unit_price - buying_price) * quantity),
        )

    sale = db.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale", sale_id)
    if sale.product_id != product.id:
        raise ValidationError(f"Sale {sale_id} is not a sale of product {product.id}")
    if sale.is_compensating or sale.quantity_sold <= 0:
        raise ValidationError(f"Sale {sale_id} is a correction entry and cannot be returned against")

    returned_qty, returned_refund, returned_profit = already_returned(db, sale_id)
    remaining = sale.quantity_sold - returned_qty
    if quantity > remaining:
        raise ValidationError(
            f"Only {remaining} unit(s) of sale {sale_id} can still be returned, requested {quantity}"
        )

    if quantity == remaining:
        total_refund = money(sale.total_sale - returned_refund)
        profit_refund = money(sale.profit - returned_profit)
    else:
        total_refund = money(sale.total_sale * quantity / sale.quantity_sold)
        profit_refund = money(sale.profit * quantity / sale.quantity_sold)
    return RefundBasis(
        unit_price=float(sale.final_price),
        buying_price=float(sale.buying_price),
        total_refund=total_refund,
        profit_refund=profit_refund,
    )


def record_return(
    db: Session,
    product_id: int,
    quantity: int,
    condition: Optional[str],
    reason: Optional[str],
    payment_method: Optional[str],
    processed_by: Optional[str],
    sale_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> ReturnReceipt:
    processed_by = (processed_by or "").strip()
    if not processed_by:
        raise ValidationError("Please select staff (Processed By)")
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")

    product = ledger.get_product(db, product_id)
    basis = _refund_basis(db, product, quantity, sale_id)
    unit_price, total_refund = basis.unit_price, basis.total_refund
    refund_method = payment_method if payment_method and payment_method != "None" else None

    with atomic(db, "record_return"):
        # (a) the return itself
        ret = Return(
            sale_id=sale_id,
            product_id=product.id,
            quantity_returned=quantity,
            unit_price=unit_price,
            buying_price=basis.buying_price,
            total_refund=total_refund,
            profit_refund=basis.profit_refund,
            reason=reason or None,
            condition=condition or None,
            payment_method=refund_method,
            processed_by=processed_by,
            notes=notes or None,
            status=ReturnStatus.PENDING.value,
        )
        db.add(ret)
        db.flush()

        # (b) goods back on the shelf
        movement = ledger.apply_movement(
            db, product.id, quantity, MovementReason.RETURN,
            actor=processed_by, ref_type=RETURN_REF_TYPE, ref_id=ret.id,
        )

        # (c) negative sale line so revenue and profit net out the refund
        compensation = Sale(
            transaction_id=str(uuid.uuid4()),
            product_id=product.id,
            entry_type=SaleEntryType.RETURN.value,
            quantity_sold=-quantity,
            selling_price=unit_price,
            buying_price=basis.buying_price,
            discount_percentage=0.0,
            discount_amount=0.0,
            original_price=unit_price,
            final_price=unit_price,
            total_sale=-total_refund,
            profit=-basis.profit_refund,
            payment_method=refund_method or "Cash",
            sold_by=processed_by,
            payment_status=PaymentStatus.PAID.value,
            amount_paid=-total_refund,
        )
        db.add(compensation)
        db.flush()

        write_log(db, actor=processed_by, action="RETURN_RECORD", resource="returns",
                  meta={"return_id": ret.id, "product_id": product.id, "quantity": quantity,
                        "total_refund": total_refund, "movement_id": movement.id,
                        "compensating_sale_id": compensation.id})

    logger.info("Recorded return %s: %d x product %s, refund %.2f", ret.id, quantity, product.id, total_refund)
    return ReturnReceipt(
        return_id=ret.id,
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        unit_price=unit_price,
        total_refund=total_refund,
        reason=ret.reason,
        condition=ret.condition,
        payment_method=ret.payment_method,
        processed_by=processed_by,
        return_date=ret.return_date,
        quantity_in_stock=product.quantity_in_stock,
        compensating_sale_id=compensation.id,
    )


def return_to_out(ret: Return) -> ReturnOut:
    out = ReturnOut.model_validate(ret)
    out.product_name = ret.product.name if ret.product else None
    return out


def list_returns(
    db: Session,
    product_id: Optional[int] = None,
    processed_by: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[ReturnOut], int]:
    query = db.query(Return)
    if product_id is not None:
        query = query.filter(Return.product_id == product_id)
    if processed_by:
        query = query.filter(Return.processed_by == processed_by)

    total = query.count()
    rows = (query.options(joinedload(Return.product))
            .order_by(Return.return_date.desc(), Return.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all())
    return [return_to_out(r) for r in rows], total
