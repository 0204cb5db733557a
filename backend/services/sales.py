# backend/services/sales.py
"""Sale transaction processor.

A checkout is priced and validated in full before anything is written: every
product must exist and the summed quantity per product must fit in stock.
The sale lines and their stock debits are then written in one transaction
under a shared transaction id. Each debit is itself a compare-and-swap
(see ``ledger.apply_movement``), so a concurrent sale that drains the stock
between validation and write rolls the whole checkout back.
"""
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session, joinedload

from config import settings
from database import atomic
from models.product import Product
from models.sale import Sale, PaymentStatus, SaleEntryType
from models.stock import MovementReason
from schemas.sale import (
    SaleLineCreate, SaleReceipt, SaleReceiptLine, SaleOut, TransactionOut,
)
from services import ledger
from services.errors import ValidationError, NotFoundError, InsufficientStockError
from utils.audit import write_log
from utils.money import money

logger = logging.getLogger(__name__)

SALE_REF_TYPE = "sale"


@dataclass
class PricedLine:
    """Money figures for one cart line, before it is stored."""

    product: Product
    quantity: int
    original_total: float
    discount_percentage: float
    discount_amount: float
    final_total: float
    final_unit_price: float
    profit: float


def price_line(product: Product, quantity: int, discount_type: str = "none", discount_value: float = 0.0) -> PricedLine:
    unit_price = float(product.selling_price or 0)
    original_total = unit_price * quantity

    discount_percentage = 0.0
    if discount_type == "percentage":
        discount_percentage = float(discount_value or 0)
        discount_amount = original_total * discount_percentage / 100
    elif discount_type == "amount":
        # A fixed discount never makes a line negative
        discount_amount = min(float(discount_value or 0), original_total)
        discount_percentage = (discount_amount / original_total * 100) if original_total else 0.0
    else:
        discount_amount = 0.0

    final_total = original_total - discount_amount
    final_unit_price = final_total / quantity
    profit = (final_unit_price - float(product.buying_price or 0)) * quantity

    return PricedLine(
        product=product,
        quantity=quantity,
        original_total=money(original_total),
        discount_percentage=money(discount_percentage),
        discount_amount=money(discount_amount),
        final_total=money(final_total),
        final_unit_price=money(final_unit_price),
        profit=money(profit),
    )


def _validate_line(idx: int, line: SaleLineCreate) -> None:
    if line.quantity is None or line.quantity <= 0:
        raise ValidationError(f"Line {idx}: quantity must be greater than 0")
    if line.discount_type not in ("none", "percentage", "amount"):
        raise ValidationError(f"Line {idx}: unknown discount type '{line.discount_type}'")
    value = line.discount_value or 0
    if value < 0:
        raise ValidationError(f"Line {idx}: discount cannot be negative")
    if line.discount_type == "percentage" and value > 100:
        raise ValidationError(f"Line {idx}: percentage discount cannot exceed 100")


def _check_stock(db: Session, lines: List[SaleLineCreate]) -> Dict[int, Product]:
    """Load the products and check the summed quantity per product against stock."""
    requested: "OrderedDict[int, int]" = OrderedDict()
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    products = {p.id: p for p in db.query(Product).filter(Product.id.in_(requested.keys())).all()}
    for product_id, qty in requested.items():
        product = products.get(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        available = int(product.quantity_in_stock or 0) - settings.STOCK_FLOOR
        if not settings.ALLOW_BACKORDER and qty > available:
            raise InsufficientStockError(
                product_id, qty, int(product.quantity_in_stock or 0),
                message=f"Not enough stock for '{product.name}': requested {qty}, available {max(available, 0)}",
            )
    return products


def _allocate_payment(
    priced: List[PricedLine], amount_paid: Optional[float]
) -> List[Tuple[float, str]]:
    """Spread the amount paid over the lines in cart order."""
    if amount_paid is None:
        return [(line.final_total, PaymentStatus.PAID.value) for line in priced]

    remaining = float(amount_paid)
    allocation = []
    for line in priced:
        paid = min(remaining, line.final_total)
        remaining -= paid
        if paid >= line.final_total - settings.BALANCE_TOLERANCE:
            status = PaymentStatus.PAID.value
        elif paid > 0:
            status = PaymentStatus.PARTIAL.value
        else:
            status = PaymentStatus.NOT_PAID.value
        allocation.append((paid, status))
    return allocation


def record_sale(
    db: Session,
    lines: Iterable[SaleLineCreate],
    payment_method: str,
    sold_by: Optional[str],
    customer_name: Optional[str] = None,
    amount_paid: Optional[float] = None,
) -> SaleReceipt:
    lines = list(lines or [])
    sold_by = (sold_by or "").strip()
    payment_method = (payment_method or "").strip()
    customer_name = (customer_name or "").strip() or None

    # 1. Input checks, no store access yet
    if not sold_by:
        raise ValidationError("Please select staff (Sold By)")
    if not payment_method:
        raise ValidationError("Payment method is required")
    if not lines:
        raise ValidationError("Add at least one item to the sale")
    for idx, line in enumerate(lines, start=1):
        _validate_line(idx, line)
    if amount_paid is not None and amount_paid < 0:
        raise ValidationError("Amount paid cannot be negative")

    # 2. Products and aggregate stock check
    products = _check_stock(db, lines)
    priced = [
        price_line(products[line.product_id], line.quantity, line.discount_type, line.discount_value)
        for line in lines
    ]
    grand_total = money(sum(p.final_total for p in priced))

    if amount_paid is not None:
        if amount_paid > grand_total + settings.BALANCE_TOLERANCE:
            raise ValidationError(f"Amount paid {amount_paid} exceeds the sale total {grand_total}")
        if amount_paid < grand_total - settings.BALANCE_TOLERANCE and not customer_name:
            raise ValidationError("A customer name is required for a sale that is not fully paid")
    allocation = _allocate_payment(priced, amount_paid)

    # 3. Lines and stock debits as one unit
    transaction_id = str(uuid.uuid4())
    sales: List[Sale] = []
    with atomic(db, "record_sale"):
        for line, (paid, status) in zip(priced, allocation):
            sale = Sale(
                transaction_id=transaction_id,
                product_id=line.product.id,
                entry_type=SaleEntryType.SALE.value,
                quantity_sold=line.quantity,
                selling_price=float(line.product.selling_price),
                buying_price=float(line.product.buying_price or 0),
                discount_percentage=line.discount_percentage,
                discount_amount=line.discount_amount,
                original_price=float(line.product.selling_price),
                final_price=line.final_unit_price,
                total_sale=line.final_total,
                profit=line.profit,
                payment_method=payment_method,
                sold_by=sold_by,
                customer_name=customer_name,
                payment_status=status,
                amount_paid=paid,
            )
            db.add(sale)
            db.flush()
            ledger.apply_movement(
                db, line.product.id, -line.quantity, MovementReason.SALE,
                actor=sold_by, ref_type=SALE_REF_TYPE, ref_id=transaction_id,
                allow_below_floor=settings.ALLOW_BACKORDER,
            )
            sales.append(sale)

        write_log(db, actor=sold_by, action="SALE_RECORD", resource="sales",
                  meta={"transaction_id": transaction_id, "lines": len(sales), "total": grand_total})

    logger.info("Recorded sale %s: %d line(s), total %.2f by %s", transaction_id, len(sales), grand_total, sold_by)
    return build_receipt(sales, priced)


def build_receipt(sales: List[Sale], priced: List[PricedLine]) -> SaleReceipt:
    receipt_lines = [
        SaleReceiptLine(
            sale_id=sale.id,
            product_id=sale.product_id,
            product_name=line.product.name,
            quantity=line.quantity,
            unit_price=sale.selling_price,
            original_total=line.original_total,
            discount_percentage=line.discount_percentage,
            discount_amount=line.discount_amount,
            final_total=line.final_total,
            final_unit_price=line.final_unit_price,
            profit=line.profit,
            amount_paid=money(sale.amount_paid),
            payment_status=sale.payment_status,
        )
        for sale, line in zip(sales, priced)
    ]
    first = sales[0]
    grand_total = money(sum(l.final_total for l in receipt_lines))
    paid = money(sum(s.amount_paid for s in sales))
    return SaleReceipt(
        transaction_id=first.transaction_id,
        sale_date=first.sale_date,
        payment_method=first.payment_method,
        sold_by=first.sold_by,
        customer_name=first.customer_name,
        lines=receipt_lines,
        subtotal=money(sum(l.original_total for l in receipt_lines)),
        total_discount=money(sum(l.discount_amount for l in receipt_lines)),
        grand_total=grand_total,
        total_profit=money(sum(l.profit for l in receipt_lines)),
        amount_paid=paid,
        balance_due=money(max(grand_total - paid, 0.0)),
    )


# =========================
# READ SIDE
# =========================
def sale_to_out(sale: Sale) -> SaleOut:
    out = SaleOut.model_validate(sale)
    out.product_name = sale.product.name if sale.product else None
    return out


def _filtered_sales(
    db: Session,
    q: Optional[str] = None,
    payment_method: Optional[str] = None,
    sold_by: Optional[str] = None,
    customer_name: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
):
    query = db.query(Sale)
    if q:
        like = f"%{q.strip()}%"
        query = query.join(Product, Product.id == Sale.product_id).filter(or_(
            Product.name.ilike(like),
            Product.code.ilike(like),
            Sale.customer_name.ilike(like),
            Sale.transaction_id.ilike(like),
        ))
    if payment_method:
        query = query.filter(Sale.payment_method == payment_method)
    if sold_by:
        query = query.filter(Sale.sold_by == sold_by)
    if customer_name:
        query = query.filter(Sale.customer_name == customer_name)
    if date_from:
        query = query.filter(Sale.created_at >= date_from)
    if date_to:
        query = query.filter(Sale.created_at <= date_to)
    return query


def list_sales(db: Session, page: int = 1, page_size: int = 20, **filters) -> Tuple[List[SaleOut], int]:
    query = _filtered_sales(db, **filters)
    total = query.count()
    rows = (query.options(joinedload(Sale.product))
            .order_by(Sale.created_at.desc(), Sale.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all())
    return [sale_to_out(s) for s in rows], total


def _group(transaction_id: str, lines: List[Sale]) -> TransactionOut:
    items = [sale_to_out(s) for s in lines]
    first = lines[0]
    return TransactionOut(
        transaction_id=transaction_id,
        items=items,
        total_amount=money(sum(s.total_sale for s in lines)),
        total_profit=money(sum(s.profit for s in lines)),
        total_discount=money(sum(s.discount_amount for s in lines)),
        item_count=len(lines),
        payment_method=first.payment_method,
        sold_by=first.sold_by,
        customer_name=first.customer_name,
        created_at=max((s.created_at for s in lines if s.created_at), default=None),
        is_compensating=all(s.is_compensating for s in lines),
    )


def list_transactions(
    db: Session,
    page: int = 1,
    page_size: int = 20,
    include_compensating: bool = True,
    **filters,
) -> Tuple[List[TransactionOut], int]:
    """Sale lines grouped by transaction id, newest checkout first."""
    matching = _filtered_sales(db, **filters).with_entities(Sale.transaction_id).distinct().subquery()

    groups = (db.query(Sale.transaction_id, func.max(Sale.created_at).label("last_at"), func.max(Sale.id).label("last_id"))
              .filter(Sale.transaction_id.in_(select(matching.c.transaction_id)))
              .group_by(Sale.transaction_id))
    if not include_compensating:
        checkout_lines = func.sum(case((Sale.entry_type == SaleEntryType.SALE.value, 1), else_=0))
        groups = groups.having(checkout_lines > 0)

    total = groups.count()
    page_rows = (groups.order_by(func.max(Sale.created_at).desc(), func.max(Sale.id).desc())
                 .offset((page - 1) * page_size)
                 .limit(page_size)
                 .all())
    ids = [r.transaction_id for r in page_rows]
    if not ids:
        return [], total

    lines = (db.query(Sale).options(joinedload(Sale.product))
             .filter(Sale.transaction_id.in_(ids))
             .order_by(Sale.id.asc())
             .all())
    by_tx: Dict[str, List[Sale]] = {tid: [] for tid in ids}
    for sale in lines:
        by_tx[sale.transaction_id].append(sale)
    return [_group(tid, by_tx[tid]) for tid in ids if by_tx[tid]], total


def get_transaction(db: Session, transaction_id: str) -> TransactionOut:
    lines = (db.query(Sale).options(joinedload(Sale.product))
             .filter(Sale.transaction_id == transaction_id)
             .order_by(Sale.id.asc())
             .all())
    if not lines:
        raise NotFoundError("Transaction", transaction_id)
    return _group(transaction_id, lines)
