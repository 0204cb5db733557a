# backend/services/ledger.py
"""Ledger store: the only code allowed to change a product's quantity on hand.

Every change goes through :func:`apply_movement`, which inserts an immutable
``StockMovement`` row and moves ``products.quantity_in_stock`` by the same
delta. The debit is a single conditional UPDATE, so the floor check and the
write cannot be separated by a concurrent sale.

Functions here never commit; callers wrap them in ``database.atomic``.
"""
import logging
from typing import List, Optional

from sqlalchemy import update, func, or_
from sqlalchemy.orm import Session, joinedload

from config import settings
from models.product import Product
from models.stock import StockMovement, MovementReason
from services.errors import ValidationError, NotFoundError, InsufficientStockError

logger = logging.getLogger(__name__)

# Reasons that may push stock under the floor when the caller asks for it
FLOOR_OVERRIDE_REASONS = {MovementReason.RETURN.value, MovementReason.ADJUSTMENT.value}


def _reason_value(reason) -> str:
    value = reason.value if isinstance(reason, MovementReason) else str(reason or "").lower()
    if value not in {r.value for r in MovementReason}:
        raise ValidationError(f"Unknown movement reason: {reason}")
    return value


def get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return product


def current_quantity(db: Session, product_id: int) -> int:
    qty = db.query(Product.quantity_in_stock).filter(Product.id == product_id).scalar()
    if qty is None:
        raise NotFoundError("Product", product_id)
    return int(qty)


def apply_movement(
    db: Session,
    product_id: int,
    delta: int,
    reason,
    *,
    actor: str,
    ref_type: Optional[str] = None,
    ref_id=None,
    notes: Optional[str] = None,
    allow_below_floor: bool = False,
) -> StockMovement:
    reason = _reason_value(reason)
    if not delta:
        raise ValidationError("Movement quantity must not be zero")
    if not (actor or "").strip():
        raise ValidationError("Movement actor is required")
    if allow_below_floor and reason not in FLOOR_OVERRIDE_REASONS and not (
        reason == MovementReason.SALE.value and settings.ALLOW_BACKORDER
    ):
        raise ValidationError(f"Movements with reason '{reason}' cannot override the stock floor")

    product = get_product(db, product_id)

    stmt = update(Product).where(Product.id == product_id)
    if delta < 0 and not allow_below_floor:
        # Compare-and-swap: only succeeds while enough stock is still there
        stmt = stmt.where(Product.quantity_in_stock + delta >= settings.STOCK_FLOOR)
    stmt = stmt.values(
        quantity_in_stock=Product.quantity_in_stock + delta,
        updated_at=func.now(),
    ).execution_options(synchronize_session=False)

    result = db.execute(stmt)
    db.expire(product, ["quantity_in_stock", "updated_at"])
    if result.rowcount == 0:
        available = current_quantity(db, product_id)
        logger.info(
            "Rejected movement of %s for product %s (available %s, floor %s)",
            delta, product_id, available, settings.STOCK_FLOOR,
        )
        raise InsufficientStockError(product_id, -delta, available)

    movement = StockMovement(
        product_id=product_id,
        quantity_change=delta,
        reason=reason,
        reference_type=ref_type,
        reference_id=str(ref_id) if ref_id is not None else None,
        actor=actor.strip(),
        notes=notes,
    )
    db.add(movement)
    db.flush()
    logger.debug("Movement %s: product %s %+d (%s)", movement.id, product_id, delta, reason)
    return movement


def list_movements(
    db: Session,
    reason: Optional[str] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    product_id: Optional[int] = None,
) -> List[StockMovement]:
    """Newest movements first, optionally narrowed by reason, product or free text."""
    query = db.query(StockMovement).join(Product).options(joinedload(StockMovement.product))

    if reason and reason != "all":
        query = query.filter(StockMovement.reason == _reason_value(reason))
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.name.ilike(like),
            Product.code.ilike(like),
            StockMovement.reason.ilike(like),
            StockMovement.notes.ilike(like),
        ))

    query = query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    return query.limit(limit or settings.MOVEMENTS_DEFAULT_LIMIT).all()


def movement_total(db: Session, product_id: int) -> int:
    total = db.query(func.coalesce(func.sum(StockMovement.quantity_change), 0)).filter(
        StockMovement.product_id == product_id
    ).scalar()
    return int(total or 0)


def reconciliation(db: Session, only_drift: bool = False) -> List[dict]:
    """Compare each product's quantity on hand with the sum of its movements."""
    sums = (
        db.query(
            StockMovement.product_id.label("product_id"),
            func.sum(StockMovement.quantity_change).label("total"),
        )
        .group_by(StockMovement.product_id)
        .subquery()
    )
    rows = (
        db.query(Product, func.coalesce(sums.c.total, 0))
        .outerjoin(sums, sums.c.product_id == Product.id)
        .order_by(Product.id.asc())
        .all()
    )

    report = []
    for product, movement_sum in rows:
        drift = int(product.quantity_in_stock or 0) - int(movement_sum or 0)
        if only_drift and drift == 0:
            continue
        report.append({
            "product_id": product.id,
            "code": product.code,
            "name": product.name,
            "quantity_in_stock": int(product.quantity_in_stock or 0),
            "movement_total": int(movement_sum or 0),
            "drift": drift,
        })
    if any(r["drift"] for r in report):
        logger.warning("Reconciliation found drift on %d product(s)", sum(1 for r in report if r["drift"]))
    return report
