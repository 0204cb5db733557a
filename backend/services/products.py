# backend/services/products.py
import logging
from typing import Optional, Tuple, List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import atomic
from models.product import Product
from models.sale import Sale
from models.returns import Return
from models.stock import StockMovement, MovementReason
from schemas.product import ProductCreate, ProductDeleteResult
from services import ledger
from services.errors import ValidationError
from utils.audit import write_log

logger = logging.getLogger(__name__)


def _norm_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    c = code.strip().upper()
    return c if c else None


def create_product(db: Session, data: ProductCreate) -> Product:
    """Add a catalogue row; any opening stock is booked as the first movement."""
    code = _norm_code(data.code)
    name = (data.name or "").strip()
    if not code or not name:
        raise ValidationError("Product code and name are required")
    if db.query(Product.id).filter(Product.code == code).first():
        raise ValidationError(f"Product code {code} already exists")

    with atomic(db, "create_product"):
        product = Product(
            code=code,
            name=name,
            category=(data.category or "").strip() or None,
            buying_price=data.buying_price,
            selling_price=data.selling_price,
            reorder_level=data.reorder_level,
            quantity_in_stock=0,
        )
        db.add(product)
        db.flush()

        if data.opening_quantity:
            ledger.apply_movement(
                db, product.id, data.opening_quantity, MovementReason.ADJUSTMENT,
                actor=data.created_by, ref_type="opening_stock", ref_id=product.id,
                notes="Opening stock",
            )

        write_log(db, actor=data.created_by, action="PRODUCT_CREATE", resource="products",
                  meta={"code": code, "opening_quantity": data.opening_quantity})

    db.refresh(product)
    logger.info("Created product %s (%s) with %s units", product.id, code, data.opening_quantity)
    return product


def list_products(
    db: Session,
    q: Optional[str] = None,
    category: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Product], int]:
    query = db.query(Product)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(Product.name.ilike(like), Product.code.ilike(like), Product.category.ilike(like)))
    if category:
        query = query.filter(Product.category == category)

    total = query.count()
    rows = (query.order_by(Product.name.asc(), Product.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all())
    return rows, total


def delete_product(db: Session, product_id: int, actor: str = "system") -> ProductDeleteResult:
    """Remove a product and, first, every sale, return and movement that references it."""
    product = ledger.get_product(db, product_id)

    with atomic(db, "delete_product"):
        sales_removed = db.query(Sale).filter(Sale.product_id == product_id).delete(synchronize_session=False)
        returns_removed = db.query(Return).filter(Return.product_id == product_id).delete(synchronize_session=False)
        movements_removed = (db.query(StockMovement)
                             .filter(StockMovement.product_id == product_id)
                             .delete(synchronize_session=False))
        db.delete(product)
        write_log(db, actor=actor, action="PRODUCT_DELETE", resource="products",
                  meta={"product_id": product_id, "code": product.code, "sales": sales_removed,
                        "returns": returns_removed, "movements": movements_removed})

    logger.info("Deleted product %s with %s sales, %s returns, %s movements",
                product_id, sales_removed, returns_removed, movements_removed)
    return ProductDeleteResult(
        product_id=product_id,
        sales_removed=sales_removed,
        returns_removed=returns_removed,
        movements_removed=movements_removed,
    )
