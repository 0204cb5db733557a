# backend/services/aggregates.py
"""Read-only views derived from the ledger.

Headline totals are computed with SQL aggregates over every sale line.
``recent_sales`` is a small window of the latest lines for display and must
never be summed into anything shown as a total.
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from models.product import Product
from models.sale import Sale
from schemas.reports import (
    SalesTotals, TopProduct, RecentSale, Dashboard, CustomerBalance,
    CustomerBalancesResponse, LowStockItem, DailySales,
)
from services.errors import ValidationError
from utils.money import money

WINDOWS = ("all", "today", "month", "year")


# Stored timestamps are naive UTC
def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def window_start(window: str, now: Optional[datetime] = None) -> Optional[datetime]:
    if window not in WINDOWS:
        raise ValidationError(f"Unknown window '{window}', expected one of {', '.join(WINDOWS)}")
    now = now or utc_now()
    if window == "today":
        return datetime(now.year, now.month, now.day)
    if window == "month":
        return datetime(now.year, now.month, 1)
    if window == "year":
        return datetime(now.year, 1, 1)
    return None


def sales_totals(db: Session, window: str = "all", now: Optional[datetime] = None) -> SalesTotals:
    start = window_start(window, now)
    query = db.query(
        func.coalesce(func.sum(Sale.total_sale), 0.0),
        func.coalesce(func.sum(Sale.profit), 0.0),
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.quantity_sold), 0),
    )
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    total_sales, total_profit, lines, units = query.one()
    return SalesTotals(
        window=window,
        total_sales=money(total_sales),
        total_profit=money(total_profit),
        sale_lines=int(lines or 0),
        units_sold=int(units or 0),
    )


def top_products(db: Session, limit: Optional[int] = None, window: str = "all") -> List[TopProduct]:
    """Products ranked by summed sale amount (returns already netted in)."""
    start = window_start(window)
    revenue = func.sum(Sale.total_sale)
    query = (
        db.query(
            Product.id.label("product_id"),
            Product.name.label("product_name"),
            Product.code.label("product_code"),
            revenue.label("total_sales"),
            func.sum(Sale.profit).label("total_profit"),
            func.sum(Sale.quantity_sold).label("total_quantity_sold"),
        )
        .join(Sale, Sale.product_id == Product.id)
    )
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    rows = (query.group_by(Product.id, Product.name, Product.code)
            .order_by(revenue.desc(), Product.id.asc())
            .limit(limit or settings.TOP_PRODUCTS_LIMIT)
            .all())
    return [
        TopProduct(
            product_id=r.product_id,
            product_name=r.product_name,
            product_code=r.product_code,
            total_sales=money(r.total_sales),
            total_profit=money(r.total_profit),
            total_quantity_sold=int(r.total_quantity_sold or 0),
        )
        for r in rows
    ]


def recent_sales(db: Session, limit: Optional[int] = None) -> List[RecentSale]:
    rows = (db.query(Sale, Product.name)
            .join(Product, Product.id == Sale.product_id)
            .order_by(Sale.created_at.desc(), Sale.id.desc())
            .limit(limit or settings.RECENT_SALES_LIMIT)
            .all())
    return [
        RecentSale(
            id=s.id,
            transaction_id=s.transaction_id,
            product_id=s.product_id,
            product_name=name,
            quantity_sold=s.quantity_sold,
            total_sale=money(s.total_sale),
            profit=money(s.profit),
            sold_by=s.sold_by,
            created_at=s.created_at,
        )
        for s, name in rows
    ]


def low_stock_query(db: Session, q: Optional[str] = None):
    query = db.query(Product).filter(Product.quantity_in_stock <= Product.reorder_level)
    if q:
        like = f"%{q}%"
        query = query.filter((Product.name.ilike(like)) | (Product.code.ilike(like)))
    return query


def low_stock(db: Session, q: Optional[str] = None, page: int = 1, page_size: int = 50) -> Tuple[List[LowStockItem], int]:
    query = low_stock_query(db, q)
    total = query.count()
    rows = (query
            .order_by(Product.quantity_in_stock.asc(), Product.name.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all())
    items = [
        LowStockItem(
            product_id=p.id,
            name=p.name,
            code=p.code,
            category=p.category,
            quantity_in_stock=p.quantity_in_stock or 0,
            reorder_level=p.reorder_level or 0,
        )
        for p in rows
    ]
    return items, total


def dashboard(db: Session, now: Optional[datetime] = None) -> Dashboard:
    return Dashboard(
        all_time=sales_totals(db, "all", now),
        today=sales_totals(db, "today", now),
        this_year=sales_totals(db, "year", now),
        total_products=db.query(Product).count(),
        low_stock_count=low_stock_query(db).count(),
        top_products=top_products(db),
        recent_sales=recent_sales(db),
    )


def customer_balances(
    db: Session,
    search: Optional[str] = None,
    sort_by: str = "balance",
) -> CustomerBalancesResponse:
    """Per-customer rollup of sale lines that still have money owing on them.

    A line counts only when ``total_sale - amount_paid`` exceeds the tolerance,
    so sub-cent leftovers from rounding never show up as debt.
    """
    outstanding = Sale.total_sale - Sale.amount_paid
    query = (
        db.query(
            Sale.customer_name.label("customer_name"),
            func.sum(Sale.total_sale).label("total_sales"),
            func.sum(Sale.amount_paid).label("total_paid"),
            func.sum(outstanding).label("outstanding_balance"),
            func.count(Sale.id).label("transaction_count"),
            func.max(Sale.created_at).label("last_transaction_date"),
            func.min(Sale.payment_status).label("payment_status"),
        )
        .filter(
            Sale.customer_name.isnot(None),
            Sale.customer_name != "",
            outstanding > settings.BALANCE_TOLERANCE,
        )
    )
    if search:
        query = query.filter(Sale.customer_name.ilike(f"%{search.strip()}%"))
    rows = query.group_by(Sale.customer_name).all()

    items = [
        CustomerBalance(
            customer_name=r.customer_name,
            total_sales=money(r.total_sales),
            total_paid=money(r.total_paid),
            outstanding_balance=money(r.outstanding_balance),
            transaction_count=int(r.transaction_count),
            last_transaction_date=r.last_transaction_date,
            payment_status=r.payment_status if r.transaction_count == 1 else "mixed",
        )
        for r in rows
    ]

    if sort_by == "name":
        items.sort(key=lambda c: c.customer_name.lower())
    elif sort_by == "date":
        items.sort(key=lambda c: c.last_transaction_date or datetime.min, reverse=True)
    elif sort_by == "balance":
        items.sort(key=lambda c: c.outstanding_balance, reverse=True)
    else:
        raise ValidationError(f"Unknown sort '{sort_by}', expected balance, name or date")

    return CustomerBalancesResponse(
        items=items,
        total_outstanding=money(sum(c.outstanding_balance for c in items)),
        customer_count=len(items),
    )


def daily_sales(db: Session, days: int = 7, now: Optional[datetime] = None) -> List[DailySales]:
    """Per-day sales and profit for the last ``days`` days, gaps filled with zero."""
    today = (now or utc_now()).date()
    first_day = today - timedelta(days=days - 1)

    rows = (
        db.query(
            func.date(Sale.created_at).label("date"),
            func.sum(Sale.total_sale).label("total_sales"),
            func.sum(Sale.profit).label("total_profit"),
        )
        .filter(Sale.created_at >= datetime(first_day.year, first_day.month, first_day.day))
        .group_by(func.date(Sale.created_at))
        .all()
    )
    by_date = {str(r.date): r for r in rows}

    result = []
    for i in range(days):
        day = first_day + timedelta(days=i)
        row = by_date.get(day.strftime("%Y-%m-%d"))
        result.append(DailySales(
            date=day,
            total_sales=money(row.total_sales if row else 0),
            total_profit=money(row.total_profit if row else 0),
        ))
    return result
