# routes/reports.py
from typing import List, Optional, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from services import aggregates
from schemas.reports import (
    SalesTotals, Dashboard, TopProduct, RecentSale, CustomerBalancesResponse,
    LowStockPage, DailySalesResponse, TotalsWindow,
)

router = APIRouter(prefix="/reports", tags=["Reports"])


# -----------------------------
# 1) Dashboard
# -----------------------------
@router.get("/dashboard", response_model=Dashboard)
def report_dashboard(db: Session = Depends(get_db)):
    return aggregates.dashboard(db)


@router.get("/totals", response_model=SalesTotals)
def report_totals(
    window: TotalsWindow = Query("all"),
    db: Session = Depends(get_db),
):
    return aggregates.sales_totals(db, window)


@router.get("/top-products", response_model=List[TopProduct])
def report_top_products(
    limit: int = Query(5, ge=1, le=50),
    window: TotalsWindow = Query("all"),
    db: Session = Depends(get_db),
):
    return aggregates.top_products(db, limit=limit, window=window)


@router.get("/recent-sales", response_model=List[RecentSale])
def report_recent_sales(
    limit: int = Query(5, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return aggregates.recent_sales(db, limit=limit)


# -----------------------------
# 2) Customer balances
# -----------------------------
@router.get("/customer-balances", response_model=CustomerBalancesResponse)
def report_customer_balances(
    q: Optional[str] = Query(None, description="Search by customer name"),
    sort_by: Literal["balance", "name", "date"] = Query("balance"),
    db: Session = Depends(get_db),
):
    return aggregates.customer_balances(db, search=q, sort_by=sort_by)


# -----------------------------
# 3) Low stock
# -----------------------------
@router.get("/low-stock", response_model=LowStockPage)
def report_low_stock(
    q: Optional[str] = Query(None, description="Search by name or code"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    items, total = aggregates.low_stock(db, q=q, page=page, page_size=page_size)
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/daily-sales", response_model=DailySalesResponse)
def report_daily_sales(
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db),
):
    return DailySalesResponse(data=aggregates.daily_sales(db, days=days))
