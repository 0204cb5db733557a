from datetime import datetime

import pytest

from models.sale import Sale
from schemas.sale import SaleLineCreate
from services import aggregates
from services import returns as return_service
from services import sales as sale_service
from services.errors import ValidationError


def _sell(db, product, quantity, customer_name=None, amount_paid=None, sold_by="Ana"):
    return sale_service.record_sale(
        db, [SaleLineCreate(product_id=product.id, quantity=quantity)], "Cash", sold_by,
        customer_name=customer_name, amount_paid=amount_paid,
    )


def test_window_start():
    now = datetime(2026, 5, 17, 15, 30)

    assert aggregates.window_start("all", now) is None
    assert aggregates.window_start("today", now) == datetime(2026, 5, 17)
    assert aggregates.window_start("month", now) == datetime(2026, 5, 1)
    assert aggregates.window_start("year", now) == datetime(2026, 1, 1)
    with pytest.raises(ValidationError):
        aggregates.window_start("week", now)


def test_totals_cover_every_line_not_just_recent_ones(db, make_product):
    novel = make_product(stock=50, selling_price=10.0, buying_price=4.0)
    for _ in range(8):
        _sell(db, novel, 1)

    totals = aggregates.sales_totals(db)
    recent = aggregates.recent_sales(db)

    assert len(recent) == 5
    assert totals.total_sales == 80.0
    assert totals.total_profit == 48.0
    assert totals.sale_lines == 8
    assert totals.units_sold == 8
    assert aggregates.sales_totals(db, "today").total_sales == 80.0
    assert aggregates.sales_totals(db, "year", now=datetime(2000, 6, 1)).total_sales == 80.0


def test_top_products_rank_by_net_sales(db, make_product):
    cheap = make_product(stock=50, selling_price=5.0, name="Pamphlet")
    dear = make_product(stock=50, selling_price=40.0, name="Atlas")
    returned = make_product(stock=50, selling_price=30.0, name="Returned a lot")
    _sell(db, cheap, 4)
    _sell(db, dear, 2)
    sale_id = _sell(db, returned, 3).lines[0].sale_id
    return_service.record_return(db, returned.id, 3, None, None, "Cash", "Ivana", sale_id=sale_id)

    top = aggregates.top_products(db, limit=3)

    assert [(t.product_name, t.total_sales, t.total_quantity_sold) for t in top] == [
        ("Atlas", 80.0, 2),
        ("Pamphlet", 20.0, 4),
        ("Returned a lot", 0.0, 0),
    ]
    assert len(aggregates.top_products(db, limit=1)) == 1


def test_balance_within_tolerance_is_settled(db, make_product):
    book = make_product(stock=5, selling_price=1000.0)
    _sell(db, book, 1, customer_name="Petra", amount_paid=999.995)

    balances = aggregates.customer_balances(db)

    assert balances.items == []
    assert balances.total_outstanding == 0.0


def test_balance_above_tolerance_is_outstanding(db, make_product):
    book = make_product(stock=5, selling_price=1000.0)
    _sell(db, book, 1, customer_name="Petra", amount_paid=999.98)

    balances = aggregates.customer_balances(db)

    assert balances.customer_count == 1
    assert balances.items[0].customer_name == "Petra"
    assert balances.items[0].outstanding_balance == 0.02
    assert balances.items[0].payment_status == "partial"


def test_customer_balances_roll_up_and_sort(db, make_product):
    book = make_product(stock=20, selling_price=100.0)
    _sell(db, book, 1, customer_name="Zoran", amount_paid=0)
    _sell(db, book, 2, customer_name="Zoran", amount_paid=50)
    _sell(db, book, 1, customer_name="Ana Maria", amount_paid=70)
    _sell(db, book, 1, customer_name="Paid Up", amount_paid=100)
    _sell(db, book, 1)

    balances = aggregates.customer_balances(db)

    assert [(c.customer_name, c.outstanding_balance, c.transaction_count, c.payment_status)
            for c in balances.items] == [
        ("Zoran", 250.0, 2, "mixed"),
        ("Ana Maria", 30.0, 1, "partial"),
    ]
    assert balances.total_outstanding == 280.0

    by_name = aggregates.customer_balances(db, sort_by="name")
    assert [c.customer_name for c in by_name.items] == ["Ana Maria", "Zoran"]

    searched = aggregates.customer_balances(db, search="zor")
    assert [c.customer_name for c in searched.items] == ["Zoran"]

    with pytest.raises(ValidationError):
        aggregates.customer_balances(db, sort_by="age")


def test_returns_do_not_create_customer_debt(db, make_product):
    book = make_product(stock=5, selling_price=100.0)
    return_service.record_return(db, book.id, 1, None, None, "Cash", "Ivana")

    assert aggregates.customer_balances(db).items == []


def test_low_stock_lists_products_at_or_under_reorder_level(db, make_product):
    make_product(stock=10, reorder_level=3, name="Plenty")
    at_level = make_product(stock=3, reorder_level=3, name="At level")
    empty = make_product(stock=0, reorder_level=1, name="Empty")

    items, total = aggregates.low_stock(db)

    assert total == 2
    assert [i.product_id for i in items] == [empty.id, at_level.id]
    assert aggregates.low_stock(db, q="empty")[1] == 1


def test_dashboard_and_daily_sales(db, make_product):
    book = make_product(stock=10, selling_price=25.0, buying_price=10.0, reorder_level=9)
    _sell(db, book, 2)

    board = aggregates.dashboard(db)
    assert board.all_time.total_sales == 50.0
    assert board.total_products == 1
    assert board.low_stock_count == 1
    assert board.top_products[0].product_id == book.id
    assert board.recent_sales[0].quantity_sold == 2

    days = aggregates.daily_sales(db, days=7)
    assert len(days) == 7
    assert days[-1].date == aggregates.utc_now().date()
    assert aggregates.utc_now().tzinfo is None
    assert sum(d.total_sales for d in days) == 50.0
    assert sum(d.total_profit for d in days) == 30.0
    assert db.query(Sale).count() == 1
