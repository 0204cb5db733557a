import pytest
from sqlalchemy.exc import OperationalError

from config import settings
from models.log import Log
from models.product import Product
from models.sale import Sale
from models.stock import StockMovement
from schemas.sale import SaleLineCreate
from services import ledger
from services import sales as sale_service
from services.errors import ValidationError, NotFoundError, InsufficientStockError, PartialFailureError


def _line(product, quantity, discount_type="none", discount_value=0.0):
    return SaleLineCreate(product_id=product.id, quantity=quantity,
                          discount_type=discount_type, discount_value=discount_value)


def test_price_line_with_percentage_discount():
    product = Product(selling_price=1000.0, buying_price=600.0)

    priced = sale_service.price_line(product, 3, "percentage", 10)

    assert priced.original_total == 3000.0
    assert priced.discount_amount == 300.0
    assert priced.final_total == 2700.0
    assert priced.final_unit_price == 900.0
    assert priced.profit == 900.0


def test_price_line_fixed_discount_is_capped_at_line_total():
    product = Product(selling_price=20.0, buying_price=5.0)

    priced = sale_service.price_line(product, 2, "amount", 75)

    assert priced.discount_amount == 40.0
    assert priced.discount_percentage == 100.0
    assert priced.final_total == 0.0
    assert priced.profit == -10.0


def test_price_line_rounds_money_to_cents():
    product = Product(selling_price=9.99, buying_price=3.333)

    priced = sale_service.price_line(product, 3, "percentage", 15)

    assert priced.original_total == 29.97
    assert priced.discount_amount == 4.5
    assert priced.final_total == 25.47


def test_record_sale_writes_lines_and_debits_stock(db, make_product):
    novel = make_product(stock=10, selling_price=1000.0, buying_price=600.0)
    atlas = make_product(stock=4, selling_price=50.0, buying_price=30.0)

    receipt = sale_service.record_sale(
        db,
        [_line(novel, 3, "percentage", 10), _line(atlas, 1)],
        payment_method="Card",
        sold_by="Ana",
    )

    assert receipt.grand_total == 2750.0
    assert receipt.total_profit == 920.0
    assert receipt.subtotal == 3050.0
    assert receipt.total_discount == 300.0
    assert receipt.balance_due == 0.0
    assert [l.payment_status for l in receipt.lines] == ["paid", "paid"]

    assert ledger.current_quantity(db, novel.id) == 7
    assert ledger.current_quantity(db, atlas.id) == 3

    lines = db.query(Sale).filter(Sale.transaction_id == receipt.transaction_id).all()
    assert len(lines) == 2
    sale_movements = db.query(StockMovement).filter(StockMovement.reason == "sale").all()
    assert sorted(m.quantity_change for m in sale_movements) == [-3, -1]
    assert {m.reference_id for m in sale_movements} == {receipt.transaction_id}
    assert ledger.reconciliation(db, only_drift=True) == []


def test_lines_for_same_product_are_checked_together(db, make_product):
    novel = make_product(stock=10)

    with pytest.raises(InsufficientStockError) as err:
        sale_service.record_sale(db, [_line(novel, 6), _line(novel, 5)], "Cash", "Ana")

    assert err.value.requested == 11
    assert ledger.current_quantity(db, novel.id) == 10
    assert db.query(Sale).count() == 0
    assert db.query(StockMovement).filter(StockMovement.reason == "sale").count() == 0


def test_sale_of_whole_stock_is_allowed(db, make_product):
    novel = make_product(stock=10)

    sale_service.record_sale(db, [_line(novel, 6), _line(novel, 4)], "Cash", "Ana")

    assert ledger.current_quantity(db, novel.id) == 0


def test_unknown_product_rejects_whole_sale(db, make_product):
    novel = make_product(stock=10)

    with pytest.raises(NotFoundError):
        sale_service.record_sale(
            db, [_line(novel, 1), SaleLineCreate(product_id=777, quantity=1)], "Cash", "Ana"
        )

    assert ledger.current_quantity(db, novel.id) == 10
    assert db.query(Sale).count() == 0


@pytest.mark.parametrize("lines_kwargs, sold_by, payment_method", [
    ([{"quantity": 1}], "", "Cash"),
    ([{"quantity": 1}], "Ana", " "),
    ([], "Ana", "Cash"),
    ([{"quantity": 0}], "Ana", "Cash"),
    ([{"quantity": 1, "discount_type": "percentage", "discount_value": 120}], "Ana", "Cash"),
    ([{"quantity": 1, "discount_type": "amount", "discount_value": -5}], "Ana", "Cash"),
])
def test_invalid_sale_input_is_rejected(db, make_product, lines_kwargs, sold_by, payment_method):
    novel = make_product(stock=10)
    lines = [SaleLineCreate(product_id=novel.id, **kw) for kw in lines_kwargs]

    with pytest.raises(ValidationError):
        sale_service.record_sale(db, lines, payment_method, sold_by)

    assert ledger.current_quantity(db, novel.id) == 10


def test_partial_payment_is_spread_over_lines(db, make_product):
    novel = make_product(stock=5, selling_price=100.0)
    atlas = make_product(stock=5, selling_price=50.0)

    receipt = sale_service.record_sale(
        db, [_line(novel, 1), _line(atlas, 1)], "Cash", "Ana",
        customer_name="Mila Kovac", amount_paid=120.0,
    )

    assert [(l.amount_paid, l.payment_status) for l in receipt.lines] == [
        (100.0, "paid"),
        (20.0, "partial"),
    ]
    assert receipt.amount_paid == 120.0
    assert receipt.balance_due == 30.0
    assert receipt.customer_name == "Mila Kovac"


def test_unpaid_sale_marks_lines_not_paid(db, make_product):
    novel = make_product(stock=5, selling_price=100.0)

    receipt = sale_service.record_sale(
        db, [_line(novel, 2)], "Credit", "Ana", customer_name="Mila Kovac", amount_paid=0,
    )

    assert receipt.lines[0].payment_status == "not_paid"
    assert receipt.balance_due == 200.0


def test_credit_sale_needs_customer_and_no_overpayment(db, make_product):
    novel = make_product(stock=5, selling_price=100.0)

    with pytest.raises(ValidationError):
        sale_service.record_sale(db, [_line(novel, 1)], "Cash", "Ana", amount_paid=50.0)
    with pytest.raises(ValidationError):
        sale_service.record_sale(db, [_line(novel, 1)], "Cash", "Ana", amount_paid=150.0)

    assert db.query(Sale).count() == 0


def test_backorders_let_sales_go_below_floor(db, make_product, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_BACKORDER", True)
    novel = make_product(stock=2)

    sale_service.record_sale(db, [_line(novel, 5)], "Cash", "Ana")

    assert ledger.current_quantity(db, novel.id) == -3
    assert ledger.reconciliation(db, only_drift=True) == []


def test_transactions_group_lines_of_one_checkout(db, make_product):
    novel = make_product(stock=10, selling_price=10.0, buying_price=4.0)
    atlas = make_product(stock=10, selling_price=20.0, buying_price=5.0)
    first = sale_service.record_sale(db, [_line(novel, 1), _line(atlas, 2)], "Cash", "Ana")
    second = sale_service.record_sale(db, [_line(novel, 3)], "Card", "Marko")

    items, total = sale_service.list_transactions(db)

    assert total == 2
    assert [t.transaction_id for t in items] == [second.transaction_id, first.transaction_id]
    grouped = items[1]
    assert grouped.item_count == 2
    assert grouped.total_amount == 50.0
    assert grouped.total_profit == 36.0
    assert not grouped.is_compensating

    by_staff, total = sale_service.list_transactions(db, sold_by="Marko")
    assert total == 1
    assert by_staff[0].items[0].product_name == novel.name


def test_get_transaction_and_list_sales(db, make_product):
    novel = make_product(stock=10, name="Dune")
    receipt = sale_service.record_sale(db, [_line(novel, 2)], "Cash", "Ana", customer_name="Luka")

    tx = sale_service.get_transaction(db, receipt.transaction_id)
    assert tx.customer_name == "Luka"
    assert tx.items[0].quantity_sold == 2

    items, total = sale_service.list_sales(db, q="dune")
    assert total == 1
    assert items[0].product_name == "Dune"

    with pytest.raises(NotFoundError):
        sale_service.get_transaction(db, "does-not-exist")


def test_stock_lost_after_the_check_rolls_back_the_whole_checkout(db, make_product, monkeypatch):
    novel = make_product(stock=10)
    atlas = make_product(stock=3)
    real_apply = ledger.apply_movement
    debited = []

    def racing_apply(session, product_id, delta, *args, **kwargs):
        debited.append(product_id)
        if product_id == atlas.id:
            # Another till sells two copies between the stock check and this debit
            session.query(Product).filter(Product.id == atlas.id).update(
                {"quantity_in_stock": 1}, synchronize_session=False
            )
        return real_apply(session, product_id, delta, *args, **kwargs)

    monkeypatch.setattr(ledger, "apply_movement", racing_apply)

    with pytest.raises(InsufficientStockError):
        sale_service.record_sale(db, [_line(novel, 2), _line(atlas, 3)], "Cash", "Ana")

    assert debited == [novel.id, atlas.id]
    assert ledger.current_quantity(db, novel.id) == 10
    assert db.query(Sale).count() == 0
    assert db.query(StockMovement).filter(StockMovement.reason == "sale").count() == 0
    assert db.query(Log).filter(Log.action == "SALE_RECORD").count() == 0


def test_store_failure_mid_checkout_leaves_no_lines(db, make_product, monkeypatch):
    novel = make_product(stock=10)
    atlas = make_product(stock=10)
    real_apply = ledger.apply_movement
    calls = []

    def flaky_apply(*args, **kwargs):
        calls.append(args)
        if len(calls) == 2:
            raise OperationalError("UPDATE products", {}, Exception("disk I/O error"))
        return real_apply(*args, **kwargs)

    monkeypatch.setattr(ledger, "apply_movement", flaky_apply)

    with pytest.raises(PartialFailureError) as err:
        sale_service.record_sale(db, [_line(novel, 2), _line(atlas, 1)], "Cash", "Ana")

    assert err.value.step == "record_sale"
    assert ledger.current_quantity(db, novel.id) == 10
    assert ledger.current_quantity(db, atlas.id) == 10
    assert db.query(Sale).count() == 0
    assert db.query(StockMovement).filter(StockMovement.reason == "sale").count() == 0
