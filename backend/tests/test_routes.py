def _create_product(client, code="BK-001", name="Dune", opening_quantity=10, **extra):
    payload = {
        "code": code,
        "name": name,
        "category": "Fiction",
        "buying_price": 60.0,
        "selling_price": 100.0,
        "reorder_level": 2,
        "opening_quantity": opening_quantity,
        "created_by": "Ana",
    }
    payload.update(extra)
    res = client.post("/products", json=payload)
    assert res.status_code == 201, res.text
    return res.json()


def test_root(client):
    res = client.get("/")
    assert res.status_code == 200
    assert "ledger API is running" in res.json()["message"]


def test_product_lifecycle(client):
    product = _create_product(client, code="bk-001")
    assert product["code"] == "BK-001"
    assert product["quantity_in_stock"] == 10
    assert product["is_low_stock"] is False

    listing = client.get("/products", params={"q": "dune"}).json()
    assert listing["total"] == 1

    duplicate = client.post("/products", json={
        "code": "BK-001", "name": "Other", "selling_price": 1.0,
    })
    assert duplicate.status_code == 400
    assert duplicate.json()["error"] == "ValidationError"

    assert client.get(f"/products/{product['id']}").status_code == 200
    deleted = client.delete(f"/products/{product['id']}", params={"actor": "Ana"}).json()
    assert deleted["movements_removed"] == 1

    missing = client.get(f"/products/{product['id']}")
    assert missing.status_code == 404
    assert missing.json()["meta"] == {"resource": "Product", "id": product["id"]}


def test_receive_and_adjust_stock(client):
    product = _create_product(client, opening_quantity=0)

    res = client.post("/stock/receive", json={
        "items": [{"product_id": product["id"], "quantity": 8}],
        "received_by": "Marko",
    })
    assert res.status_code == 201, res.text
    assert res.json()["lines"][0]["quantity_in_stock"] == 8

    bad = client.post("/stock/receive", json={
        "items": [{"product_id": product["id"], "quantity": 1}, {"product_id": 999, "quantity": 1}],
        "received_by": "Marko",
    })
    assert bad.status_code == 404

    adjusted = client.post("/stock/adjust", json={
        "product_id": product["id"], "quantity_change": -2, "actor": "Marko", "notes": "Shelf count",
    })
    assert adjusted.status_code == 201, adjusted.text
    assert adjusted.json()["reason"] == "adjustment"
    assert adjusted.json()["product_code"] == "BK-001"

    movements = client.get("/stock/movements", params={"filter": "receipt"}).json()
    assert movements["total"] == 1

    recon = client.get("/stock/reconciliation").json()
    assert recon["products_checked"] == 1
    assert recon["products_with_drift"] == 0
    assert recon["items"][0]["quantity_in_stock"] == 6


def test_sale_return_and_undo_over_http(client):
    product = _create_product(client)

    sale = client.post("/sales", json={
        "items": [{"product_id": product["id"], "quantity": 3, "discount_type": "percentage", "discount_value": 10}],
        "payment_method": "Card",
        "sold_by": "Ana",
    })
    assert sale.status_code == 201, sale.text
    receipt = sale.json()
    assert receipt["grand_total"] == 270.0
    sale_id = receipt["lines"][0]["sale_id"]

    oversell = client.post("/sales", json={
        "items": [{"product_id": product["id"], "quantity": 8}],
        "sold_by": "Ana",
    })
    assert oversell.status_code == 409
    assert oversell.json()["error"] == "InsufficientStockError"
    assert oversell.json()["meta"]["requested"] == 8

    no_staff = client.post("/sales", json={"items": [{"product_id": product["id"], "quantity": 1}]})
    assert no_staff.status_code == 400

    ret = client.post("/returns", json={
        "product_id": product["id"], "quantity": 1, "processed_by": "Ivana", "sale_id": sale_id,
    })
    assert ret.status_code == 201, ret.text
    assert ret.json()["total_refund"] == 90.0

    tx = client.get(f"/sales/transactions/{receipt['transaction_id']}").json()
    assert tx["item_count"] == 1

    grouped = client.get("/sales/transactions", params={"include_compensating": False}).json()
    assert grouped["total"] == 1

    assert client.delete(f"/returns/{ret.json()['return_id']}").status_code == 200
    assert client.delete(f"/sales/{sale_id}").status_code == 200
    again = client.delete(f"/sales/{sale_id}")
    assert again.status_code == 404

    totals = client.get("/reports/totals").json()
    assert totals["total_sales"] == 0.0
    assert client.get(f"/products/{product['id']}").json()["quantity_in_stock"] == 10


def test_reports_endpoints(client):
    product = _create_product(client, opening_quantity=5)
    client.post("/sales", json={
        "items": [{"product_id": product["id"], "quantity": 4}],
        "sold_by": "Ana",
        "customer_name": "Petra",
        "amount_paid": 150,
    })

    board = client.get("/reports/dashboard").json()
    assert board["all_time"]["total_sales"] == 400.0
    assert board["low_stock_count"] == 1

    balances = client.get("/reports/customer-balances").json()
    assert balances["items"][0]["outstanding_balance"] == 250.0

    low = client.get("/reports/low-stock").json()
    assert low["items"][0]["quantity_in_stock"] == 1

    assert len(client.get("/reports/daily-sales", params={"days": 3}).json()["data"]) == 3
    assert client.get("/reports/top-products").json()[0]["total_quantity_sold"] == 4
    assert len(client.get("/reports/recent-sales").json()) == 1
    assert client.get("/reports/totals", params={"window": "decade"}).status_code == 422


def test_logs_record_ledger_events(client):
    _create_product(client)

    logs = client.get("/logs", params={"action": "PRODUCT_CREATE"}).json()
    assert logs["total"] == 1
    assert logs["items"][0]["actor"] == "Ana"
    assert logs["items"][0]["status"] == "SUCCESS"

    bad_date = client.get("/logs", params={"date_from": "yesterday"})
    assert bad_date.status_code == 400
