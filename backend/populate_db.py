import os
import random
import sys

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

# Database setup and ledger services
from database import SessionLocal, init_db
from models.product import Product
from schemas.product import ProductCreate
from schemas.sale import SaleLineCreate
from schemas.stock import ReceiptLine
from services import ledger
from services import products as product_service
from services import returns as return_service
from services import sales as sale_service
from services import stock as stock_service

# Configuration
SALES_COUNT = 40  # Number of checkouts to simulate
RANDOM_SEED = 7
STAFF = ["Ana", "Marko", "Ivana"]
CUSTOMERS = ["Petra Horvat", "Luka Babic", "Mila Kovac"]

# code, name, category, buying price, selling price, opening stock, reorder level
CATALOGUE = [
    ("FIC-001", "The Name of the Rose", "Fiction", 7.50, 14.90, 12, 3),
    ("FIC-002", "One Hundred Years of Solitude", "Fiction", 8.20, 15.50, 10, 3),
    ("FIC-003", "The Master and Margarita", "Fiction", 6.90, 13.00, 8, 2),
    ("SCI-001", "A Brief History of Time", "Science", 9.00, 18.00, 6, 2),
    ("SCI-002", "The Selfish Gene", "Science", 8.50, 16.90, 5, 2),
    ("KID-001", "The Little Prince", "Children", 4.10, 8.90, 20, 5),
    ("KID-002", "Matilda", "Children", 4.50, 9.50, 15, 5),
    ("REF-001", "Oxford English Dictionary (Concise)", "Reference", 21.00, 39.00, 4, 1),
    ("TRV-001", "Lonely Planet Croatia", "Travel", 12.00, 24.50, 6, 2),
    ("ART-001", "The Story of Art", "Art", 18.00, 34.00, 3, 1),
]
# End Configuration


def _create_catalogue(db):
    products = []
    for code, name, category, buying, selling, opening, reorder in CATALOGUE:
        products.append(product_service.create_product(db, ProductCreate(
            code=code,
            name=name,
            category=category,
            buying_price=buying,
            selling_price=selling,
            opening_quantity=opening,
            reorder_level=reorder,
            created_by="seed",
        )))
    return products


def _random_lines(db, rng, products):
    """One to three distinct in-stock products, one or two units each."""
    in_stock = [p for p in products if ledger.current_quantity(db, p.id) > 0]
    if not in_stock:
        return []
    lines = []
    for product in rng.sample(in_stock, k=min(len(in_stock), rng.randint(1, 3))):
        qty = min(rng.randint(1, 2), ledger.current_quantity(db, product.id))
        discount_type, discount_value = "none", 0.0
        if rng.random() < 0.2:
            discount_type, discount_value = "percentage", float(rng.choice([5, 10, 15]))
        lines.append(SaleLineCreate(
            product_id=product.id, quantity=qty,
            discount_type=discount_type, discount_value=discount_value,
        ))
    return lines


def seed(db, sales_count=SALES_COUNT, rng=None):
    """Populate an empty database with a catalogue, restocks, sales and a few returns."""
    rng = rng or random.Random(RANDOM_SEED)

    if db.query(Product).count():
        print("Database already contains products, skipping seed.")
        return None

    products = _create_catalogue(db)
    summary = {"products": len(products), "sales": 0, "returns": 0, "receipts": 0}

    for i in range(sales_count):
        lines = _random_lines(db, rng, products)
        if not lines:
            break

        # Every fifth checkout is put on a customer's tab
        customer_name, amount_paid = None, None
        if i % 5 == 4:
            customer_name = rng.choice(CUSTOMERS)
            total = sum(
                sale_service.price_line(db.get(Product, l.product_id), l.quantity,
                                        l.discount_type, l.discount_value).final_total
                for l in lines
            )
            amount_paid = round(total * rng.choice([0.0, 0.5]), 2)

        receipt = sale_service.record_sale(
            db, lines, rng.choice(["Cash", "Card"]), rng.choice(STAFF),
            customer_name=customer_name, amount_paid=amount_paid,
        )
        summary["sales"] += 1

        if rng.random() < 0.1:
            line = receipt.lines[0]
            return_service.record_return(
                db, line.product_id, 1, condition="Sealed", reason="Changed mind",
                payment_method=receipt.payment_method, processed_by=rng.choice(STAFF),
                sale_id=line.sale_id,
            )
            summary["returns"] += 1

        # Restock whatever dropped to its reorder level
        low = [p for p in products if ledger.current_quantity(db, p.id) <= p.reorder_level]
        if low:
            stock_service.receive_stock(
                db,
                [ReceiptLine(product_id=p.id, quantity=p.reorder_level * 3 + 2) for p in low],
                received_by=rng.choice(STAFF),
                notes="Publisher delivery",
            )
            summary["receipts"] += 1

    return summary


if __name__ == "__main__":
    init_db()
    session = SessionLocal()
    try:
        result = seed(session)
        if result:
            print(f"Seed complete: {result}")
    finally:
        session.close()
