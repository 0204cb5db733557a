import itertools
import os
import sys

import pytest


# Allow running pytest from either the repo root or from within `backend/`.
# Modules import each other as top-level names (`database`, `services.*`).
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

# The application engine must never point at a real database during tests
os.environ["DATABASE_URL"] = "sqlite://"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from database import build_engine, init_db, get_db  # noqa: E402
from schemas.product import ProductCreate  # noqa: E402
from services import products as product_service  # noqa: E402


@pytest.fixture
def engine():
    # Fresh in-memory database per test
    eng = build_engine("sqlite://")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    """Factory creating catalogue rows with opening stock booked as a movement."""
    counter = itertools.count(1)

    def _make(stock=10, selling_price=100.0, buying_price=60.0, reorder_level=0,
              name=None, code=None, category="Fiction"):
        n = next(counter)
        return product_service.create_product(db, ProductCreate(
            code=code or f"BK-{n:03d}",
            name=name or f"Book {n}",
            category=category,
            buying_price=buying_price,
            selling_price=selling_price,
            reorder_level=reorder_level,
            opening_quantity=stock,
            created_by="tester",
        ))

    return _make
