# backend/database.py
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

from config import settings
from services.errors import PartialFailureError

load_dotenv()

# 1. Database URL from the environment (.env) or the local SQLite default
SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

# 2. SQLAlchemy requires postgresql:// rather than the legacy postgres:// scheme
if SQLALCHEMY_DATABASE_URL and SQLALCHEMY_DATABASE_URL.startswith("postgres://"):
    SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace("postgres://", "postgresql://", 1)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def build_engine(url: str):
    """Create an engine with the connection options the given backend needs."""
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}  # SQLite only
        if _is_memory_sqlite(url):
            # One shared connection, otherwise every session gets an empty database
            kwargs["poolclass"] = StaticPool

    new_engine = create_engine(url, **kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(new_engine, "connect")
        def _enable_sqlite_fk(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = build_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None):
    # Register every model on Base.metadata before creating tables
    import models.product  # noqa: F401
    import models.stock  # noqa: F401
    import models.sale  # noqa: F401
    import models.returns  # noqa: F401
    import models.log  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def atomic(db, step: str = "write"):
    """Run a block of writes as one unit: commit on success, roll back on any error.

    Store failures are re-raised as ``PartialFailureError`` naming the step that
    failed; by the time it propagates the whole unit has been rolled back.
    """
    try:
        yield
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PartialFailureError(
            f"Store failure during '{step}'; all changes were rolled back",
            step=step,
        ) from exc
    except Exception:
        db.rollback()
        raise
