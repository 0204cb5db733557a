import os

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from database import Base, init_db

ALEMBIC_DIR = os.path.join(os.path.dirname(__file__), "..", "alembic")


def _alembic_config(url):
    cfg = Config()
    cfg.set_main_option("script_location", os.path.abspath(ALEMBIC_DIR))
    cfg.set_main_option("sqlalchemy.url", url)
    return cfg


def test_initial_revision_matches_the_models(tmp_path):
    url = f"sqlite:///{tmp_path / 'ledger.db'}"
    cfg = _alembic_config(url)
    init_db(bind=create_engine("sqlite://"))  # registers every model on Base.metadata

    command.upgrade(cfg, "head")

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        for table in Base.metadata.sorted_tables:
            migrated = {c["name"] for c in inspector.get_columns(table.name)}
            assert migrated == {c.name for c in table.columns}, table.name

        command.downgrade(cfg, "base")
        assert inspect(engine).get_table_names() == ["alembic_version"]
    finally:
        engine.dispose()
