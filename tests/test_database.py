"""Tests for schema creation."""
from unittest.mock import patch

from sqlalchemy import create_engine, inspect
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex

from droptracker import main as main_module
from droptracker.config import Settings
from droptracker.database import init_db
from droptracker.models import EcreditRequest

OPEN_INDEX = "uq_ecredit_requests_open_per_flight"


class TestInitDb:
    def test_creates_tables_and_open_request_index(self):
        engine = create_engine("sqlite:///:memory:")
        try:
            init_db(bind=engine)

            inspector = inspect(engine)
            assert {"users", "flights", "price_history", "ecredit_requests", "notifications"} <= set(
                inspector.get_table_names()
            )
            indexes = {ix["name"]: ix for ix in inspector.get_indexes("ecredit_requests")}
            assert indexes[OPEN_INDEX]["unique"]
        finally:
            engine.dispose()

    def test_init_db_is_repeatable(self):
        engine = create_engine("sqlite:///:memory:")
        try:
            init_db(bind=engine)
            init_db(bind=engine)
        finally:
            engine.dispose()

    def test_postgres_index_is_partial(self):
        index = next(ix for ix in EcreditRequest.__table__.indexes if ix.name == OPEN_INDEX)

        ddl = str(CreateIndex(index).compile(dialect=postgresql.dialect()))

        assert "CREATE UNIQUE INDEX" in ddl
        assert "WHERE status IN ('pending', 'in_progress')" in ddl


class TestLifespan:
    async def test_schema_created_for_non_sqlite_backend(self, monkeypatch):
        prod = Settings(env="prod", database_url="postgresql://u:p@db/droptracker", scheduler_enabled=False)
        monkeypatch.setattr(main_module, "settings", prod)

        with patch.object(main_module, "init_db") as init_db_mock:
            async with main_module.lifespan(main_module.app):
                pass

        init_db_mock.assert_called_once_with()
