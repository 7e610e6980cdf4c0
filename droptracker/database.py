from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from droptracker.config import get_settings
import logging

logger = logging.getLogger(__name__)
settings = get_settings()

db_url = settings.database_url
is_sqlite = db_url.startswith("sqlite")

engine = create_engine(
    db_url,
    connect_args={"check_same_thread": False} if is_sqlite else {},
)


# Without this SQLite ignores foreign keys entirely
if is_sqlite:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    Create any missing tables and indexes from model metadata.

    Runs for every backend, so a fresh Postgres database gets the same schema
    (including the open-request partial index) as SQLite.
    """
    # Models register themselves on Base when imported
    import droptracker.models  # noqa: F401

    if bind is None:
        bind = engine
        if is_sqlite and db_url.startswith("sqlite:///./"):
            import os
            os.makedirs(os.path.dirname(db_url[len("sqlite:///"):]) or ".", exist_ok=True)

    Base.metadata.create_all(bind=bind)
    logger.info(f"Database tables ensured ({len(Base.metadata.sorted_tables)} tables)")
