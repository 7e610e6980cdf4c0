"""
Test fixtures for Droptracker tests.
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from httpx import AsyncClient, ASGITransport

from droptracker.config import Settings
from droptracker.database import Base, get_db
from droptracker.main import app
from droptracker.models import AirlineAccount, User
from droptracker.services.flights import FlightService


# Create test database engine (SQLite in-memory)
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False}
)


# Enable foreign key constraints for SQLite
@event.listens_for(test_engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=test_engine)

    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def override_get_db(db_session):
    """
    Override the get_db dependency to use the test database session.
    """
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    return _override_get_db


@pytest.fixture(scope="function")
async def client(override_get_db):
    """
    Create an async test client with the database dependency overridden.
    """
    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def settings():
    """Settings with pushes off and no fare API keys."""
    return Settings(
        database_url="sqlite:///:memory:",
        scheduler_enabled=False,
        flightlabs_api_key="",
        serpapi_key="",
        ntfy_enabled=False,
    )


@pytest.fixture
def user(db_session):
    user = User(email="traveler@example.com", first_name="Sam", last_name="Rivera")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def delta_user(db_session, user):
    """The ``user`` fixture with a linked Delta account."""
    db_session.add(AirlineAccount(user_id=user.id, airline="delta", username="srivera"))
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def flight(db_session, user):
    """An active Delta flight booked at $500, with its baseline recorded."""
    return FlightService(db_session).create_flight(
        user_id=user.id,
        airline="delta",
        flight_number="DL1234",
        origin="ATL",
        destination="LAX",
        departure_date=date.today() + timedelta(days=30),
        original_price=Decimal("500.00"),
        confirmation_code="ABC123",
    )
