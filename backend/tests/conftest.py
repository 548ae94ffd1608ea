"""
Pytest configuration and fixtures for the stock service tests.
"""
import os
from collections.abc import Generator

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-only"
os.environ["LOCAL_TIMEZONE"] = "Europe/Istanbul"

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from physio_stock.db.base import Base
from physio_stock.db.session import get_engine, get_session_factory
from physio_stock.main import app
from physio_stock.models.user import User
from physio_stock.services.catalog import CatalogService
from physio_stock.services.gateway import SqlGateway
from physio_stock.services.ledger import StockLedger
from physio_stock.services.query_cache import QueryCache


@pytest.fixture(autouse=True)
def schema() -> Generator[None, None, None]:
    """Fresh tables for every test on the shared in-memory database."""
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    app.state.query_cache = QueryCache()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db: Session) -> User:
    account = User(email="fizyo@example.com", hashed_password="not-used")
    db.add(account)
    db.commit()
    return account


@pytest.fixture
def gateway(db: Session, user: User) -> SqlGateway:
    return SqlGateway(db, owner_id=user.id)


@pytest.fixture
def catalog(gateway: SqlGateway) -> CatalogService:
    return CatalogService(gateway)


@pytest.fixture
def ledger(gateway: SqlGateway) -> StockLedger:
    return StockLedger(gateway)


@pytest.fixture
def item(catalog: CatalogService) -> dict:
    """An item with zero stock in a fresh category."""
    category, _ = catalog.create_category("Bandajlar")
    row, _ = catalog.create_item(category["id"], "Bandage")
    return row


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth_headers(client: TestClient) -> dict:
    credentials = {"email": "terapist@example.com", "password": "gizli123"}
    response = client.post(
        "/api/v1/auth/register",
        json={**credentials, "confirm_password": credentials["password"]},
    )
    assert response.status_code == 201
    response = client.post("/api/v1/auth/login", json=credentials)
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
