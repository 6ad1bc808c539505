from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from pos_backend import models
from pos_backend.config import Settings
from pos_backend.db import AppContext
from pos_backend.main import create_app

TEST_SETTINGS = Settings(
    database_url="sqlite://",
    pool_size=1,
    jwt_secret="test-secret",
    token_ttl_seconds=3600,
    port=0,
    log_level="WARNING",
)


@pytest.fixture(scope="function")
def context() -> Generator:
    # In-memory SQLite on a single shared connection (StaticPool)
    ctx = AppContext(TEST_SETTINGS)
    ctx.create_all()
    try:
        yield ctx
    finally:
        ctx.dispose()


@pytest.fixture(scope="function")
def db_session(context) -> Generator:
    db = context.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(context):
    with TestClient(create_app(context)) as c:
        yield c


@pytest.fixture
def auth_headers(client):
    r = client.post("/auth/register", json={"username": "owner", "password": "s3cret"})
    assert r.status_code == 201
    r = client.post("/auth/login", json={"username": "owner", "password": "s3cret"})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['token']}"}


@pytest.fixture
def menu(db_session):
    items = {
        "Latte": models.MenuItem(name="Latte", price=Decimal("25000"), stock=10, category="coffee"),
        "Croissant": models.MenuItem(name="Croissant", price=Decimal("15000"), stock=8, category="pastry"),
        "Tea": models.MenuItem(name="Tea", price=Decimal("12000"), stock=5, category="tea"),
    }
    db_session.add_all(items.values())
    db_session.commit()
    return {name: item.id for name, item in items.items()}


@pytest.fixture
def stock_of(db_session):
    def _stock_of(name: str) -> int:
        db_session.expire_all()
        return db_session.query(models.MenuItem).filter(models.MenuItem.name == name).one().stock
    return _stock_of
