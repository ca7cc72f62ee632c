"""
Shared pytest fixtures for storesync tests.

Provides:
- Isolated file-based SQLite database per test
- FastAPI TestClient with the DB dependency overridden
- Tenant fixtures and a fake Shopify connector
"""

import os

# Must be set before storesync.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

import pytest
from typing import Generator
from unittest.mock import patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from storesync.database import Base, get_db
from storesync.main import app
from storesync.middleware.rate_limit import get_store
from storesync.models import Tenant
from storesync.pipeline.leases import TenantLeases

from tests.fixtures.factories import create_tenant
from tests.fixtures.data import demo_shop
from tests.mocks.fake_shopify import FakeShopify


# ============================================
# Database Fixtures
# ============================================


@pytest.fixture(scope="function")
def test_engine(tmp_path):
    """
    Create an isolated SQLite database engine for each test.

    File-based so the scheduler and lease tests can open several connections.
    """
    db_path = tmp_path / "test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    import storesync.models  # noqa: F401

    Base.metadata.create_all(bind=test_engine)
    yield sessionmaker(bind=test_engine, autoflush=False)
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def test_db(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(test_db: Session) -> Generator[TestClient, None, None]:
    """FastAPI TestClient using the test_db session."""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    get_store().reset()

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    get_store().reset()


# ============================================
# Tenant / Shopify Fixtures
# ============================================


@pytest.fixture
def fake_shop() -> FakeShopify:
    return FakeShopify({"d.myshopify.com": demo_shop(token="k")})


@pytest.fixture
def leases() -> TenantLeases:
    return TenantLeases()


@pytest.fixture
def tenant(test_db: Session) -> Tenant:
    return create_tenant(test_db, email="owner@d.example", shop_domain="d.myshopify.com", access_token="k")


@pytest.fixture
def auth_headers(tenant: Tenant) -> dict[str, str]:
    return {"X-API-Key": tenant.api_key}


@pytest.fixture
def patched_shopify(fake_shop: FakeShopify):
    """Route the real connector module's calls to the fake shop."""
    with patch("storesync.connectors.shopify.verify_connection", side_effect=fake_shop.verify_connection), \
            patch("storesync.connectors.shopify.fetch_collection", side_effect=fake_shop.fetch_collection):
        yield fake_shop
