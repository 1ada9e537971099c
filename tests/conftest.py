"""Pytest fixtures for cod_intake tests."""

import os
import tempfile

# Settings are read at import time; point them at throwaway values first.
_DB_DIR = tempfile.mkdtemp(prefix="cod-intake-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_DB_DIR}/import.db")
os.environ.setdefault("SHOPIFY_API_KEY", "test-api-key")
os.environ.setdefault("SHOPIFY_API_SECRET", "test-api-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session  # noqa: E402

from cod_intake.core.config import get_settings  # noqa: E402
from cod_intake.database import build_engine, create_db_and_tables, get_session  # noqa: E402
from cod_intake.models.shop import FormSettings, Shop  # noqa: E402
from cod_intake.models import order as _order_models  # noqa: E402,F401
from cod_intake.models import customer as _customer_models  # noqa: E402,F401
from cod_intake.repositories.customer_repo import CustomerRepository  # noqa: E402
from cod_intake.repositories.order_repo import OrderRepository  # noqa: E402
from cod_intake.repositories.shop_repo import ShopRepository  # noqa: E402
from cod_intake.schemas.address import RegionDefaults  # noqa: E402
from cod_intake.services.customer_service import CustomerService  # noqa: E402
from cod_intake.services.order_service import OrderService  # noqa: E402
from cod_intake.services.sequence_service import OrderSequencer  # noqa: E402

SHOP = "test-store.myshopify.com"
ACCESS_TOKEN = "shpat_test_token"


@pytest.fixture
def engine(tmp_path):
    """A fresh SQLite file database per test (file-based so threads share it)."""
    engine = build_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def shop(session):
    """An installed shop with the COD form enabled and default policy."""
    shop = Shop(shop_domain=SHOP, access_token=ACCESS_TOKEN)
    form_settings = FormSettings(
        shop_domain=SHOP,
        enabled=True,
        required_fields=["name", "phone", "address"],
        max_quantity=10,
        partial_cod_enabled=True,
        partial_cod_advance_amount=200,
    )
    session.add(shop)
    session.add(form_settings)
    session.commit()
    session.refresh(shop)
    return shop


@pytest.fixture
def submission_data():
    """Factory for a valid storefront payload (camelCase, as the widget sends it)."""

    def make(**overrides):
        data = {
            "shop": SHOP,
            "customerName": "Asha Patel",
            "customerPhone": "+91 98765-43210",
            "customerAddress": "12 Lane St, Mumbai, MH 400001",
            "customerEmail": "asha@example.com",
            "productId": "gid://shopify/Product/111",
            "variantId": "gid://shopify/ProductVariant/222",
            "productTitle": "Cotton Kurta",
            "quantity": 2,
            "price": 500,
        }
        data.update(overrides)
        return data

    return make


@pytest.fixture
def region():
    return RegionDefaults.from_settings(get_settings())


@pytest.fixture
def order_repo():
    return OrderRepository()


@pytest.fixture
def customer_repo():
    return CustomerRepository()


@pytest.fixture
def sequencer(order_repo):
    return OrderSequencer(order_repo, prefix="COD-", base=1001, max_attempts=5)


@pytest.fixture
def customer_service(customer_repo, order_repo):
    return CustomerService(customer_repo, order_repo, scan_window=50)


@pytest.fixture
def order_service(order_repo, customer_service, sequencer, region):
    return OrderService(
        order_repo,
        ShopRepository(),
        customer_service,
        sequencer,
        region,
        currency="INR",
    )


@pytest.fixture
def client(engine, shop):
    """API client whose requests use the per-test database."""
    from cod_intake.main import app

    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()
