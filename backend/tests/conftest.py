"""
Pytest fixtures for ShopMaster backend tests.

Provides the in-memory app, per-test table wipe, users for each role with
ready-made auth headers, and small catalog factories.
"""

import pytest

from shopmaster import create_app
from shopmaster.extensions import db
from shopmaster.services.auth_service import create_default_roles, create_user
from shopmaster.services import catalog_service, inventory_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before each test, keeping the schema."""
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def setup_roles(db_session):
    create_default_roles()


@pytest.fixture(scope='function')
def admin_user(setup_roles):
    return create_user(name="Admin", email="admin@shop.test", password=PASSWORD, role="admin")


@pytest.fixture(scope='function')
def staff_user(setup_roles):
    return create_user(name="Staff", email="staff@shop.test", password=PASSWORD, role="staff")


@pytest.fixture(scope='function')
def customer_user(setup_roles):
    return create_user(name="Customer", email="customer@shop.test", password=PASSWORD, role="customer")


@pytest.fixture(scope='function')
def other_customer(setup_roles):
    return create_user(name="Other", email="other@shop.test", password=PASSWORD, role="customer")


@pytest.fixture
def login(client):
    """Returns a helper that logs in and returns Authorization headers."""
    def _login(email: str, password: str = PASSWORD) -> dict:
        resp = client.post('/api/auth/login', json={'email': email, 'password': password})
        assert resp.status_code == 200, resp.get_json()
        return {'Authorization': f"Bearer {resp.get_json()['data']['token']}"}
    return _login


@pytest.fixture
def admin_headers(login, admin_user):
    return login(admin_user.email)


@pytest.fixture
def staff_headers(login, staff_user):
    return login(staff_user.email)


@pytest.fixture
def customer_headers(login, customer_user):
    return login(customer_user.email)


@pytest.fixture
def category(db_session):
    return catalog_service.create_category({"name": "Electronics"})


def _variant_entry(additional_price_cents: int = 0, **attributes) -> dict:
    return {
        "id": None,
        "name": " / ".join(attributes.values()),
        "attributes": attributes,
        "additional_price_cents": additional_price_cents,
        "is_active": True,
        "images": [],
    }


@pytest.fixture
def variant_entry():
    """Builds a variant entry as produced by validate_variants."""
    return _variant_entry


@pytest.fixture
def make_product(category, admin_user):
    """
    Factory: make_product(name, selling_price_cents=..., stock=..., purchase_price_cents=..., variants=[...]).

    Opening stock (simple products only) goes through stock_in so the ledger is populated.
    """
    def _make(
        name: str = "Wireless Earbuds",
        *,
        base_price_cents: int = 10000,
        selling_price_cents: int = 10000,
        stock: int = 0,
        purchase_price_cents: int = 6000,
        variants: list[dict] | None = None,
        **extra,
    ):
        patch = {
            "name": name,
            "category_id": category.id,
            "base_price_cents": base_price_cents,
            "selling_price_cents": selling_price_cents,
            **extra,
        }
        product = catalog_service.create_product(patch=patch, variants=variants, actor_id=admin_user.id)
        if stock:
            inventory_service.stock_in(
                product_id=product.id,
                quantity=stock,
                purchase_price_cents=purchase_price_cents,
                actor_id=admin_user.id,
            )
        return product
    return _make
