"""
Pytest fixtures for RetailPOS backend tests.

Provides the app on in-memory SQLite, a clean database per test, one user
per role, auth headers, and a small catalog.
"""

from decimal import Decimal

import pytest

from retailpos import create_app
from retailpos.config import TestingConfig
from retailpos.extensions import db
from retailpos.models import Category, Customer, Product, Supplier, User
from retailpos.services.auth_service import hash_password

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(db_session, username: str, role: str) -> User:
    user = User(
        username=username,
        email=f"{username}@retailpos.local",
        full_name=username.title(),
        password_hash=hash_password(PASSWORD),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "admin", "admin")


@pytest.fixture(scope='function')
def manager(db_session):
    return _make_user(db_session, "manager", "manager")


@pytest.fixture(scope='function')
def cashier(db_session):
    return _make_user(db_session, "cashier", "cashier")


@pytest.fixture(scope='function')
def category(db_session):
    cat = Category(name="Snacks", slug="snacks")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def supplier(db_session):
    sup = Supplier(name="Acme Wholesale", contact_person="Jordan Lee")
    db_session.add(sup)
    db_session.commit()
    return sup


def make_product(db_session, *, sku: str, quantity: int = 5, min_stock_level: int = 10,
                 selling_price: str = "10.00", cost_price: str = "3.50",
                 track_stock: bool = True, category=None, supplier=None, name=None) -> Product:
    product = Product(
        name=name or f"Product {sku}",
        sku=sku,
        cost_price=Decimal(cost_price),
        selling_price=Decimal(selling_price),
        quantity=quantity,
        min_stock_level=min_stock_level,
        track_stock=track_stock,
        category_id=category.id if category else None,
        supplier_id=supplier.id if supplier else None,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product(db_session, category, supplier):
    """Tracked product P: quantity=5, min_stock_level=10, cost 3.50, price 10.00."""
    return make_product(db_session, sku="P-001", name="Product P", category=category, supplier=supplier)


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(name="Casey Customer", email="casey@example.com")
    db_session.add(c)
    db_session.commit()
    return c


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def manager_headers(client, manager):
    return auth_headers(get_auth_token(client, "manager"))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier):
    return auth_headers(get_auth_token(client, "cashier"))
