"""
Pytest fixtures for KBPOS backend tests.

Provides test database setup, users with tokens, catalog rows and test client.
"""

import pytest

from kbpos import create_app
from kbpos.extensions import db
from kbpos.models import User, Product, Customer, Employee
from kbpos.services.auth_service import hash_password
from kbpos.services.session_service import CallerContext, create_session


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': 'UTC',
        'LOG_LEVEL': 'WARNING',
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


def _make_user(db_session, name, email, role):
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "Admin", "admin@kbpos.test", "admin")


@pytest.fixture(scope='function')
def staff_user(db_session):
    return _make_user(db_session, "Kasir", "kasir@kbpos.test", "staff")


@pytest.fixture(scope='function')
def admin_token(admin_user):
    _, token = create_session(admin_user.id)
    return token


@pytest.fixture(scope='function')
def staff_token(staff_user):
    _, token = create_session(staff_user.id)
    return token


@pytest.fixture(scope='function')
def admin_caller(admin_user):
    return CallerContext(user_id=admin_user.id, role="admin")


@pytest.fixture(scope='function')
def staff_caller(staff_user):
    return CallerContext(user_id=staff_user.id, role="staff")


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_product(db_session, name="Kebab Sapi", price=25000, category="Kebab Daging", total_sold=0):
    product = Product(
        name=name,
        description=f"{name} description",
        price=price,
        category=category,
        total_sold=total_sold,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session):
    return make_product(db_session, "Kebab Sapi", 25000, "Kebab Daging")


@pytest.fixture(scope='function')
def product_b(db_session):
    return make_product(db_session, "Kebab Ayam", 20000, "Kebab Ayam")


@pytest.fixture(scope='function')
def product_c(db_session):
    return make_product(db_session, "Es Teh", 5000, "Minuman")


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(name="Budi", email="budi@example.com", phone="08123456789", address="Jl. Merdeka 1")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def employee(db_session):
    e = Employee(
        name="Sari",
        email="sari@kbpos.test",
        phone="08120000000",
        position="Cashier",
        salary=3500000,
        address="Jl. Sudirman 2",
    )
    db_session.add(e)
    db_session.commit()
    return e


def line(product, quantity, price=None):
    """Validated sale item dict for service-level calls."""
    return {
        "product_id": product.id,
        "name": product.name,
        "price": price if price is not None else product.price,
        "quantity": quantity,
    }


def sale_fields(items, **overrides):
    fields = {
        "total_amount": sum(i["price"] * i["quantity"] for i in items),
        "payment_method": "Cash",
    }
    fields.update(overrides)
    return fields


def total_sold(product_id: int) -> int:
    return db.session.query(Product.total_sold).filter_by(id=product_id).scalar()
