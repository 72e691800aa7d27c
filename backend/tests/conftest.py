"""
Pytest fixtures for stockroom backend tests.

Provides an in-memory database, seeded users per role, reference data, and
token helpers for the test client.
"""

from decimal import Decimal

import pytest
from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import (
    Customer,
    Inventory,
    Manages,
    Product,
    ProductUnitRate,
    StockMovement,
    Unit,
    User,
)
from stockroom.models.stock import DIRECTION_IN, DIRECTION_OUT
from stockroom.services.auth_service import hash_password
from stockroom.services import session_service

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOW_STOCK_DEFAULT_THRESHOLD': 10,
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


def _make_user(db_session, fullname, email, role):
    user = User(
        fullname=fullname,
        email=email,
        password_hash=hash_password(PASSWORD, rounds=4),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def superadmin(db_session):
    return _make_user(db_session, "Sam Super", "super@stockroom.test", "superadmin")


@pytest.fixture(scope='function')
def inventory_north(db_session):
    inventory = Inventory(inventory_name="North Depot", address="1 Dock Rd")
    db_session.add(inventory)
    db_session.commit()
    return inventory


@pytest.fixture(scope='function')
def inventory_south(db_session):
    inventory = Inventory(inventory_name="South Depot", address="9 Quay St")
    db_session.add(inventory)
    db_session.commit()
    return inventory


@pytest.fixture(scope='function')
def admin_north(db_session, inventory_north):
    """Admin managing only the north inventory."""
    user = _make_user(db_session, "Nora North", "nora@stockroom.test", "admin")
    db_session.add(Manages(user_id=user.id, inventory_id=inventory_north.id))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_south(db_session, inventory_south):
    """Admin managing only the south inventory."""
    user = _make_user(db_session, "Sid South", "sid@stockroom.test", "admin")
    db_session.add(Manages(user_id=user.id, inventory_id=inventory_south.id))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_unassigned(db_session):
    """Admin with no Manages rows."""
    return _make_user(db_session, "Una Signed", "una@stockroom.test", "admin")


@pytest.fixture(scope='function')
def driver(db_session):
    return _make_user(db_session, "Dee Driver", "dee@stockroom.test", "driver")


@pytest.fixture(scope='function')
def unit_kg(db_session):
    unit = Unit(name="kg")
    db_session.add(unit)
    db_session.commit()
    return unit


@pytest.fixture(scope='function')
def unit_bori(db_session):
    unit = Unit(name="bori")
    db_session.add(unit)
    db_session.commit()
    return unit


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(product_name="Rice", description="Long grain")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(customer_name="Acme Grocers", email="buyer@acme.test")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def rate_kg(db_session, product, unit_kg):
    """10.00 per kg of rice."""
    row = ProductUnitRate(product_id=product.id, unit_id=unit_kg.id, rate=Decimal("10.00"))
    db_session.add(row)
    db_session.commit()
    return row


def add_movement(session, product, inventory, unit, quantity, direction=DIRECTION_IN, method="purchase"):
    """Append a ledger row directly, bypassing service checks."""
    movement = StockMovement(
        product_id=product.id,
        inventory_id=inventory.id,
        unit_id=unit.id,
        quantity=Decimal(str(quantity)),
        direction=direction,
        method=method,
    )
    session.add(movement)
    session.commit()
    return movement


def add_out(session, product, inventory, unit, quantity):
    return add_movement(session, product, inventory, unit, quantity, direction=DIRECTION_OUT, method="damage")


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user through the login route."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def token_for(user) -> str:
    """Issue a session token without going through bcrypt verification."""
    _, token = session_service.create_session(user.id)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
