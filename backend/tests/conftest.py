"""
Pytest fixtures for stockledger backend tests.

Provides test database setup, seeded products/customers, and test client.
"""

import pytest
from sqlalchemy import func

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Sale
from stockledger.services.customers_service import create_customer
from stockledger.services.products_service import create_product
from stockledger.validation import CustomerForm, ProductForm


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_LOW_STOCK_THRESHOLD': 5.0,
        'TOP_CUSTOMERS_LIMIT': 5,
    })

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
def runner(app):
    """Create CLI runner."""
    return app.test_cli_runner()


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


def find_by_name(rows: list[dict], name: str) -> dict:
    return next(r for r in rows if r["name"] == name)


def balance_for(data: dict, customer_id: int) -> dict:
    return next(b for b in data["customer_balances"] if b["customer_id"] == customer_id)


def movement_delta(mv) -> float:
    """Signed effect of a stock movement on the product quantity."""
    return -mv.qty if mv.kind == "OUT" else mv.qty


def signed_credit(entry) -> float:
    """Effect of a credit entry on the customer's outstanding balance."""
    return -entry.amount if entry.is_payment else entry.amount


def returned_qty_by_origin() -> dict[int, float]:
    """Total returned quantity keyed by origin sale id."""
    rows = (
        db.session.query(Sale.origin_sale_id, func.sum(Sale.qty))
        .filter(Sale.is_return.is_(True), Sale.origin_sale_id.isnot(None))
        .group_by(Sale.origin_sale_id)
        .all()
    )
    return {origin_id: float(total or 0.0) for origin_id, total in rows}


@pytest.fixture(scope='function')
def widget(db_session):
    """Widget @ 10.0 with no stock."""
    data = create_product(ProductForm(name="Widget", unit_price=10.0))
    return find_by_name(data["products"], "Widget")


@pytest.fixture(scope='function')
def stocked_widget(db_session):
    """Widget @ 10.0 with 20 on hand (booked as initial stock)."""
    data = create_product(ProductForm(name="Widget", unit_price=10.0, initial_qty=20.0))
    return find_by_name(data["products"], "Widget")


@pytest.fixture(scope='function')
def customer(db_session):
    data = create_customer(CustomerForm(name="Alice", phone="010-1111-2222"))
    return find_by_name(data["customers"], "Alice")


@pytest.fixture(scope='function')
def other_customer(db_session):
    data = create_customer(CustomerForm(name="Bob", phone="010-3333-4444"))
    return find_by_name(data["customers"], "Bob")
