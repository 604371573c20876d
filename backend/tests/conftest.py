"""
Pytest fixtures for posting engine tests.

Provides the application on an in-memory database, a per-test wipe of all
tables, and the reference data (stores, customers, products, payment
methods, adjustment reasons) most postings need.
"""

import pytest

from posting_engine import create_app
from posting_engine.constants import AdjustmentAction
from posting_engine.extensions import db
from posting_engine.models import AdjustmentReason, Customer, PaymentMethod, Product, Store, Supplier
from posting_engine.services import inventory_service


ACTOR_ID = 7


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


@pytest.fixture(scope='function')
def ledger_config(app, monkeypatch):
    """Override LEDGER_* settings for one test; restored afterwards."""
    def _set(**values):
        for key, value in values.items():
            monkeypatch.setitem(app.config, key, value)
    return _set


@pytest.fixture(scope='function')
def actor_id():
    return ACTOR_ID


@pytest.fixture(scope='function')
def store(db_session):
    """Main selling store."""
    store = Store(name="Main Pharmacy")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def branch(db_session):
    """Second store for transfers."""
    store = Store(name="Branch Store")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(first_name="Amina", surname="Otieno", phone="0700000001")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def other_customer(db_session):
    customer = Customer(company_name="Lakeview Clinic")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(company_name="Medisupply Ltd")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(name="Paracetamol 500mg", cost_price_cents=200)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def other_product(db_session):
    product = Product(name="Amoxicillin 250mg", cost_price_cents=350)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def cash(db_session):
    method = PaymentMethod(name="Cash")
    db_session.add(method)
    db_session.commit()
    return method


@pytest.fixture(scope='function')
def mobile_money(db_session):
    method = PaymentMethod(name="Mobile Money")
    db_session.add(method)
    db_session.commit()
    return method


@pytest.fixture(scope='function')
def add_reason(db_session):
    reason = AdjustmentReason(name="Found in store", action=AdjustmentAction.ADD.value)
    db_session.add(reason)
    db_session.commit()
    return reason


@pytest.fixture(scope='function')
def deduct_reason(db_session):
    reason = AdjustmentReason(name="Expired", action=AdjustmentAction.DEDUCT.value)
    db_session.add(reason)
    db_session.commit()
    return reason


@pytest.fixture(scope='function')
def stock_in(supplier):
    """Receive stock into a store from the supplier fixture."""
    def _receive(store_id, product_id, quantity, price_cents=200, expiry_date=None):
        return inventory_service.receive(
            store_id,
            "SUPPLIER",
            supplier.id,
            None,
            [{"product_id": product_id, "quantity": quantity, "price_cents": price_cents}],
            expiry_date=expiry_date,
            actor_user_id=ACTOR_ID,
        )
    return _receive
