"""
Pytest fixtures for GymPOS backend tests.

Provides an in-memory database, a per-test clean session, and catalog
fixtures (products and payment methods).
"""

import pytest
from gympos import create_app
from gympos.extensions import db
from gympos.models import Product, PaymentMethod


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SALE_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        db.session.rollback()
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def cli_runner(app):
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def cash(db_session):
    """Active CASH payment method."""
    method = PaymentMethod(name="Cash", type="CASH", is_active=True)
    db_session.add(method)
    db_session.commit()
    return method


@pytest.fixture(scope='function')
def retired_card(db_session):
    """Inactive CARD payment method."""
    method = PaymentMethod(name="Old Card Terminal", type="CARD", is_active=False)
    db_session.add(method)
    db_session.commit()
    return method


@pytest.fixture(scope='function')
def water(db_session):
    """Product with stock 10 priced 5.00."""
    product = Product(name="Water 500ml", price_cents=500, stock=10, is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def shaker(db_session):
    """Product with stock 5 priced 10.00."""
    product = Product(name="Protein Shaker", description="BPA free", price_cents=1000, stock=5, is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def discontinued(db_session):
    """Inactive product that still has stock."""
    product = Product(name="Old Energy Bar", price_cents=250, stock=20, is_active=False)
    db_session.add(product)
    db_session.commit()
    return product

