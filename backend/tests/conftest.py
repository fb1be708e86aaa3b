"""
Pytest fixtures for shopledger backend tests.

Provides test database setup, catalog factories, and test client.
"""

import pytest
from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SHOP_NAME': 'Test Shop',
        'SHOP_TIMEZONE': 'UTC',
        'LOCK_TIMEOUT_SECONDS': 0.2,
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


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(sku="SKU-1", quantity=10, selling_price_cents=100, cost_price_cents=60)."""
    counter = {"n": 0}

    def _make(sku=None, name=None, quantity=10, selling_price_cents=100, cost_price_cents=60):
        counter["n"] += 1
        product = Product(
            sku=sku or f"SKU-{counter['n']}",
            name=name or f"Product {counter['n']}",
            quantity=quantity,
            selling_price_cents=selling_price_cents,
            cost_price_cents=cost_price_cents,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """SKU-1: qty 10, price 100, cost 60."""
    return make_product(sku="SKU-1", name="Soap", quantity=10, selling_price_cents=100, cost_price_cents=60)
