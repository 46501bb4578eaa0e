"""
Pytest fixtures for koifarm backend tests.

Provides test database setup, catalog/member factories, and test client.
"""

import pytest

from koifarm import create_app
from koifarm.extensions import db
from koifarm.models import Product, Member


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
    """Factory for catalog products (fish by default)."""
    counter = {"n": 0}

    def _make(category="fish", price_cents=None, customer_price_cents=None, balance=0, **kwargs):
        counter["n"] += 1
        product = Product(
            sku=kwargs.pop("sku", f"SKU-{counter['n']:04d}"),
            name=kwargs.pop("name", f"{category.title()} {counter['n']}"),
            category=category,
            price_cents=price_cents,
            customer_price_cents=customer_price_cents,
            balance=balance,
            sold=False,
            **kwargs,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def member(db_session):
    """A fresh 'inquiry' member."""
    m = Member(code="M-0001", display_name="Khun Somchai", province="Bangkok")
    db_session.add(m)
    db_session.commit()
    return m


@pytest.fixture(scope='function')
def koi(make_product):
    """A 15,000 baht kohaku."""
    return make_product("fish", price_cents=1_500_000, name="Kohaku 45cm")


@pytest.fixture(scope='function')
def food(make_product):
    """Koi food at 350 baht a bag, 10 bags on hand."""
    return make_product("food", customer_price_cents=35_000, balance=10, name="Growth food 5kg")


@pytest.fixture(scope='function')
def sale_payload():
    """Builder for a transfer sale with bank info and delivery address (starts in wait_payment)."""
    def _build(member_id, product_id, **overrides) -> dict:
        payload = {
            "payment_method": "transfer",
            "member_id": member_id,
            "lines": [{"product_id": product_id, "quantity": 1}],
            "bank_code": "KBNK",
            "bank_account": "123-4-56789-0",
            "shipping_address": "99 Moo 3, Bang Len",
            "shipping_province": "Nakhon Pathom",
        }
        payload.update(overrides)
        return payload

    return _build
