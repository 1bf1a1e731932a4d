"""
Pytest fixtures for stockledger backend tests.

Provides the application, a per-test clean database and product factories.
"""

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.services.products_service import create_product, validate_product_create


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
    """Factory: make_product(sku, stock=0, **fields) -> Product."""
    def _make(sku: str, stock: int = 0, **fields):
        payload = {
            "sku": sku,
            "name": fields.pop("name", f"Product {sku}"),
            "selling_price": fields.pop("selling_price", "10.00"),
            "cost_price": fields.pop("cost_price", "4.00"),
            **fields,
        }
        if stock:
            payload["stock"] = stock
        return create_product(patch=validate_product_create(payload))

    return _make


@pytest.fixture(scope='function')
def widget(make_product):
    """Plain product with 10 in stock."""
    return make_product("WID-001", stock=10, name="Widget", category="Hardware", location="A1")


@pytest.fixture(scope='function')
def gadget(make_product):
    """Plain product with 5 in stock."""
    return make_product("GAD-001", stock=5, name="Gadget", category="Electronics", location="B2")


@pytest.fixture(scope='function')
def phone(make_product):
    """Serialized product with three available units."""
    return make_product(
        "PHN-001",
        name="Phone",
        selling_price="500.00",
        is_serialized=True,
        serial_numbers=["SN-1", "SN-2", "SN-3"],
    )


@pytest.fixture(scope='function')
def serial_ids(db_session):
    """Helper: serial_ids(product_id, status='available') -> ids ordered by serial number."""
    from stockledger.models import SerialNumber

    def _ids(product_id: str, status: str = "available") -> list[str]:
        rows = (
            SerialNumber.query
            .filter_by(product_id=product_id, status=status)
            .order_by(SerialNumber.serial_number.asc())
            .all()
        )
        return [r.id for r in rows]

    return _ids
