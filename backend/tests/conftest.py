"""
Pytest fixtures for the bookkeeper backend tests.

Provides an in-memory application, a per-test table wipe, the ledger and
gateway wired to it, and gateways that fail on demand for cascade tests.
"""

import pytest

from bookkeeper import create_app
from bookkeeper.errors import StorageFailure
from bookkeeper.extensions import db
from bookkeeper.gateway import SqlAlchemyGateway
from bookkeeper.services import customers_service, items_service
from bookkeeper.services.ledger_service import SaleLedger


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'STORAGE_RETRY_ATTEMPTS': 1,
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
def runner(app):
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


@pytest.fixture(scope='function')
def ledger(app, db_session):
    """The application's ledger (shared with the routes and CLI)."""
    return app.extensions['sale_ledger']


@pytest.fixture(scope='function')
def gateway(ledger):
    return ledger.gateway


@pytest.fixture(scope='function')
def customer(gateway):
    return customers_service.create_customer(gateway, {"name": "Ada Lovelace", "email": "ada@example.com"})


@pytest.fixture(scope='function')
def customers_pair(gateway):
    return (
        customers_service.create_customer(gateway, {"name": "Grace Hopper"}),
        customers_service.create_customer(gateway, {"name": "Alan Turing"}),
    )


@pytest.fixture(scope='function')
def widget(gateway):
    """Item priced 10.00."""
    return items_service.create_item(gateway, {"name": "Widget", "price_cents": 1000, "quantity": 5})


@pytest.fixture(scope='function')
def gadget(gateway):
    """Item priced 25.00."""
    return items_service.create_item(gateway, {"name": "Gadget", "price_cents": 2500})


class FailingGateway(SqlAlchemyGateway):
    """
    SqlAlchemyGateway that raises StorageFailure on the Nth write of one kind
    to one collection (1-based). Every other call goes to the real store.
    """

    def __init__(self, *, fail_on: str, collection: str, nth: int = 1):
        super().__init__(db, retry_attempts=1)
        self.fail_on = fail_on
        self.collection = collection
        self.nth = nth
        self.calls = 0

    def _maybe_fail(self, action, collection):
        if action == self.fail_on and collection == self.collection:
            self.calls += 1
            if self.calls == self.nth:
                raise StorageFailure(
                    f"Injected {action} failure on {collection}",
                    details={"collection": collection, "action": action},
                )

    def insert(self, collection, record):
        self._maybe_fail("insert", collection)
        return super().insert(collection, record)

    def put(self, collection, record):
        self._maybe_fail("put", collection)
        return super().put(collection, record)

    def delete(self, collection, key):
        self._maybe_fail("delete", collection)
        return super().delete(collection, key)


@pytest.fixture(scope='function')
def failing_ledger(db_session):
    """
    Factory: failing_ledger(fail_on="delete", collection="payments", nth=1)
    returns a SaleLedger over a FailingGateway.
    """
    def _make(**kwargs):
        return SaleLedger(FailingGateway(**kwargs))
    return _make
