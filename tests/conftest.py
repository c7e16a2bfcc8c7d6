# tests/conftest.py
from decimal import Decimal

import pytest

from stockledger.clock import FixedClock
from stockledger.database import build_engine, build_session_factory, init_db
from stockledger.locking import ProductLocks
from stockledger.schemas.product import ProductCreate
from stockledger.schemas.supplier import SupplierCreate
from stockledger.services import product_service, supplier_service
from stockledger.services.ledger_service import StockLedger


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so worker threads get their own connections."""
    eng = build_engine(f"sqlite:///{tmp_path / 'stockledger_test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def locks() -> ProductLocks:
    """A private lock table so tests never share lock state."""
    return ProductLocks()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def ledger(db, locks, clock) -> StockLedger:
    return StockLedger(db, locks=locks, clock=clock, lock_timeout=2.0)


@pytest.fixture
def supplier(db):
    return supplier_service.create_supplier(
        db,
        SupplierCreate(name="TechSupply SA", phone="+56-2-2345-6789", email="ventas@techsupply.cl"),
    )


@pytest.fixture
def other_supplier(db):
    return supplier_service.create_supplier(
        db,
        SupplierCreate(name="Importadora Global", phone="+56-32-345-6789", email="info@impglobal.cl"),
    )


@pytest.fixture
def widget(db):
    """The 'Widget' of the reference scenario: stock 15 at price 850000."""
    return product_service.create_product(
        db, ProductCreate(name="Widget", description="Reference product", price=Decimal("850000"), stock=15)
    )
