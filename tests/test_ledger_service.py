import sqlite3
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from stockledger.exceptions import (
    ExcessivePriceChangeError,
    InactiveEntityError,
    InsufficientStockError,
    LockTimeoutError,
    NotFoundError,
    ReferentialIntegrityError,
    ValidationError,
)
from stockledger.models.ledger_entry import EntryKind, LedgerEntry
from stockledger.models.price_change import PriceChangeLog
from stockledger.models.product import Product, ProductState
from stockledger.models.supplier import SupplierState
from stockledger.schemas.product import ProductUpdate
from stockledger.schemas.supplier import SupplierUpdate
from stockledger.services import audit_service, ledger_service, product_service, supplier_service
from stockledger.services.ledger_service import StockLedger


def _snapshot(db, product_id):
    """Stock plus every ledger row for the product, read fresh from the database."""
    db.expire_all()
    product = db.query(Product).filter(Product.id == product_id).one()
    entries = sorted(
        (e.id, e.kind, e.quantity, e.unit_price)
        for e in db.query(LedgerEntry).filter(LedgerEntry.product_id == product_id)
    )
    return product.stock, entries


# --- purchases and sales ---

def test_purchase_increments_stock(db, ledger, widget, supplier):
    entry = ledger.record_purchase(widget.id, supplier.id, 10, Decimal("750000"), "Restock")

    assert entry.kind == EntryKind.PURCHASE
    assert entry.quantity == 10
    assert entry.total == Decimal("7500000.00")
    assert entry.notes == "Restock"
    assert _snapshot(db, widget.id)[0] == 25


def test_sale_decrements_stock(db, ledger, widget, supplier):
    entry = ledger.record_sale(widget.id, supplier.id, 2, Decimal("850000"))

    assert entry.kind == EntryKind.SALE
    assert entry.total == Decimal("1700000.00")
    assert _snapshot(db, widget.id)[0] == 13


def test_widget_reference_scenario(db, ledger, widget, supplier):
    ledger.record_purchase(widget.id, supplier.id, 10, 750000)
    assert _snapshot(db, widget.id)[0] == 25

    ledger.record_sale(widget.id, supplier.id, 2, 850000)
    assert _snapshot(db, widget.id)[0] == 23

    with pytest.raises(InsufficientStockError) as exc_info:
        ledger.record_sale(widget.id, supplier.id, 100, 850000)
    assert exc_info.value.available == 23
    assert exc_info.value.requested == 100
    assert _snapshot(db, widget.id)[0] == 23


def test_sale_of_entire_stock_leaves_zero(db, ledger, widget, supplier):
    ledger.record_sale(widget.id, supplier.id, 15, 850000)
    assert _snapshot(db, widget.id)[0] == 0

    with pytest.raises(InsufficientStockError) as exc_info:
        ledger.record_sale(widget.id, supplier.id, 1, 850000)
    assert exc_info.value.available == 0


def test_failed_sale_leaves_state_untouched(db, ledger, widget, supplier):
    ledger.record_purchase(widget.id, supplier.id, 5, 700000)
    before = _snapshot(db, widget.id)

    with pytest.raises(InsufficientStockError):
        ledger.record_sale(widget.id, supplier.id, 21, 850000)

    assert _snapshot(db, widget.id) == before


@pytest.mark.parametrize(
    "quantity, unit_price",
    [(0, 100), (-3, 100), (1.5, 100), ("2", 100), (True, 100), (2, 0), (2, -10), (2, "abc"), (2, "0.001")],
)
def test_invalid_input_is_rejected_without_writes(db, ledger, widget, supplier, quantity, unit_price):
    before = _snapshot(db, widget.id)

    with pytest.raises(ValidationError):
        ledger.record_sale(widget.id, supplier.id, quantity, unit_price)
    with pytest.raises(ValidationError):
        ledger.record_purchase(widget.id, supplier.id, quantity, unit_price)

    assert _snapshot(db, widget.id) == before


def test_unknown_product_raises_not_found(ledger, supplier):
    with pytest.raises(NotFoundError):
        ledger.record_purchase("missing", supplier.id, 1, 10)


def test_unknown_supplier_raises_not_found(db, ledger, widget):
    before = _snapshot(db, widget.id)
    with pytest.raises(NotFoundError):
        ledger.record_sale(widget.id, "missing", 1, 10)
    assert _snapshot(db, widget.id) == before


def test_inactive_product_rejects_movements(db, ledger, widget, supplier):
    product_service.update_product(db, widget.id, ProductUpdate(state=ProductState.DISCONTINUED))

    with pytest.raises(InactiveEntityError):
        ledger.record_purchase(widget.id, supplier.id, 1, 10)
    with pytest.raises(InactiveEntityError):
        ledger.record_sale(widget.id, supplier.id, 1, 10)


def test_purchase_requires_active_supplier(db, ledger, widget, supplier):
    supplier_service.update_supplier(db, supplier.id, SupplierUpdate(state=SupplierState.SUSPENDED))

    with pytest.raises(InactiveEntityError) as exc_info:
        ledger.record_purchase(widget.id, supplier.id, 1, 10)
    assert exc_info.value.entity == "Supplier"


def test_sale_accepts_inactive_supplier(db, ledger, widget, supplier):
    supplier_service.update_supplier(db, supplier.id, SupplierUpdate(state=SupplierState.INACTIVE))

    ledger.record_sale(widget.id, supplier.id, 1, 850000)

    assert _snapshot(db, widget.id)[0] == 14


def test_occurred_at_defaults_to_clock(db, ledger, widget, supplier, clock):
    entry = ledger.record_purchase(widget.id, supplier.id, 1, 10)
    assert entry.occurred_at == clock.now()

    explicit = datetime(2024, 1, 2, 3, 4, 5)
    entry = ledger.record_purchase(widget.id, supplier.id, 1, 10, occurred_at=explicit)
    assert entry.occurred_at == explicit


# --- transfers ---

def test_transfer_is_stock_neutral(db, ledger, widget, supplier, other_supplier):
    sale, purchase = ledger.transfer_between_suppliers(widget.id, supplier.id, other_supplier.id, 4, 800000)

    assert _snapshot(db, widget.id)[0] == 15
    assert sale.kind == EntryKind.SALE and sale.supplier_id == supplier.id
    assert purchase.kind == EntryKind.PURCHASE and purchase.supplier_id == other_supplier.id
    assert sale.quantity == purchase.quantity == 4
    assert sale.transfer_id and sale.transfer_id == purchase.transfer_id
    assert len(ledger_service.list_entries(db, product_id=widget.id)) == 2


def test_transfer_checks_stock_under_lock(db, ledger, widget, supplier, other_supplier):
    before = _snapshot(db, widget.id)
    with pytest.raises(InsufficientStockError):
        ledger.transfer_between_suppliers(widget.id, supplier.id, other_supplier.id, 16, 800000)
    assert _snapshot(db, widget.id) == before


def test_transfer_to_inactive_supplier_writes_nothing(db, ledger, widget, supplier, other_supplier):
    supplier_service.update_supplier(db, other_supplier.id, SupplierUpdate(state=SupplierState.SUSPENDED))
    before = _snapshot(db, widget.id)

    with pytest.raises(InactiveEntityError):
        ledger.transfer_between_suppliers(widget.id, supplier.id, other_supplier.id, 3, 800000)

    assert _snapshot(db, widget.id) == before


def test_transfer_rolls_back_sale_leg_when_purchase_leg_fails(db, ledger, widget, supplier, other_supplier, mocker):
    original_append = StockLedger._append
    calls = []

    def fail_second_leg(self, *args, **kwargs):
        calls.append(args[2])
        if len(calls) == 2:
            raise RuntimeError("disk full")
        return original_append(self, *args, **kwargs)

    mocker.patch.object(StockLedger, "_append", autospec=True, side_effect=fail_second_leg)
    before = _snapshot(db, widget.id)

    with pytest.raises(RuntimeError):
        ledger.transfer_between_suppliers(widget.id, supplier.id, other_supplier.id, 3, 800000)

    assert calls == [EntryKind.SALE, EntryKind.PURCHASE]
    assert _snapshot(db, widget.id) == before


def test_transfer_requires_distinct_suppliers(ledger, widget, supplier):
    with pytest.raises(ValidationError):
        ledger.transfer_between_suppliers(widget.id, supplier.id, supplier.id, 1, 10)


# --- price updates ---

def test_price_update_within_guard_is_logged(db, ledger, widget, clock):
    product = ledger.update_price(widget.id, Decimal("935000"), actor="maria")

    assert product.price == Decimal("935000.00")
    logs = audit_service.list_price_changes(db, product_id=widget.id)
    assert len(logs) == 1
    assert logs[0].old_price == Decimal("850000.00")
    assert logs[0].new_price == Decimal("935000.00")
    assert logs[0].actor == "maria"
    assert logs[0].changed_at.replace(tzinfo=None) == clock.now().replace(tzinfo=None)


@pytest.mark.parametrize("new_price", ["1020000", "680000"])
def test_price_change_of_exactly_twenty_percent_is_accepted(db, ledger, widget, new_price):
    ledger.update_price(widget.id, new_price, actor="maria")
    assert len(audit_service.list_price_changes(db, product_id=widget.id)) == 1


@pytest.mark.parametrize("new_price", ["1020000.01", "679999.99", "2000000", "1"])
def test_excessive_price_change_is_rejected(db, ledger, widget, new_price):
    with pytest.raises(ExcessivePriceChangeError) as exc_info:
        ledger.update_price(widget.id, new_price, actor="maria")

    assert exc_info.value.current_price == Decimal("850000.00")
    db.expire_all()
    assert db.query(Product).filter(Product.id == widget.id).one().price == Decimal("850000.00")
    assert db.query(PriceChangeLog).count() == 0


def test_unchanged_price_writes_no_log(db, ledger, widget):
    ledger.update_price(widget.id, "850000.00", actor="maria")
    assert db.query(PriceChangeLog).count() == 0


def test_price_update_validates_input(db, ledger, widget):
    with pytest.raises(ValidationError):
        ledger.update_price(widget.id, 0, actor="maria")
    with pytest.raises(ValidationError):
        ledger.update_price(widget.id, 900000, actor="  ")


def test_price_update_requires_active_product(db, ledger, widget):
    product_service.update_product(db, widget.id, ProductUpdate(state=ProductState.INACTIVE))
    with pytest.raises(InactiveEntityError):
        ledger.update_price(widget.id, 900000, actor="maria")


def test_custom_price_guard_ratio(db, locks, clock, widget):
    strict = StockLedger(db, locks=locks, clock=clock, max_price_change_ratio=0.05)
    with pytest.raises(ExcessivePriceChangeError):
        strict.update_price(widget.id, 900000, actor="maria")


# --- deletion ---

def test_delete_product_without_history(db, ledger, widget):
    ledger.delete_product(widget.id)
    assert product_service.get_product(db, widget.id) is None


def test_delete_product_with_history_is_blocked(db, ledger, widget, supplier):
    ledger.record_purchase(widget.id, supplier.id, 1, 10)
    ledger.record_sale(widget.id, supplier.id, 1, 10)

    with pytest.raises(ReferentialIntegrityError) as exc_info:
        ledger.delete_product(widget.id)

    assert exc_info.value.references == {"ledger entries": 2}
    assert product_service.get_product(db, widget.id) is not None


def test_delete_product_with_price_history_is_blocked(db, ledger, widget):
    ledger.update_price(widget.id, Decimal("900000"), actor="alice")

    with pytest.raises(ReferentialIntegrityError) as exc_info:
        ledger.delete_product(widget.id)

    assert exc_info.value.references == {"price changes": 1}
    assert product_service.get_product(db, widget.id) is not None
    assert db.query(PriceChangeLog).filter(PriceChangeLog.product_id == widget.id).count() == 1


def test_delete_unknown_product(ledger):
    with pytest.raises(NotFoundError):
        ledger.delete_product("missing")


# --- locking ---

def test_lock_timeout_aborts_cleanly(db, locks, clock, widget, supplier):
    impatient = StockLedger(db, locks=locks, clock=clock, lock_timeout=0.05)
    before = _snapshot(db, widget.id)

    with locks.hold(widget.id, timeout=1):
        with pytest.raises(LockTimeoutError):
            impatient.record_sale(widget.id, supplier.id, 1, 850000)

    assert _snapshot(db, widget.id) == before
    assert not locks.is_locked(widget.id)


def test_lock_released_after_failure(ledger, locks, widget, supplier):
    with pytest.raises(InsufficientStockError):
        ledger.record_sale(widget.id, supplier.id, 99, 850000)
    assert not locks.is_locked(widget.id)


def test_unknown_products_leave_no_locks_behind(ledger, locks, widget, supplier):
    for i in range(200):
        with pytest.raises(NotFoundError):
            ledger.record_sale(f"bogus-{i}", supplier.id, 1, 10)
    ledger.record_purchase(widget.id, supplier.id, 1, 10)
    assert len(locks) == 0


def test_lock_wait_error_from_database_is_a_lock_timeout(db, ledger, widget, supplier, mocker):
    busy = OperationalError("SELECT", {}, sqlite3.OperationalError("database is locked"))
    mocker.patch.object(db, "query", side_effect=busy)

    with pytest.raises(LockTimeoutError):
        ledger.record_sale(widget.id, supplier.id, 1, 850000)


def test_other_database_errors_are_not_reported_as_lock_timeouts(db, ledger, locks, widget, supplier, mocker):
    broken = OperationalError("SELECT", {}, sqlite3.OperationalError("no such table: products"))
    mocker.patch.object(db, "query", side_effect=broken)

    with pytest.raises(OperationalError):
        ledger.record_sale(widget.id, supplier.id, 1, 850000)
    assert len(locks) == 0


# --- read side ---

def test_list_entries_filters(db, ledger, widget, supplier, other_supplier, clock):
    ledger.record_purchase(widget.id, supplier.id, 5, 700000)
    clock.advance(3600)
    ledger.record_purchase(widget.id, other_supplier.id, 3, 720000)
    clock.advance(3600)
    ledger.record_sale(widget.id, supplier.id, 2, 850000)

    assert len(ledger_service.list_entries(db, product_id=widget.id)) == 3
    assert len(ledger_service.list_entries(db, supplier_id=supplier.id)) == 2
    assert [e.quantity for e in ledger_service.list_entries(db, kind=EntryKind.PURCHASE)] == [5, 3]

    start = clock.now() - timedelta(minutes=90)
    window = ledger_service.list_entries(db, start=start)
    assert [e.quantity for e in window] == [3, 2]

    end = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)
    assert [e.quantity for e in ledger_service.list_entries(db, end=end)] == [5]


def test_ledger_summary_resolves_names(db, ledger, widget, supplier):
    entry = ledger.record_sale(widget.id, supplier.id, 2, 850000)

    rows = ledger_service.ledger_summary(db)

    assert len(rows) == 1
    assert rows[0].entry_id == entry.id
    assert rows[0].product_name == "Widget"
    assert rows[0].supplier_name == "TechSupply SA"
    assert rows[0].total == Decimal("1700000.00")


def test_get_entry(db, ledger, widget, supplier):
    entry = ledger.record_purchase(widget.id, supplier.id, 1, 10)
    assert ledger_service.get_entry(db, entry.id).quantity == 1
    assert ledger_service.get_entry(db, "missing") is None
