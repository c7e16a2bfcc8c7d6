"""
Consistency engine for product stock, plus the ledger's read side.

``StockLedger`` is the only writer of ``Product.stock`` and of
``LedgerEntry`` rows. Every public operation runs as one unit of work:

    acquire product lock
      -> SELECT product FOR UPDATE (fresh read, after the lock is held)
      -> business rules (active state, sufficiency, price guard)
      -> ledger append + stock change, flushed in one transaction
      -> commit                    (any error: rollback, nothing written)
    release product lock           (on every exit path)

Stock is read only after the lock is granted. Reading it first would let two
concurrent sales both see enough stock and both succeed.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator

from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from stockledger.clock import SystemClock
from stockledger.config import settings
from stockledger.exceptions import (
    ExcessivePriceChangeError,
    InactiveEntityError,
    InsufficientStockError,
    InventoryError,
    LockTimeoutError,
    NotFoundError,
    ReferentialIntegrityError,
    ValidationError,
)
from stockledger.locking import ProductLocks, default_locks
from stockledger.models.ledger_entry import EntryKind, LedgerEntry
from stockledger.models.price_change import PriceChangeLog
from stockledger.models.product import Product
from stockledger.models.supplier import Supplier
from stockledger.schemas.ledger import LedgerSummaryRow
from stockledger.services.audit_service import ACTOR_KEY, CLOCK_KEY
from stockledger.validators import require_positive_int, require_positive_price, require_text

logger = logging.getLogger(__name__)

# Driver errors that mean a lock wait gave up; every other OperationalError propagates
_LOCK_WAIT_MESSAGES = (
    "database is locked",  # sqlite
    "database table is locked",
    "lock wait timeout",  # mysql 1205
    "could not obtain lock",  # postgres NOWAIT
)
_LOCK_WAIT_PGCODES = {"55P03"}  # lock_not_available


def _is_lock_wait(error: OperationalError) -> bool:
    if getattr(error.orig, "pgcode", None) in _LOCK_WAIT_PGCODES:
        return True
    message = str(error.orig).lower()
    return any(marker in message for marker in _LOCK_WAIT_MESSAGES)


class StockLedger:
    def __init__(
        self,
        session: Session,
        locks: ProductLocks | None = None,
        clock=None,
        lock_timeout: float | None = None,
        max_price_change_ratio: float | None = None,
    ):
        self._session = session
        self._locks = default_locks if locks is None else locks
        self._clock = clock or SystemClock()
        self._lock_timeout = settings.LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout
        self._max_ratio = Decimal(str(
            settings.MAX_PRICE_CHANGE_RATIO if max_price_change_ratio is None else max_price_change_ratio
        ))

    # --- unit of work ---

    @contextmanager
    def _unit_of_work(self, product_id: str, operation: str) -> Iterator[None]:
        with self._locks.hold(product_id, self._lock_timeout):
            try:
                yield
                self._session.commit()
            except InventoryError as e:
                self._session.rollback()
                logger.warning("%s on product %s rejected: %s", operation, product_id, e)
                raise
            except Exception:
                self._session.rollback()
                logger.exception("%s on product %s failed", operation, product_id)
                raise

    def _lock_product(self, product_id: str) -> Product:
        try:
            product = (
                self._session.query(Product)
                .filter(Product.id == product_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
        except OperationalError as e:
            if not _is_lock_wait(e):
                raise
            raise LockTimeoutError(product_id, self._lock_timeout) from e
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    def _lock_active_product(self, product_id: str) -> Product:
        product = self._lock_product(product_id)
        if not product.is_active:
            raise InactiveEntityError("Product", product_id, product.state.value)
        return product

    def _get_supplier(self, supplier_id: str, require_active: bool) -> Supplier:
        supplier = self._session.query(Supplier).filter(Supplier.id == supplier_id).first()
        if not supplier:
            raise NotFoundError("Supplier", supplier_id)
        if require_active and not supplier.is_active:
            raise InactiveEntityError("Supplier", supplier_id, supplier.state.value)
        return supplier

    def _append(
        self,
        product: Product,
        supplier: Supplier,
        kind: EntryKind,
        quantity: int,
        unit_price: Decimal,
        notes: str,
        occurred_at: datetime | None,
        transfer_id: str | None = None,
    ) -> LedgerEntry:
        if kind == EntryKind.SALE:
            if product.stock < quantity:
                raise InsufficientStockError(product.id, product.stock, quantity)
            product.stock -= quantity
        else:
            product.stock += quantity

        entry = LedgerEntry(
            product_id=product.id,
            supplier_id=supplier.id,
            kind=kind,
            occurred_at=occurred_at or self._clock.now(),
            quantity=quantity,
            unit_price=unit_price,
            total=unit_price * quantity,
            notes=(notes or "").strip(),
            transfer_id=transfer_id,
        )
        self._session.add(entry)
        self._session.flush()
        return entry

    # --- operations ---

    def record_purchase(
        self,
        product_id: str,
        supplier_id: str,
        quantity: int,
        unit_price,
        notes: str = "",
        occurred_at: datetime | None = None,
    ) -> LedgerEntry:
        """Append a purchase and add ``quantity`` to stock. Product and supplier must be active."""
        quantity = require_positive_int(quantity)
        unit_price = require_positive_price(unit_price, "unit_price")
        with self._unit_of_work(product_id, "purchase"):
            product = self._lock_active_product(product_id)
            supplier = self._get_supplier(supplier_id, require_active=True)
            entry = self._append(product, supplier, EntryKind.PURCHASE, quantity, unit_price, notes, occurred_at)
        logger.info("Purchase %s: +%d of product %s, stock now %d", entry.id, quantity, product_id, product.stock)
        return entry

    def record_sale(
        self,
        product_id: str,
        supplier_id: str,
        quantity: int,
        unit_price,
        notes: str = "",
        occurred_at: datetime | None = None,
    ) -> LedgerEntry:
        """Append a sale and remove ``quantity`` from stock, or raise InsufficientStockError."""
        quantity = require_positive_int(quantity)
        unit_price = require_positive_price(unit_price, "unit_price")
        with self._unit_of_work(product_id, "sale"):
            product = self._lock_active_product(product_id)
            supplier = self._get_supplier(supplier_id, require_active=False)
            entry = self._append(product, supplier, EntryKind.SALE, quantity, unit_price, notes, occurred_at)
        logger.info("Sale %s: -%d of product %s, stock now %d", entry.id, quantity, product_id, product.stock)
        return entry

    def transfer_between_suppliers(
        self,
        product_id: str,
        from_supplier_id: str,
        to_supplier_id: str,
        quantity: int,
        unit_price,
        notes: str = "",
    ) -> tuple[LedgerEntry, LedgerEntry]:
        """
        Move ``quantity`` units from one supplier's books to another's.

        Writes a sale against ``from_supplier_id`` and a purchase against
        ``to_supplier_id`` in a single transaction under one lock hold, so
        stock is never observable with only the sale applied. If the purchase
        leg fails, the sale leg is rolled back with it.
        """
        quantity = require_positive_int(quantity)
        unit_price = require_positive_price(unit_price, "unit_price")
        if from_supplier_id == to_supplier_id:
            raise ValidationError("Transfer requires two different suppliers", field="to_supplier_id")

        transfer_id = str(uuid.uuid4())
        note = (notes or "").strip() or f"Transfer {transfer_id}"
        with self._unit_of_work(product_id, "transfer"):
            product = self._lock_active_product(product_id)
            source = self._get_supplier(from_supplier_id, require_active=False)
            target = self._get_supplier(to_supplier_id, require_active=True)
            occurred_at = self._clock.now()
            sale = self._append(
                product, source, EntryKind.SALE, quantity, unit_price, note, occurred_at, transfer_id
            )
            purchase = self._append(
                product, target, EntryKind.PURCHASE, quantity, unit_price, note, occurred_at, transfer_id
            )
        logger.info(
            "Transfer %s: %d of product %s from supplier %s to %s",
            transfer_id, quantity, product_id, from_supplier_id, to_supplier_id,
        )
        return sale, purchase

    def update_price(self, product_id: str, new_price, actor: str) -> Product:
        """
        Reprice an active product by at most the configured ratio (20% by default).

        The audit hook records the change with ``actor`` in the same
        transaction. Larger changes raise ExcessivePriceChangeError and leave
        both the price and the audit log untouched.
        """
        new_price = require_positive_price(new_price, "new_price")
        actor = require_text(actor, "actor")
        with self._unit_of_work(product_id, "price update"):
            product = self._lock_active_product(product_id)
            current = Decimal(product.price)
            if abs(new_price - current) / current > self._max_ratio:
                raise ExcessivePriceChangeError(product_id, current, new_price, float(self._max_ratio))

            self._session.info[ACTOR_KEY] = actor
            self._session.info[CLOCK_KEY] = self._clock
            try:
                product.price = new_price
                self._session.flush()
            finally:
                self._session.info.pop(ACTOR_KEY, None)
                self._session.info.pop(CLOCK_KEY, None)
        return product

    def delete_product(self, product_id: str) -> None:
        """
        Delete a product that has no ledger entries and no price history.

        Both are permanent records, so a product that has either raises
        ReferentialIntegrityError. Retire it with a state change instead.
        """
        with self._unit_of_work(product_id, "delete"):
            product = self._lock_product(product_id)
            references = {
                "ledger entries": self._session.query(func.count(LedgerEntry.id))
                .filter(LedgerEntry.product_id == product_id)
                .scalar(),
                "price changes": self._session.query(func.count(PriceChangeLog.id))
                .filter(PriceChangeLog.product_id == product_id)
                .scalar(),
            }
            references = {name: count for name, count in references.items() if count}
            if references:
                raise ReferentialIntegrityError("Product", product_id, references)
            self._session.delete(product)
        logger.info("Deleted product %s", product_id)


# --- read side ---

def get_entry(db: Session, entry_id: str) -> LedgerEntry | None:
    return db.query(LedgerEntry).filter(LedgerEntry.id == entry_id).first()


def _filtered(
    q,
    product_id: str | None,
    supplier_id: str | None,
    kind: EntryKind | None,
    start: datetime | None,
    end: datetime | None,
):
    if product_id:
        q = q.filter(LedgerEntry.product_id == product_id)
    if supplier_id:
        q = q.filter(LedgerEntry.supplier_id == supplier_id)
    if kind:
        q = q.filter(LedgerEntry.kind == kind)
    if start:
        q = q.filter(LedgerEntry.occurred_at >= start)
    if end:
        q = q.filter(LedgerEntry.occurred_at <= end)
    return q


def list_entries(
    db: Session,
    product_id: str | None = None,
    supplier_id: str | None = None,
    kind: EntryKind | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    skip: int = 0,
    limit: int = 100,
) -> list[LedgerEntry]:
    q = _filtered(db.query(LedgerEntry), product_id, supplier_id, kind, start, end)
    return q.order_by(LedgerEntry.occurred_at, LedgerEntry.id).offset(skip).limit(limit).all()


def ledger_summary(
    db: Session,
    product_id: str | None = None,
    supplier_id: str | None = None,
    kind: EntryKind | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    skip: int = 0,
    limit: int = 100,
) -> list[LedgerSummaryRow]:
    """Ledger entries with product and supplier names resolved."""
    q = (
        db.query(LedgerEntry, Product.name, Supplier.name)
        .join(Product, Product.id == LedgerEntry.product_id)
        .join(Supplier, Supplier.id == LedgerEntry.supplier_id)
    )
    q = _filtered(q, product_id, supplier_id, kind, start, end)
    rows = q.order_by(LedgerEntry.occurred_at.desc(), LedgerEntry.id).offset(skip).limit(limit).all()
    return [
        LedgerSummaryRow(
            entry_id=entry.id,
            product_name=product_name,
            supplier_name=supplier_name,
            kind=entry.kind,
            occurred_at=entry.occurred_at,
            quantity=entry.quantity,
            unit_price=entry.unit_price,
            total=entry.total,
        )
        for entry, product_name, supplier_name in rows
    ]
