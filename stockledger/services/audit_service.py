"""
Session hooks that keep the audit trail and the ledger honest.

Registered once, on import, against every ``Session``:

- Price audit: whenever a flush carries a change to ``Product.price`` the hook
  adds one ``PriceChangeLog`` row to the same flush, so the log commits or
  rolls back together with the price itself. The actor and clock come from
  ``session.info`` (``StockLedger.update_price`` sets both); changes made by
  any other path are attributed to ``"system"``.
- Immutability: ``LedgerEntry`` and ``PriceChangeLog`` rows may be inserted
  but never updated or deleted through the ORM.
"""

import logging

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from stockledger.clock import SystemClock
from stockledger.exceptions import ImmutabilityViolationError
from stockledger.models.ledger_entry import LedgerEntry
from stockledger.models.price_change import PriceChangeLog
from stockledger.models.product import Product

logger = logging.getLogger(__name__)

ACTOR_KEY = "actor"
CLOCK_KEY = "clock"
DEFAULT_ACTOR = "system"

_IMMUTABLE = (LedgerEntry, PriceChangeLog)


def _price_changes(session: Session) -> list[PriceChangeLog]:
    clock = session.info.get(CLOCK_KEY) or SystemClock()
    actor = session.info.get(ACTOR_KEY) or DEFAULT_ACTOR
    logs = []
    for obj in session.dirty:
        if not isinstance(obj, Product):
            continue
        history = inspect(obj).attrs.price.history
        if not history.added or not history.deleted:
            continue
        old_price, new_price = history.deleted[0], history.added[0]
        if old_price is None or new_price is None or old_price == new_price:
            continue
        logs.append(
            PriceChangeLog(
                product_id=obj.id,
                old_price=old_price,
                new_price=new_price,
                changed_at=clock.now(),
                actor=actor,
            )
        )
    return logs


@event.listens_for(Session, "before_flush")
def _before_flush(session, flush_context, instances):
    for obj in session.dirty:
        if isinstance(obj, _IMMUTABLE) and session.is_modified(obj):
            raise ImmutabilityViolationError(type(obj).__name__, str(obj.id), "UPDATE")
    for obj in session.deleted:
        if isinstance(obj, _IMMUTABLE):
            raise ImmutabilityViolationError(type(obj).__name__, str(obj.id), "DELETE")

    for log in _price_changes(session):
        logger.info(
            "Price of product %s changed %s -> %s by %s",
            log.product_id, log.old_price, log.new_price, log.actor,
        )
        session.add(log)


def list_price_changes(db: Session, product_id: str | None = None, limit: int = 100) -> list[PriceChangeLog]:
    q = db.query(PriceChangeLog)
    if product_id:
        q = q.filter(PriceChangeLog.product_id == product_id)
    return q.order_by(PriceChangeLog.changed_at.desc()).limit(limit).all()
