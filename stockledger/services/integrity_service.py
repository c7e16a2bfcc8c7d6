"""Read-only check that cached stock agrees with the ledger.

For every product: stock == opening_stock + sum(purchases) - sum(sales).
"""

import logging

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from stockledger.exceptions import NotFoundError
from stockledger.models.ledger_entry import EntryKind, LedgerEntry
from stockledger.models.product import Product
from stockledger.schemas.ledger import StockDiscrepancyOut

logger = logging.getLogger(__name__)

_signed_quantity = case(
    (LedgerEntry.kind == EntryKind.PURCHASE, LedgerEntry.quantity),
    else_=-LedgerEntry.quantity,
)


def net_movement(db: Session, product_id: str) -> int:
    """Purchases minus sales recorded for the product."""
    total = (
        db.query(func.coalesce(func.sum(_signed_quantity), 0))
        .filter(LedgerEntry.product_id == product_id)
        .scalar()
    )
    return int(total)


def ledger_balance(db: Session, product_id: str) -> int:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product", product_id)
    return product.opening_stock + net_movement(db, product_id)


def check_product(db: Session, product_id: str) -> StockDiscrepancyOut | None:
    product = db.query(Product).filter(Product.id == product_id).populate_existing().first()
    if not product:
        raise NotFoundError("Product", product_id)
    expected = product.opening_stock + net_movement(db, product_id)
    if expected == product.stock:
        return None
    logger.error("Stock drift on product %s: recorded %d, ledger %d", product.id, product.stock, expected)
    return StockDiscrepancyOut(product_id=product.id, recorded_stock=product.stock, ledger_stock=expected)


def check_all(db: Session) -> list[StockDiscrepancyOut]:
    """Every product whose recorded stock disagrees with its ledger. Empty when consistent."""
    movements = (
        db.query(LedgerEntry.product_id.label("product_id"), func.sum(_signed_quantity).label("net"))
        .group_by(LedgerEntry.product_id)
        .subquery()
    )
    rows = (
        db.query(Product.id, Product.stock, Product.opening_stock, func.coalesce(movements.c.net, 0))
        .outerjoin(movements, movements.c.product_id == Product.id)
        .order_by(Product.id)
        .all()
    )
    discrepancies = []
    for product_id, stock, opening_stock, net in rows:
        expected = opening_stock + int(net)
        if expected != stock:
            logger.error("Stock drift on product %s: recorded %d, ledger %d", product_id, stock, expected)
            discrepancies.append(
                StockDiscrepancyOut(product_id=product_id, recorded_stock=stock, ledger_stock=expected)
            )
    return discrepancies
