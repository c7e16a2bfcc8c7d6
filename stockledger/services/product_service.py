import logging

from sqlalchemy.orm import Session

from stockledger.exceptions import NotFoundError, ValidationError
from stockledger.models.product import Product, ProductState
from stockledger.models.supplier import LinkState, ProductSupplierLink, Supplier
from stockledger.schemas.product import OfferOut, ProductCreate, ProductUpdate
from stockledger.validators import require_positive_price, require_text

logger = logging.getLogger(__name__)


def create_product(db: Session, data: ProductCreate) -> Product:
    if isinstance(data.stock, bool) or not isinstance(data.stock, int) or data.stock < 0:
        raise ValidationError(f"Opening stock must be a non-negative integer, got {data.stock!r}", field="stock")

    product = Product(
        name=require_text(data.name, "name"),
        description=(data.description or "").strip(),
        price=require_positive_price(data.price),
        stock=data.stock,
        opening_stock=data.stock,
        state=ProductState.ACTIVE,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Created product %s (%s) with opening stock %d", product.id, product.name, product.stock)
    return product


def get_product(db: Session, product_id: str) -> Product | None:
    return db.query(Product).filter(Product.id == product_id).first()


def require_product(db: Session, product_id: str) -> Product:
    product = get_product(db, product_id)
    if not product:
        raise NotFoundError("Product", product_id)
    return product


def list_products(
    db: Session, skip: int = 0, limit: int = 100, state: ProductState | None = None
) -> list[Product]:
    q = db.query(Product)
    if state:
        q = q.filter(Product.state == state)
    return q.order_by(Product.name).offset(skip).limit(limit).all()


def update_product(db: Session, product_id: str, data: ProductUpdate) -> Product:
    """Edit catalog metadata. Price changes go through StockLedger.update_price."""
    product = require_product(db, product_id)
    update_data = data.model_dump(exclude_unset=True)
    if "name" in update_data:
        update_data["name"] = require_text(update_data["name"], "name")
    if "description" in update_data:
        update_data["description"] = (update_data["description"] or "").strip()
    if "state" in update_data and update_data["state"] is None:
        raise ValidationError("state must not be null", field="state")
    for field, value in update_data.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


def list_offers(db: Session, product_id: str | None = None) -> list[OfferOut]:
    """Active products with their active supplier links."""
    q = (
        db.query(Product, ProductSupplierLink, Supplier)
        .join(ProductSupplierLink, ProductSupplierLink.product_id == Product.id)
        .join(Supplier, Supplier.id == ProductSupplierLink.supplier_id)
        .filter(Product.state == ProductState.ACTIVE, ProductSupplierLink.state == LinkState.ACTIVE)
    )
    if product_id:
        q = q.filter(Product.id == product_id)
    rows = q.order_by(Product.name, ProductSupplierLink.supplier_price).all()
    return [
        OfferOut(
            product_id=product.id,
            product_name=product.name,
            price=product.price,
            stock=product.stock,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            supplier_price=link.supplier_price,
            lead_time_days=link.lead_time_days,
        )
        for product, link, supplier in rows
    ]
