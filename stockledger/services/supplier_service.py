import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockledger.exceptions import NotFoundError, ReferentialIntegrityError, ValidationError
from stockledger.models.ledger_entry import LedgerEntry
from stockledger.models.product import Product
from stockledger.models.supplier import LinkState, ProductSupplierLink, Supplier, SupplierState
from stockledger.schemas.supplier import LinkCreate, LinkUpdate, SupplierCreate, SupplierUpdate
from stockledger.validators import require_positive_price, require_text, validate_email, validate_phone

logger = logging.getLogger(__name__)


# --- Suppliers ---

def _ensure_email_free(db: Session, email: str | None, supplier_id: str | None = None) -> None:
    if email is None:
        return
    q = db.query(Supplier).filter(func.lower(Supplier.email) == email)
    if supplier_id:
        q = q.filter(Supplier.id != supplier_id)
    if q.first():
        raise ValidationError(f"Email {email} is already registered to another supplier", field="email")


def create_supplier(db: Session, data: SupplierCreate) -> Supplier:
    email = validate_email(data.email)
    _ensure_email_free(db, email)
    supplier = Supplier(
        name=require_text(data.name, "name"),
        address=(data.address or "").strip(),
        phone=validate_phone(data.phone),
        email=email,
        state=SupplierState.ACTIVE,
    )
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    logger.info("Registered supplier %s (%s)", supplier.id, supplier.name)
    return supplier


def get_supplier(db: Session, supplier_id: str) -> Supplier | None:
    return db.query(Supplier).filter(Supplier.id == supplier_id).first()


def require_supplier(db: Session, supplier_id: str) -> Supplier:
    supplier = get_supplier(db, supplier_id)
    if not supplier:
        raise NotFoundError("Supplier", supplier_id)
    return supplier


def get_supplier_by_email(db: Session, email: str) -> Supplier | None:
    return db.query(Supplier).filter(func.lower(Supplier.email) == email.strip().lower()).first()


def list_suppliers(
    db: Session, skip: int = 0, limit: int = 100, state: SupplierState | None = None
) -> list[Supplier]:
    q = db.query(Supplier)
    if state:
        q = q.filter(Supplier.state == state)
    return q.order_by(Supplier.name).offset(skip).limit(limit).all()


def update_supplier(db: Session, supplier_id: str, data: SupplierUpdate) -> Supplier:
    supplier = require_supplier(db, supplier_id)
    update_data = data.model_dump(exclude_unset=True)
    if "name" in update_data:
        update_data["name"] = require_text(update_data["name"], "name")
    if "address" in update_data:
        update_data["address"] = (update_data["address"] or "").strip()
    if "phone" in update_data:
        update_data["phone"] = validate_phone(update_data["phone"])
    if "email" in update_data:
        update_data["email"] = validate_email(update_data["email"])
        _ensure_email_free(db, update_data["email"], supplier_id=supplier.id)
    if "state" in update_data and update_data["state"] is None:
        raise ValidationError("state must not be null", field="state")
    for field, value in update_data.items():
        setattr(supplier, field, value)
    db.commit()
    db.refresh(supplier)
    return supplier


def delete_supplier(db: Session, supplier_id: str) -> None:
    """Delete a supplier and its links. Suppliers named on ledger entries are kept."""
    supplier = require_supplier(db, supplier_id)
    entry_count = db.query(func.count(LedgerEntry.id)).filter(LedgerEntry.supplier_id == supplier_id).scalar()
    if entry_count:
        raise ReferentialIntegrityError("Supplier", supplier_id, {"ledger entries": entry_count})
    db.delete(supplier)
    try:
        db.commit()
    except IntegrityError:
        # A ledger entry naming the supplier was committed after the count
        db.rollback()
        entry_count = db.query(func.count(LedgerEntry.id)).filter(LedgerEntry.supplier_id == supplier_id).scalar()
        raise ReferentialIntegrityError("Supplier", supplier_id, {"ledger entries": entry_count})
    logger.info("Deleted supplier %s (%s)", supplier_id, supplier.name)


# --- Product/supplier links ---

def _ensure_link_slot_free(
    db: Session, product_id: str, supplier_id: str, state: LinkState, link_id: str | None = None
) -> None:
    q = db.query(ProductSupplierLink).filter(
        ProductSupplierLink.product_id == product_id,
        ProductSupplierLink.supplier_id == supplier_id,
        ProductSupplierLink.state == state,
    )
    if link_id:
        q = q.filter(ProductSupplierLink.id != link_id)
    if q.first():
        raise ValidationError(
            f"Supplier {supplier_id} already has a {state.value} link for product {product_id}",
            field="state",
        )


def _check_lead_time(value: int | None) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"lead_time_days must be a positive integer, got {value!r}", field="lead_time_days")
    return value


def create_link(db: Session, data: LinkCreate) -> ProductSupplierLink:
    if not db.query(Product).filter(Product.id == data.product_id).first():
        raise NotFoundError("Product", data.product_id)
    require_supplier(db, data.supplier_id)
    if data.end_date is not None and data.end_date < data.start_date:
        raise ValidationError("end_date must not be before start_date", field="end_date")
    _ensure_link_slot_free(db, data.product_id, data.supplier_id, data.state)

    link = ProductSupplierLink(
        product_id=data.product_id,
        supplier_id=data.supplier_id,
        supplier_price=require_positive_price(data.supplier_price, "supplier_price"),
        lead_time_days=_check_lead_time(data.lead_time_days),
        start_date=data.start_date,
        end_date=data.end_date,
        state=data.state,
    )
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


def get_link(db: Session, link_id: str) -> ProductSupplierLink | None:
    return db.query(ProductSupplierLink).filter(ProductSupplierLink.id == link_id).first()


def list_links(
    db: Session,
    product_id: str | None = None,
    supplier_id: str | None = None,
    state: LinkState | None = None,
) -> list[ProductSupplierLink]:
    q = db.query(ProductSupplierLink)
    if product_id:
        q = q.filter(ProductSupplierLink.product_id == product_id)
    if supplier_id:
        q = q.filter(ProductSupplierLink.supplier_id == supplier_id)
    if state:
        q = q.filter(ProductSupplierLink.state == state)
    return q.order_by(ProductSupplierLink.start_date).all()


def update_link(db: Session, link_id: str, data: LinkUpdate) -> ProductSupplierLink:
    link = get_link(db, link_id)
    if not link:
        raise NotFoundError("Link", link_id)
    update_data = data.model_dump(exclude_unset=True)
    if "supplier_price" in update_data:
        update_data["supplier_price"] = require_positive_price(update_data["supplier_price"], "supplier_price")
    if "lead_time_days" in update_data:
        update_data["lead_time_days"] = _check_lead_time(update_data["lead_time_days"])
    if update_data.get("end_date") is not None and update_data["end_date"] < link.start_date:
        raise ValidationError("end_date must not be before start_date", field="end_date")
    if "state" in update_data:
        if update_data["state"] is None:
            raise ValidationError("state must not be null", field="state")
        if update_data["state"] != link.state:
            _ensure_link_slot_free(db, link.product_id, link.supplier_id, update_data["state"], link_id=link.id)
    for field, value in update_data.items():
        setattr(link, field, value)
    db.commit()
    db.refresh(link)
    return link


def delete_link(db: Session, link_id: str) -> None:
    link = get_link(db, link_id)
    if not link:
        raise NotFoundError("Link", link_id)
    db.delete(link)
    db.commit()
