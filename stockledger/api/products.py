from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from stockledger.api.auth import get_current_user
from stockledger.api.ledger import get_ledger
from stockledger.database import get_db
from stockledger.models.product import ProductState
from stockledger.models.user import User
from stockledger.schemas.ledger import StockDiscrepancyOut
from stockledger.schemas.product import (
    OfferOut,
    PriceChangeOut,
    PriceUpdate,
    ProductCreate,
    ProductOut,
    ProductUpdate,
)
from stockledger.services import audit_service, integrity_service, product_service
from stockledger.services.ledger_service import StockLedger

router = APIRouter(prefix="/products", tags=["Products"])


@router.post("", response_model=ProductOut, status_code=201)
def create_product(data: ProductCreate, db: Session = Depends(get_db)):
    return product_service.create_product(db, data)


@router.get("", response_model=list[ProductOut])
def list_products(skip: int = 0, limit: int = 100, state: ProductState | None = None, db: Session = Depends(get_db)):
    return product_service.list_products(db, skip=skip, limit=limit, state=state)


@router.get("/offers", response_model=list[OfferOut])
def list_offers(product_id: str | None = None, db: Session = Depends(get_db)):
    return product_service.list_offers(db, product_id=product_id)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: str, db: Session = Depends(get_db)):
    product = product_service.get_product(db, product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(product_id: str, data: ProductUpdate, db: Session = Depends(get_db)):
    return product_service.update_product(db, product_id, data)


@router.delete("/{product_id}", status_code=204)
def delete_product(product_id: str, ledger: StockLedger = Depends(get_ledger)):
    ledger.delete_product(product_id)


@router.post("/{product_id}/price", response_model=ProductOut)
def update_price(
    product_id: str,
    data: PriceUpdate,
    user: User = Depends(get_current_user),
    ledger: StockLedger = Depends(get_ledger),
):
    return ledger.update_price(product_id, data.new_price, actor=user.username)


@router.get("/{product_id}/price-changes", response_model=list[PriceChangeOut])
def price_changes(product_id: str, limit: int = 100, db: Session = Depends(get_db)):
    if not product_service.get_product(db, product_id):
        raise HTTPException(404, "Product not found")
    return audit_service.list_price_changes(db, product_id=product_id, limit=limit)


@router.get("/{product_id}/integrity", response_model=StockDiscrepancyOut | None)
def product_integrity(product_id: str, db: Session = Depends(get_db)):
    return integrity_service.check_product(db, product_id)
