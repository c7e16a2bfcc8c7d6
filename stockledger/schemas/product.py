from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from stockledger.models.product import ProductState


class ProductCreate(BaseModel):
    name: str
    description: str = ""
    price: Decimal
    stock: int = 0  # opening balance


class ProductUpdate(BaseModel):
    # Price and stock are deliberately absent: they only move through StockLedger
    name: str | None = None
    description: str | None = None
    state: ProductState | None = None


class PriceUpdate(BaseModel):
    new_price: Decimal


class ProductOut(BaseModel):
    id: str
    name: str
    description: str
    price: Decimal
    stock: int
    opening_stock: int
    state: ProductState
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class PriceChangeOut(BaseModel):
    id: str
    product_id: str
    old_price: Decimal
    new_price: Decimal
    changed_at: datetime
    actor: str

    model_config = {"from_attributes": True}


class OfferOut(BaseModel):
    """Active product joined with one of its active supplier links."""

    product_id: str
    product_name: str
    price: Decimal
    stock: int
    supplier_id: str
    supplier_name: str
    supplier_price: Decimal
    lead_time_days: int | None
