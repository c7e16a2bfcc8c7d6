from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel

from stockledger.models.supplier import LinkState, SupplierState


class SupplierCreate(BaseModel):
    name: str
    address: str = ""
    phone: str = ""
    email: str | None = None


class SupplierUpdate(BaseModel):
    name: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    state: SupplierState | None = None


class SupplierOut(BaseModel):
    id: str
    name: str
    address: str
    phone: str
    email: str | None
    state: SupplierState
    registered_at: datetime | None = None

    model_config = {"from_attributes": True}


class LinkCreate(BaseModel):
    product_id: str
    supplier_id: str
    supplier_price: Decimal
    lead_time_days: int | None = None
    start_date: date
    end_date: date | None = None
    state: LinkState = LinkState.ACTIVE


class LinkUpdate(BaseModel):
    supplier_price: Decimal | None = None
    lead_time_days: int | None = None
    end_date: date | None = None
    state: LinkState | None = None


class LinkOut(BaseModel):
    id: str
    product_id: str
    supplier_id: str
    supplier_price: Decimal
    lead_time_days: int | None
    start_date: date
    end_date: date | None
    state: LinkState

    model_config = {"from_attributes": True}
