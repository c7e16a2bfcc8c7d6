from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from stockledger.models.ledger_entry import EntryKind


class MovementCreate(BaseModel):
    """Body of a purchase or sale request."""

    product_id: str
    supplier_id: str
    quantity: int
    unit_price: Decimal
    notes: str = ""
    occurred_at: datetime | None = None


class TransferCreate(BaseModel):
    product_id: str
    from_supplier_id: str
    to_supplier_id: str
    quantity: int
    unit_price: Decimal
    notes: str = ""


class LedgerEntryOut(BaseModel):
    id: str
    product_id: str
    supplier_id: str
    kind: EntryKind
    occurred_at: datetime
    quantity: int
    unit_price: Decimal
    total: Decimal
    notes: str
    transfer_id: str | None = None

    model_config = {"from_attributes": True}


class TransferOut(BaseModel):
    transfer_id: str
    sale: LedgerEntryOut
    purchase: LedgerEntryOut


class LedgerSummaryRow(BaseModel):
    entry_id: str
    product_name: str
    supplier_name: str
    kind: EntryKind
    occurred_at: datetime
    quantity: int
    unit_price: Decimal
    total: Decimal


class StockDiscrepancyOut(BaseModel):
    product_id: str
    recorded_stock: int
    ledger_stock: int

    model_config = {"from_attributes": True}
