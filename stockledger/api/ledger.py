from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from stockledger.database import get_db
from stockledger.models.ledger_entry import EntryKind
from stockledger.schemas.ledger import (
    LedgerEntryOut,
    LedgerSummaryRow,
    MovementCreate,
    StockDiscrepancyOut,
    TransferCreate,
    TransferOut,
)
from stockledger.services import integrity_service, ledger_service
from stockledger.services.ledger_service import StockLedger

router = APIRouter(prefix="/ledger", tags=["Ledger"])


def get_ledger(db: Session = Depends(get_db)) -> StockLedger:
    return StockLedger(db)


@router.post("/purchases", response_model=LedgerEntryOut, status_code=201)
def record_purchase(data: MovementCreate, ledger: StockLedger = Depends(get_ledger)):
    return ledger.record_purchase(
        data.product_id, data.supplier_id, data.quantity, data.unit_price, data.notes, data.occurred_at
    )


@router.post("/sales", response_model=LedgerEntryOut, status_code=201)
def record_sale(data: MovementCreate, ledger: StockLedger = Depends(get_ledger)):
    return ledger.record_sale(
        data.product_id, data.supplier_id, data.quantity, data.unit_price, data.notes, data.occurred_at
    )


@router.post("/transfers", response_model=TransferOut, status_code=201)
def transfer(data: TransferCreate, ledger: StockLedger = Depends(get_ledger)):
    sale, purchase = ledger.transfer_between_suppliers(
        data.product_id, data.from_supplier_id, data.to_supplier_id, data.quantity, data.unit_price, data.notes
    )
    return TransferOut(
        transfer_id=sale.transfer_id,
        sale=LedgerEntryOut.model_validate(sale),
        purchase=LedgerEntryOut.model_validate(purchase),
    )


@router.get("/entries", response_model=list[LedgerEntryOut])
def list_entries(
    product_id: str | None = None,
    supplier_id: str | None = None,
    kind: EntryKind | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return ledger_service.list_entries(
        db, product_id=product_id, supplier_id=supplier_id, kind=kind, start=start, end=end, skip=skip, limit=limit
    )


@router.get("/entries/{entry_id}", response_model=LedgerEntryOut)
def get_entry(entry_id: str, db: Session = Depends(get_db)):
    entry = ledger_service.get_entry(db, entry_id)
    if not entry:
        raise HTTPException(404, "Ledger entry not found")
    return entry


@router.get("/summary", response_model=list[LedgerSummaryRow])
def summary(
    product_id: str | None = None,
    supplier_id: str | None = None,
    kind: EntryKind | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return ledger_service.ledger_summary(
        db, product_id=product_id, supplier_id=supplier_id, kind=kind, start=start, end=end, skip=skip, limit=limit
    )


@router.get("/integrity", response_model=list[StockDiscrepancyOut])
def integrity(db: Session = Depends(get_db)):
    """Products whose recorded stock disagrees with the ledger. Empty when consistent."""
    return integrity_service.check_all(db)
