from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from stockledger.database import get_db
from stockledger.models.supplier import LinkState, SupplierState
from stockledger.schemas.supplier import (
    LinkCreate,
    LinkOut,
    LinkUpdate,
    SupplierCreate,
    SupplierOut,
    SupplierUpdate,
)
from stockledger.services import supplier_service

router = APIRouter(tags=["Suppliers"])


@router.post("/suppliers", response_model=SupplierOut, status_code=201)
def create_supplier(data: SupplierCreate, db: Session = Depends(get_db)):
    return supplier_service.create_supplier(db, data)


@router.get("/suppliers", response_model=list[SupplierOut])
def list_suppliers(skip: int = 0, limit: int = 100, state: SupplierState | None = None, db: Session = Depends(get_db)):
    return supplier_service.list_suppliers(db, skip=skip, limit=limit, state=state)


@router.get("/suppliers/{supplier_id}", response_model=SupplierOut)
def get_supplier(supplier_id: str, db: Session = Depends(get_db)):
    supplier = supplier_service.get_supplier(db, supplier_id)
    if not supplier:
        raise HTTPException(404, "Supplier not found")
    return supplier


@router.patch("/suppliers/{supplier_id}", response_model=SupplierOut)
def update_supplier(supplier_id: str, data: SupplierUpdate, db: Session = Depends(get_db)):
    return supplier_service.update_supplier(db, supplier_id, data)


@router.delete("/suppliers/{supplier_id}", status_code=204)
def delete_supplier(supplier_id: str, db: Session = Depends(get_db)):
    supplier_service.delete_supplier(db, supplier_id)


# --- Product/supplier links ---

@router.post("/links", response_model=LinkOut, status_code=201)
def create_link(data: LinkCreate, db: Session = Depends(get_db)):
    return supplier_service.create_link(db, data)


@router.get("/links", response_model=list[LinkOut])
def list_links(
    product_id: str | None = None,
    supplier_id: str | None = None,
    state: LinkState | None = None,
    db: Session = Depends(get_db),
):
    return supplier_service.list_links(db, product_id=product_id, supplier_id=supplier_id, state=state)


@router.patch("/links/{link_id}", response_model=LinkOut)
def update_link(link_id: str, data: LinkUpdate, db: Session = Depends(get_db)):
    return supplier_service.update_link(db, link_id, data)


@router.delete("/links/{link_id}", status_code=204)
def delete_link(link_id: str, db: Session = Depends(get_db)):
    supplier_service.delete_link(db, link_id)
