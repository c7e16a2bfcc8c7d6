import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.database import Base


class EntryKind(str, PyEnum):
    PURCHASE = "purchase"
    SALE = "sale"


class LedgerEntry(Base):
    """One stock-moving event. Rows are written once and never updated or deleted."""

    __tablename__ = "ledger_entries"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id: Mapped[str] = mapped_column(
        String, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    supplier_id: Mapped[str] = mapped_column(
        String, ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False
    )
    kind: Mapped[str] = mapped_column(
        Enum(EntryKind, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="")

    # Shared by the sale and purchase legs of one supplier transfer
    transfer_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_ledger_entries_quantity_positive"),
        CheckConstraint("unit_price > 0", name="ck_ledger_entries_unit_price_positive"),
        Index("ix_ledger_entries_product", "product_id"),
        Index("ix_ledger_entries_supplier", "supplier_id"),
        Index("ix_ledger_entries_occurred_kind", "occurred_at", "kind"),
    )
