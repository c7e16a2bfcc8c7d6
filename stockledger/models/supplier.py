import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.database import Base


class SupplierState(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class LinkState(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class Supplier(Base):
    __tablename__ = "suppliers"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    address: Mapped[str] = mapped_column(String(200), default="")
    phone: Mapped[str] = mapped_column(String(20), default="")
    email: Mapped[str | None] = mapped_column(String(100), unique=True, index=True, nullable=True)
    state: Mapped[str] = mapped_column(
        Enum(SupplierState, values_callable=lambda x: [e.value for e in x]),
        default=SupplierState.ACTIVE,
        index=True,
    )
    registered_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    links: Mapped[list["ProductSupplierLink"]] = relationship(
        "ProductSupplierLink", back_populates="supplier", cascade="all, delete-orphan"
    )

    @property
    def is_active(self) -> bool:
        return self.state == SupplierState.ACTIVE


class ProductSupplierLink(Base):
    """A supplier's standing offer for a product: price, lead time and validity window."""

    __tablename__ = "product_suppliers"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id: Mapped[str] = mapped_column(
        String, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    supplier_id: Mapped[str] = mapped_column(
        String, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False
    )
    supplier_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    lead_time_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    state: Mapped[str] = mapped_column(
        Enum(LinkState, values_callable=lambda x: [e.value for e in x]),
        default=LinkState.ACTIVE,
        index=True,
    )

    supplier: Mapped["Supplier"] = relationship("Supplier", back_populates="links")

    __table_args__ = (
        UniqueConstraint("product_id", "supplier_id", "state", name="uq_product_supplier_state"),
        CheckConstraint("supplier_price > 0", name="ck_product_suppliers_price_positive"),
        CheckConstraint("lead_time_days IS NULL OR lead_time_days > 0", name="ck_product_suppliers_lead_time"),
        CheckConstraint("end_date IS NULL OR end_date >= start_date", name="ck_product_suppliers_dates"),
        Index("ix_product_suppliers_product_supplier", "product_id", "supplier_id"),
    )
