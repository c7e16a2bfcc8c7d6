import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, DateTime, Enum, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.database import Base


class ProductState(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Cached balance; written only by StockLedger while holding the product lock
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Balance the product was created with; the ledger's starting point
    opening_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    state: Mapped[str] = mapped_column(
        Enum(ProductState, values_callable=lambda x: [e.value for e in x]),
        default=ProductState.ACTIVE,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_products_price_positive"),
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("opening_stock >= 0", name="ck_products_opening_stock_non_negative"),
    )

    @property
    def is_active(self) -> bool:
        return self.state == ProductState.ACTIVE
