"""
Typed errors raised by the catalog store and the consistency engine.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with. Errors that describe a rejected operation also keep the
values involved as attributes so callers never have to parse messages:

    try:
        ledger.record_sale(product_id, supplier_id, 5, price)
    except InsufficientStockError as e:
        retry_with = e.available

Hierarchy:

    InventoryError
    +-- ValidationError
    +-- NotFoundError
    +-- InactiveEntityError
    +-- InsufficientStockError
    +-- ExcessivePriceChangeError
    +-- ReferentialIntegrityError
    +-- LockTimeoutError
    +-- ImmutabilityViolationError

None of these are retried inside the library.
"""

from decimal import Decimal


class InventoryError(Exception):
    """Base class for all stock ledger errors."""

    code: str = "INVENTORY_ERROR"
    http_status: int = 400

    def __init__(self, message: str = "Inventory operation failed"):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.message}


class ValidationError(InventoryError):
    """Malformed input: non-positive quantity or price, blank field, bad email."""

    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class NotFoundError(InventoryError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InactiveEntityError(InventoryError):
    code = "INACTIVE_ENTITY"
    http_status = 409

    def __init__(self, entity: str, entity_id: str, state: str):
        super().__init__(f"{entity} {entity_id} is {state}, expected active")
        self.entity = entity
        self.entity_id = entity_id
        self.state = state


class InsufficientStockError(InventoryError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, product_id: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: available {available}, requested {requested}"
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(available=self.available, requested=self.requested)
        return data


class ExcessivePriceChangeError(InventoryError):
    code = "EXCESSIVE_PRICE_CHANGE"
    http_status = 422

    def __init__(self, product_id: str, current_price: Decimal, new_price: Decimal, max_ratio: float):
        super().__init__(
            f"Price change for product {product_id} from {current_price} to {new_price} "
            f"exceeds the allowed {max_ratio:.0%}"
        )
        self.product_id = product_id
        self.current_price = current_price
        self.new_price = new_price
        self.max_ratio = max_ratio

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(
            current_price=str(self.current_price),
            new_price=str(self.new_price),
            max_ratio=self.max_ratio,
        )
        return data


class ReferentialIntegrityError(InventoryError):
    """A delete blocked by rows that must outlive their parent (ledger entries, price history)."""

    code = "REFERENTIAL_INTEGRITY"
    http_status = 409

    def __init__(self, entity: str, entity_id: str, references: dict[str, int]):
        listed = ", ".join(f"{count} {name}" for name, count in references.items())
        super().__init__(f"{entity} {entity_id} is referenced by {listed} and cannot be deleted")
        self.entity = entity
        self.entity_id = entity_id
        self.references = references

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["references"] = self.references
        return data


class LockTimeoutError(InventoryError):
    code = "LOCK_TIMEOUT"
    http_status = 503

    def __init__(self, product_id: str, timeout: float):
        super().__init__(f"Timed out after {timeout}s waiting for the lock on product {product_id}")
        self.product_id = product_id
        self.timeout = timeout


class ImmutabilityViolationError(InventoryError):
    code = "IMMUTABILITY_VIOLATION"
    http_status = 409

    def __init__(self, entity: str, entity_id: str, operation: str):
        super().__init__(f"{entity} {entity_id} is immutable; {operation} rejected")
        self.entity = entity
        self.entity_id = entity_id
        self.operation = operation
