import re
from decimal import Decimal, InvalidOperation

from stockledger.exceptions import ValidationError

EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
PHONE_RE = re.compile(r"^[0-9+\-() .]*$")

PRICE_QUANTUM = Decimal("0.01")


def require_text(value: str | None, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} must not be blank", field=field)
    return text


def require_positive_price(value, field: str = "price") -> Decimal:
    """Coerce to a 2-decimal Decimal and reject anything not strictly positive."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        price = Decimal(str(value)).quantize(PRICE_QUANTUM)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field)
    if not price.is_finite() or price <= 0:
        raise ValidationError(f"{field} must be greater than 0, got {value}", field=field)
    return price


def require_positive_int(value, field: str = "quantity") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer, got {value!r}", field=field)
    if value <= 0:
        raise ValidationError(f"{field} must be greater than 0, got {value}", field=field)
    return value


def validate_email(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    email = value.strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError(f"Invalid email address: {value}", field="email")
    return email


def validate_phone(value: str | None) -> str:
    phone = (value or "").strip()
    if len(phone) > 20 or not PHONE_RE.match(phone):
        raise ValidationError(f"Invalid phone number: {value}", field="phone")
    return phone
