"""Input normalisation shared by the ledger services."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from app.services.exceptions import ValidationError

CENT = Decimal('0.01')
# Largest value a Numeric(12, 2) money column holds
MAX_MONEY = Decimal('9999999999.99')


def to_money(value, field='amount'):
    """Return `value` as a Decimal rounded to paise, rejecting anything <= 0 or too large to store."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required", field=field)
    try:
        amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)

    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} must be greater than 0", field=field)
    if amount > MAX_MONEY:
        raise ValidationError(f"{field} must not exceed {MAX_MONEY}", field=field)
    return amount


def require_text(value, field):
    """Return the stripped string or raise if it is missing or blank."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


def optional_text(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None
