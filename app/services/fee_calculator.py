from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.core.exceptions import InvalidInputError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | float | str, *, field: str) -> Decimal:
    """Coerce an amount to Decimal, rejecting non-finite and non-numeric input."""
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a number")
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float, str)):
        try:
            # str() keeps floats from leaking binary artefacts into the Decimal.
            parsed = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise InvalidInputError(f"{field} must be a number") from exc
    else:
        raise InvalidInputError(f"{field} must be a number")
    if not parsed.is_finite():
        raise InvalidInputError(f"{field} must be finite")
    return parsed


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def validate_effective_value(value: Decimal | int | float | str) -> Decimal:
    parsed = to_decimal(value, field="effective_value")
    if parsed < 0:
        raise InvalidInputError("effective_value cannot be negative")
    return quantize_money(parsed)


def validate_fee_percentage(value: Decimal | int | float | str) -> Decimal:
    parsed = to_decimal(value, field="fee_percentage")
    if parsed < 0:
        raise InvalidInputError("fee_percentage cannot be negative")
    if parsed > HUNDRED:
        raise InvalidInputError("fee_percentage cannot exceed 100")
    return quantize_money(parsed)


def calculate_fee(effective_value: Decimal | int | float | str, fee_percentage: Decimal | int | float | str) -> Decimal:
    """Return ``round(effective_value * fee_percentage / 100, 2)``, rounding half up."""
    value = to_decimal(effective_value, field="effective_value")
    rate = to_decimal(fee_percentage, field="fee_percentage")
    if value < 0:
        raise InvalidInputError("effective_value cannot be negative")
    if rate < 0:
        raise InvalidInputError("fee_percentage cannot be negative")
    return quantize_money(value * rate / HUNDRED)


def resolve_fee_percentage(supplier_override: Decimal | None, default: Decimal) -> Decimal:
    """Pick the supplier's active rate at completion time; the result is frozen on the entry."""
    if supplier_override is not None:
        return validate_fee_percentage(supplier_override)
    return validate_fee_percentage(default)
