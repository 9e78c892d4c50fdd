from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Coerce a stored or user value to 2-decimal fixed point. None and garbage become 0.00."""
    if value is None:
        return ZERO
    try:
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return ZERO


def to_amount(value) -> Decimal | None:
    """Like to_money, but only strictly positive amounts survive."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount <= 0:
        return None
    return amount
