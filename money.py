from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Normalise a database numeric (Decimal, float, int or None) to cents."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percentage(part, whole) -> float:
    """``round(part / whole * 100, 2)``; a zero or missing ``whole`` gives 0."""
    whole = to_decimal(whole)
    if whole <= 0:
        return 0.0
    ratio = to_decimal(part) / whole * 100
    return float(ratio.quantize(CENT, rounding=ROUND_HALF_UP))
