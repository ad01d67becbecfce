"""Fixed-point money helpers.

All monetary amounts are ``Decimal`` values quantized to cents. They are
persisted and serialized as decimal strings, never as floats.
"""

from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Coerce ``value`` to a cent-quantized Decimal.

    Floats are converted through ``str`` so ``2.99`` stays ``2.99``.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(str(value))
    else:
        amount = Decimal(value)
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def money_str(value) -> str:
    return str(to_money(value))
