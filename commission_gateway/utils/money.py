"""Money / rounding helpers"""

from decimal import Decimal, ROUND_CEILING, localcontext

CENT = Decimal("0.01")


def to_decimal(value: float | int | str | Decimal) -> Decimal:
    """Convert via the shortest repr so 0.1 becomes Decimal('0.1'), not its binary expansion"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def ceil_to_cents(value: Decimal) -> Decimal:
    """Smallest multiple of 0.01 that is >= value; exact cents map to themselves"""
    with localcontext() as ctx:
        # integer digits plus two decimals must fit in the context precision
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(CENT, rounding=ROUND_CEILING)
