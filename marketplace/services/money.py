"""Decimal-safe money helpers shared by the quote and ledger services."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from marketplace.errors import ValidationFailed

ZERO = Decimal('0.00')
HUNDRED = Decimal('100')


def to_decimal(amount, precision=2):
    """Normalise a price-like value to a quantized Decimal.

    Floats go through ``repr`` first so 0.1 stays 0.1. Non-finite or
    unparseable input raises ``ValidationFailed``.
    """
    if isinstance(amount, bool) or amount is None:
        raise ValidationFailed(f'Invalid monetary amount: {amount!r}')
    try:
        if isinstance(amount, float):
            value = Decimal(repr(amount))
        else:
            value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValidationFailed(f'Invalid monetary amount: {amount!r}')
    if not value.is_finite():
        raise ValidationFailed(f'Invalid monetary amount: {amount!r}')
    quantum = Decimal(1).scaleb(-precision)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def calculate_commission(amount, commission_rate):
    """Split ``amount`` into (platform commission, seller payout)."""
    amount = to_decimal(amount)
    commission = to_decimal(amount * to_decimal(commission_rate) / HUNDRED)
    return commission, amount - commission


def calculate_commission_reversal(refund_amount, commission_rate):
    return to_decimal(
        to_decimal(refund_amount) * to_decimal(commission_rate) / HUNDRED)


def format_money(amount):
    return f'${to_decimal(amount)}'
