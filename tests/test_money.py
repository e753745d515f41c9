from decimal import Decimal
import pytest
from marketplace.errors import ValidationFailed
from marketplace.services.money import (
    calculate_commission,
    calculate_commission_reversal,
    format_money,
    to_decimal,
)


def test_to_decimal_rounds_half_up():
    assert to_decimal('10.005') == Decimal('10.01')
    assert to_decimal('10.004') == Decimal('10.00')
    assert to_decimal(7) == Decimal('7.00')


def test_to_decimal_keeps_float_digits():
    assert to_decimal(0.1) == Decimal('0.10')
    assert to_decimal(19.99) == Decimal('19.99')


@pytest.mark.parametrize('bad', [None, True, 'abc', 'NaN', 'Infinity', ''])
def test_to_decimal_rejects_garbage(bad):
    with pytest.raises(ValidationFailed):
        to_decimal(bad)


def test_commission_split():
    commission, payout = calculate_commission('100.00', '15')
    assert commission == Decimal('15.00')
    assert payout == Decimal('85.00')


def test_commission_split_rounds_to_cents():
    commission, payout = calculate_commission('33.33', '20')
    assert commission == Decimal('6.67')
    assert commission + payout == Decimal('33.33')


def test_commission_reversal():
    assert calculate_commission_reversal('100', '15') == Decimal('15.00')
    assert calculate_commission_reversal('0', '15') == Decimal('0.00')


def test_format_money():
    assert format_money('45') == '$45.00'
