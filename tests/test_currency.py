"""
Test suite for currency module

Tests Money, minor-unit conversion and amount parsing. Balances are
persisted as integer minor units, so every conversion must be exact.
"""

import pytest
from decimal import Decimal

from core_library.currency import (
    INT32_MAX, INT32_MIN, Currency, Money, checked_balance, currency_from_code,
    decimal_from_string, parse_positive_amount,
)
from core_library.errors import InvalidInputError


class TestMoney:
    """Test Money class operations"""

    def test_money_creation(self):
        """Test rounding to currency precision"""
        assert Money(Decimal('0.305'), Currency.CNY).amount == Decimal('0.31')
        assert Money(Decimal('100.7'), Currency.JPY).amount == Decimal('101')

    def test_minor_units(self):
        """Test conversion to and from persisted minor units"""
        money = Money.from_minor_units(-30, Currency.CNY)
        assert money.amount == Decimal('-0.30')
        assert money.to_minor_units() == -30
        assert Money.from_minor_units(250, Currency.JPY).to_minor_units() == 250

    def test_money_arithmetic(self):
        fee = Money(Decimal('0.30'), Currency.CNY)
        assert (fee * 7).amount == Decimal('2.10')
        assert (fee + fee).amount == Decimal('0.60')
        assert (fee - fee).is_zero()
        assert (-fee).is_negative()

    def test_mixed_currency_rejected(self):
        with pytest.raises(ValueError):
            Money(Decimal('1'), Currency.CNY) + Money(Decimal('1'), Currency.USD)

    def test_to_string(self):
        assert Money(Decimal('-0.3'), Currency.CNY).to_string() == "CNY -0.30"
        assert Money(Decimal('1234.5'), Currency.USD).to_string() == "USD 1,234.50"
        assert Money(Decimal('500'), Currency.JPY).to_string() == "JPY 500"


class TestParsing:
    """Test user amount parsing"""

    @pytest.mark.parametrize("text,expected", [
        ("12.50", Decimal("12.50")),
        ("¥12.50", Decimal("12.50")),
        ("1,000.25", Decimal("1000.25")),
        ("12,5", Decimal("12.5")),
        (" CNY 3.00 ", Decimal("3.00")),
        ("-2", Decimal("-2")),
    ])
    def test_decimal_from_string(self, text, expected):
        assert decimal_from_string(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "1.2.3", "abc12", "1e5", "12-3", "12 apples"])
    def test_decimal_from_string_rejects(self, text):
        with pytest.raises(InvalidInputError):
            decimal_from_string(text)

    def test_parse_positive_amount(self):
        assert parse_positive_amount("3", Currency.CNY).to_minor_units() == 300
        assert parse_positive_amount(2, Currency.CNY).amount == Decimal("2.00")
        assert parse_positive_amount(Decimal("0.01"), Currency.CNY).to_minor_units() == 1

    @pytest.mark.parametrize("value", ["0", "-1", "0.001", Decimal("-2")])
    def test_parse_positive_amount_rejects(self, value):
        with pytest.raises(InvalidInputError):
            parse_positive_amount(value, Currency.CNY)

    def test_currency_from_code(self):
        assert currency_from_code("cny") is Currency.CNY
        with pytest.raises(InvalidInputError):
            currency_from_code("XXX")


class TestBalanceRange:
    """Test the persisted balance range"""

    def test_bounds_accepted(self):
        assert checked_balance(INT32_MAX) == INT32_MAX
        assert checked_balance(INT32_MIN) == INT32_MIN

    @pytest.mark.parametrize("units", [INT32_MAX + 1, INT32_MIN - 1])
    def test_overflow_rejected(self, units):
        with pytest.raises(InvalidInputError):
            checked_balance(units)
