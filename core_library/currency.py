"""
Currency Support Module

Balances and fees are persisted as signed integer minor units; this module
converts between those and Decimal amounts. NEVER uses float for money.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from dataclasses import dataclass
from enum import Enum
import re

from .errors import InvalidInputError


INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

CURRENCY_NOISE = re.compile(r"[\s\$¥€£]|CNY|USD|EUR|GBP|JPY", re.IGNORECASE)
AMOUNT_PATTERN = re.compile(r"^[+-]?[\d.,]+$")


class Currency(Enum):
    """Supported ISO 4217 codes and their minor-unit precision"""
    CNY = ("CNY", 2)
    USD = ("USD", 2)
    EUR = ("EUR", 2)
    GBP = ("GBP", 2)
    JPY = ("JPY", 0)

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def minor_per_major(self) -> int:
        return 10 ** self.precision

    @property
    def quantum(self) -> Decimal:
        """Smallest representable amount, e.g. Decimal('0.01')"""
        return Decimal(1).scaleb(-self.precision)


@dataclass(frozen=True)
class Money:
    """
    Decimal amount in one currency, rounded half-up to its precision
    """
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        amount = self.amount if isinstance(self.amount, Decimal) else Decimal(str(self.amount))
        object.__setattr__(self, 'amount',
                           amount.quantize(self.currency.quantum, rounding=ROUND_HALF_UP))

    @classmethod
    def from_minor_units(cls, units: int, currency: Currency) -> 'Money':
        """Money for a persisted balance or fee (fen, cents, ...)"""
        return cls(Decimal(units) / currency.minor_per_major, currency)

    def to_minor_units(self) -> int:
        return int(self.amount * self.currency.minor_per_major)

    def _check_currency(self, other: 'Money') -> None:
        if other.currency is not self.currency:
            raise ValueError(f"Currency mismatch: {self.currency.code} vs {other.currency.code}")

    def __add__(self, other: 'Money') -> 'Money':
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor) -> 'Money':
        return Money(self.amount * Decimal(str(factor)), self.currency)

    def __neg__(self) -> 'Money':
        return Money(-self.amount, self.currency)

    def is_zero(self) -> bool:
        return self.amount.is_zero()

    def is_positive(self) -> bool:
        return self.amount > 0

    def is_negative(self) -> bool:
        return self.amount < 0

    def to_string(self) -> str:
        """Display form, e.g. "CNY -0.30" """
        return f"{self.currency.code} {self.amount:,.{self.currency.precision}f}"


def currency_from_code(code: str) -> Currency:
    try:
        return Currency[code.upper()]
    except KeyError:
        raise InvalidInputError(f"Unsupported currency '{code}'") from None


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Args:
        value: String representation of number

    Returns:
        Decimal value

    Raises:
        InvalidInputError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise InvalidInputError("Amount must be a non-empty string")

    # Only currency symbols and whitespace may be dropped
    clean_value = CURRENCY_NOISE.sub("", value)
    if not AMOUNT_PATTERN.match(clean_value):
        raise InvalidInputError(f"Cannot convert '{value}' to an amount")

    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - assume comma is thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Likely decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Likely thousands separator
            clean_value = clean_value.replace(',', '')

    try:
        result = Decimal(clean_value)
    except InvalidOperation:
        raise InvalidInputError(f"Cannot convert '{value}' to an amount") from None
    if not result.is_finite():
        raise InvalidInputError(f"Cannot convert '{value}' to an amount")
    return result


def parse_positive_amount(value, currency: Currency) -> Money:
    """Parse user input into a strictly positive Money at currency precision"""
    if isinstance(value, Money):
        amount = value.amount
    elif isinstance(value, (Decimal, int)):
        amount = Decimal(value)
    else:
        amount = decimal_from_string(str(value))

    if amount != amount.quantize(currency.quantum):
        raise InvalidInputError(
            f"Amount {amount} has more than {currency.precision} decimal places")
    money = Money(amount, currency)
    if not money.is_positive():
        raise InvalidInputError("Amount must be positive")
    return money


def checked_balance(units: int) -> int:
    """Reject balances that no longer fit the persisted 32-bit field"""
    if units < INT32_MIN or units > INT32_MAX:
        raise InvalidInputError("Balance would exceed the storable range")
    return units
