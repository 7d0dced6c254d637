"""
Record Types Module

The three record kinds kept in the ledger file, the broken-down local
timestamp they carry, and the account-name lookup key.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Callable, Optional


ADMIN_ACCOUNT_ID = 1
UNRETURNED_YEAR = -1

Clock = Callable[[], datetime]


class Role(IntEnum):
    """Account roles, stored as a 32-bit integer"""
    REGULAR = 0
    MANAGER = 1
    ADMIN = 2


def name_key(name: str, encoding: str = "utf-8") -> int:
    """31-bit lookup key for an account name (times-33 string hash)"""
    value = 5381
    for byte in name.encode(encoding):
        # signed char semantics, as the key has always been computed
        if byte > 127:
            byte -= 256
        value = (value + (value << 5) + byte) & 0xFFFFFFFF
    return value & 0x7FFFFFFF


@dataclass(frozen=True)
class Timestamp:
    """
    Broken-down local wall-clock time

    weekday runs 1 (Sunday) to 7 (Saturday). A year of -1 marks a borrow
    record that has not been returned yet.
    """
    year: int = 0
    month: int = 0
    day: int = 0
    weekday: int = 0
    hour: int = 0
    minute: int = 0
    second: int = 0

    @classmethod
    def from_datetime(cls, moment: datetime) -> 'Timestamp':
        """Stamp from a datetime (converted to local time if aware)"""
        if moment.tzinfo is not None:
            moment = moment.astimezone().replace(tzinfo=None)
        return cls(
            year=moment.year,
            month=moment.month,
            day=moment.day,
            weekday=moment.isoweekday() % 7 + 1,
            hour=moment.hour,
            minute=moment.minute,
            second=moment.second,
        )

    @classmethod
    def now(cls, clock: Optional[Clock] = None) -> 'Timestamp':
        """Stamp the current moment from clock (defaults to local now)"""
        return cls.from_datetime(clock() if clock else datetime.now())

    @property
    def is_unreturned(self) -> bool:
        return self.year == UNRETURNED_YEAR

    def to_epoch(self) -> float:
        """Seconds since the epoch, resolving DST the way mktime does"""
        return time.mktime((self.year, self.month, self.day,
                            self.hour, self.minute, self.second,
                            (self.weekday - 2) % 7, 0, -1))

    def to_datetime(self) -> datetime:
        return datetime(self.year, self.month, self.day, self.hour, self.minute, self.second)

    def date_string(self) -> str:
        return f"{self.year:4d}-{self.month:02d}-{self.day:02d}"

    def __str__(self) -> str:
        return f"{self.date_string()} {self.hour:02d}:{self.minute:02d}:{self.second:02d}"


UNRETURNED = Timestamp(year=UNRETURNED_YEAR)


@dataclass(frozen=True)
class Session:
    """Identity of the logged-in account and when the login happened"""
    account_id: int
    established_at: Timestamp


@dataclass
class AccountRecord:
    """Library account; balance is kept in minor currency units"""
    role: Role = Role.REGULAR
    name: str = ""
    password: str = ""
    key: int = 0
    id: int = 0
    balance: int = 0
    registered_at: Timestamp = field(default_factory=Timestamp)

    def matches_name(self, name: str, key: int) -> bool:
        return self.key == key and self.name == name


@dataclass
class BookRecord:
    """Catalog entry; ISBN is the unique key"""
    stock: int = 0
    isbn: str = ""
    author: str = ""
    title: str = ""
    introduced_at: Timestamp = field(default_factory=Timestamp)


@dataclass
class BorrowRecord:
    """
    One loan of one copy

    isbn and borrower_id are back-references resolved by lookup.
    """
    isbn: str = ""
    loan_days: int = 0
    borrower_id: int = 0
    borrowed_at: Timestamp = field(default_factory=Timestamp)
    returned_at: Timestamp = UNRETURNED

    @property
    def is_active(self) -> bool:
        return self.returned_at.is_unreturned

    @property
    def is_returned(self) -> bool:
        return not self.returned_at.is_unreturned
