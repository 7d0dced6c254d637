"""
Ledger File Codec Module

Fixed-width binary images for the ledger file:

    header | account images | book images | borrow images

Every field sits at a fixed offset; text fields are fixed-capacity,
NUL-padded buffers (capacity includes the terminator). The layout matches
the legacy little-endian file bit-for-bit.
"""

import struct
from dataclasses import dataclass
from typing import List, Tuple

from .errors import InvalidInputError, PersistenceError
from .logging_config import get_logger
from .records import AccountRecord, BookRecord, BorrowRecord, Role, Timestamp


logger = get_logger("libsys.codec")

HEADER_FORMAT = struct.Struct("<HHHHIIII")
TIMESTAMP_FORMAT = struct.Struct("<hbbbbbb")
ACCOUNT_FORMAT = struct.Struct("<i16s16sIIi")
BOOK_FORMAT = struct.Struct("<Q24s32s64s")
BORROW_FORMAT = struct.Struct("<24sII")

HEADER_SIZE = HEADER_FORMAT.size
ACCOUNT_SIZE = ACCOUNT_FORMAT.size + TIMESTAMP_FORMAT.size
BOOK_SIZE = BOOK_FORMAT.size + TIMESTAMP_FORMAT.size
BORROW_SIZE = BORROW_FORMAT.size + 2 * TIMESTAMP_FORMAT.size

# Text capacities in bytes, terminator included
ACCOUNT_NAME_CAPACITY = 16
PASSWORD_CAPACITY = 16
ISBN_CAPACITY = 24
AUTHOR_CAPACITY = 32
TITLE_CAPACITY = 64


@dataclass
class LedgerHeader:
    """Per-kind record sizes and counts, written first in the file"""
    account_size: int = ACCOUNT_SIZE
    book_size: int = BOOK_SIZE
    borrow_size: int = BORROW_SIZE
    account_count: int = 0
    book_count: int = 0
    borrow_count: int = 0

    def restamp(self) -> None:
        """Reset the sizes to the current record layout"""
        self.account_size = ACCOUNT_SIZE
        self.book_size = BOOK_SIZE
        self.borrow_size = BORROW_SIZE

    @property
    def body_size(self) -> int:
        return (self.account_size * self.account_count
                + self.book_size * self.book_count
                + self.borrow_size * self.borrow_count)


def fits(text: str, capacity: int, encoding: str = "utf-8") -> bool:
    """Whether text fits a fixed buffer of capacity bytes with its terminator"""
    return len(text.encode(encoding)) < capacity


def encode_text(text: str, capacity: int, encoding: str = "utf-8") -> bytes:
    raw = text.encode(encoding)
    if b"\x00" in raw:
        raise InvalidInputError("Text fields cannot contain NUL characters")
    if len(raw) >= capacity:
        raise InvalidInputError(f"'{text}' exceeds {capacity - 1} bytes")
    return raw.ljust(capacity, b"\x00")


def decode_text(raw: bytes, encoding: str = "utf-8") -> str:
    return raw.split(b"\x00", 1)[0].decode(encoding, errors="replace")


def encode_header(header: LedgerHeader) -> bytes:
    return HEADER_FORMAT.pack(
        header.account_size, header.book_size, header.borrow_size, 0,
        header.account_count, header.book_count, header.borrow_count, 0,
    )


def decode_header(data: bytes) -> LedgerHeader:
    if len(data) < HEADER_SIZE:
        raise PersistenceError(
            f"Ledger file is truncated: {len(data)} bytes, header needs {HEADER_SIZE}")
    (account_size, book_size, borrow_size, _,
     account_count, book_count, borrow_count, _) = HEADER_FORMAT.unpack_from(data)
    return LedgerHeader(account_size, book_size, borrow_size,
                        account_count, book_count, borrow_count)


def encode_timestamp(stamp: Timestamp) -> bytes:
    try:
        return TIMESTAMP_FORMAT.pack(stamp.year, stamp.month, stamp.day, stamp.weekday,
                                     stamp.hour, stamp.minute, stamp.second)
    except struct.error as e:
        raise InvalidInputError(f"Timestamp {stamp!r} out of range: {e}") from None


def decode_timestamp(data: bytes, offset: int = 0) -> Timestamp:
    return Timestamp(*TIMESTAMP_FORMAT.unpack_from(data, offset))


def encode_account(record: AccountRecord, encoding: str = "utf-8") -> bytes:
    try:
        fixed = ACCOUNT_FORMAT.pack(
            int(record.role),
            encode_text(record.name, ACCOUNT_NAME_CAPACITY, encoding),
            encode_text(record.password, PASSWORD_CAPACITY, encoding),
            record.key, record.id, record.balance,
        )
    except struct.error as e:
        raise InvalidInputError(f"Account {record.id} does not fit its image: {e}") from None
    return fixed + encode_timestamp(record.registered_at)


def decode_account(image: bytes, encoding: str = "utf-8") -> AccountRecord:
    role, name, password, key, account_id, balance = ACCOUNT_FORMAT.unpack_from(image)
    try:
        role = Role(role)
    except ValueError:
        raise PersistenceError(f"Account {account_id} has unknown role {role}") from None
    return AccountRecord(
        role=role,
        name=decode_text(name, encoding),
        password=decode_text(password, encoding),
        key=key,
        id=account_id,
        balance=balance,
        registered_at=decode_timestamp(image, ACCOUNT_FORMAT.size),
    )


def encode_book(record: BookRecord, encoding: str = "utf-8") -> bytes:
    try:
        fixed = BOOK_FORMAT.pack(
            record.stock,
            encode_text(record.isbn, ISBN_CAPACITY, encoding),
            encode_text(record.author, AUTHOR_CAPACITY, encoding),
            encode_text(record.title, TITLE_CAPACITY, encoding),
        )
    except struct.error as e:
        raise InvalidInputError(f"Book {record.isbn} does not fit its image: {e}") from None
    return fixed + encode_timestamp(record.introduced_at)


def decode_book(image: bytes, encoding: str = "utf-8") -> BookRecord:
    stock, isbn, author, title = BOOK_FORMAT.unpack_from(image)
    return BookRecord(
        stock=stock,
        isbn=decode_text(isbn, encoding),
        author=decode_text(author, encoding),
        title=decode_text(title, encoding),
        introduced_at=decode_timestamp(image, BOOK_FORMAT.size),
    )


def encode_borrow(record: BorrowRecord, encoding: str = "utf-8") -> bytes:
    try:
        fixed = BORROW_FORMAT.pack(
            encode_text(record.isbn, ISBN_CAPACITY, encoding),
            record.loan_days, record.borrower_id,
        )
    except struct.error as e:
        raise InvalidInputError(f"Borrow record for {record.isbn} does not fit its image: {e}") from None
    return fixed + encode_timestamp(record.borrowed_at) + encode_timestamp(record.returned_at)


def decode_borrow(image: bytes, encoding: str = "utf-8") -> BorrowRecord:
    isbn, loan_days, borrower_id = BORROW_FORMAT.unpack_from(image)
    return BorrowRecord(
        isbn=decode_text(isbn, encoding),
        loan_days=loan_days,
        borrower_id=borrower_id,
        borrowed_at=decode_timestamp(image, BORROW_FORMAT.size),
        returned_at=decode_timestamp(image, BORROW_FORMAT.size + TIMESTAMP_FORMAT.size),
    )


def encode_ledger(accounts: List[AccountRecord], books: List[BookRecord],
                  borrows: List[BorrowRecord], encoding: str = "utf-8") -> bytes:
    """Serialize the three record lists behind a freshly stamped header"""
    header = LedgerHeader(
        account_count=len(accounts),
        book_count=len(books),
        borrow_count=len(borrows),
    )
    parts = [encode_header(header)]
    parts.extend(encode_account(record, encoding) for record in accounts)
    parts.extend(encode_book(record, encoding) for record in books)
    parts.extend(encode_borrow(record, encoding) for record in borrows)
    return b"".join(parts)


def _images(data: bytes, offset: int, stride: int, count: int, size: int) -> List[bytes]:
    """Slice count images of stride bytes, fitted to the current size"""
    images = []
    for n in range(count):
        start = offset + n * stride
        image = data[start:start + min(stride, size)]
        images.append(image.ljust(size, b"\x00"))
    return images


def decode_ledger(data: bytes, encoding: str = "utf-8") -> Tuple[
        LedgerHeader, List[AccountRecord], List[BookRecord], List[BorrowRecord]]:
    """
    Parse a ledger file image

    Counts are validated against the byte length before any record is read;
    a truncated file raises PersistenceError. The returned header has its
    sizes re-stamped to the current layout.
    """
    header = decode_header(data)

    for kind, stride, current in (("account", header.account_size, ACCOUNT_SIZE),
                                  ("book", header.book_size, BOOK_SIZE),
                                  ("borrow", header.borrow_size, BORROW_SIZE)):
        if stride == 0:
            raise PersistenceError(f"Ledger header declares a zero {kind} record size")
        if stride != current:
            logger.warning("Ledger %s records are %d bytes, current layout is %d",
                           kind, stride, current)

    expected = HEADER_SIZE + header.body_size
    if len(data) < expected:
        raise PersistenceError(
            f"Ledger file is truncated: header declares {expected} bytes, found {len(data)}")
    if len(data) > expected:
        logger.warning("Ignoring %d trailing bytes in ledger file", len(data) - expected)

    offset = HEADER_SIZE
    accounts = [decode_account(image, encoding) for image in
                _images(data, offset, header.account_size, header.account_count, ACCOUNT_SIZE)]
    offset += header.account_size * header.account_count
    books = [decode_book(image, encoding) for image in
             _images(data, offset, header.book_size, header.book_count, BOOK_SIZE)]
    offset += header.book_size * header.book_count
    borrows = [decode_borrow(image, encoding) for image in
               _images(data, offset, header.borrow_size, header.borrow_count, BORROW_SIZE)]

    header.restamp()
    return header, accounts, books, borrows
