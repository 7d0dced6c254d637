"""
Test suite for the ledger file codec

Offsets below are those of the legacy file; changing them breaks every
existing library file.
"""

import struct

import pytest

from core_library.codec import (
    ACCOUNT_SIZE, BOOK_SIZE, BORROW_SIZE, HEADER_SIZE, LedgerHeader,
    decode_account, decode_book, decode_borrow, decode_header, decode_ledger,
    decode_text, encode_account, encode_book, encode_borrow, encode_header,
    encode_ledger, encode_text, fits,
)
from core_library.errors import InvalidInputError, PersistenceError
from core_library.records import (
    UNRETURNED, AccountRecord, BookRecord, BorrowRecord, Role, Timestamp, name_key,
)


STAMP = Timestamp(2024, 6, 3, 2, 10, 30, 15)


@pytest.fixture
def account():
    return AccountRecord(role=Role.MANAGER, name="alice", password="secret",
                         key=name_key("alice"), id=4242, balance=-30, registered_at=STAMP)


@pytest.fixture
def book():
    return BookRecord(stock=3, isbn="978-0441013593", author="Frank Herbert",
                      title="Dune", introduced_at=STAMP)


@pytest.fixture
def borrow():
    return BorrowRecord(isbn="978-0441013593", loan_days=14, borrower_id=4242,
                        borrowed_at=STAMP, returned_at=UNRETURNED)


class TestLayout:
    """Test record sizes and field offsets"""

    def test_sizes(self):
        assert HEADER_SIZE == 24
        assert ACCOUNT_SIZE == 56
        assert BOOK_SIZE == 136
        assert BORROW_SIZE == 48

    def test_header_offsets(self):
        header = LedgerHeader(account_count=2, book_count=3, borrow_count=4)
        image = encode_header(header)
        assert struct.unpack_from("<HHH", image, 0) == (56, 136, 48)
        assert struct.unpack_from("<III", image, 8) == (2, 3, 4)

    def test_account_offsets(self, account):
        image = encode_account(account)
        assert len(image) == ACCOUNT_SIZE
        assert struct.unpack_from("<i", image, 0)[0] == 1
        assert image[4:20] == b"alice".ljust(16, b"\x00")
        assert image[20:36] == b"secret".ljust(16, b"\x00")
        assert struct.unpack_from("<IIi", image, 36) == (name_key("alice"), 4242, -30)
        assert struct.unpack_from("<hbbbbbb", image, 48) == (2024, 6, 3, 2, 10, 30, 15)

    def test_book_offsets(self, book):
        image = encode_book(book)
        assert len(image) == BOOK_SIZE
        assert struct.unpack_from("<Q", image, 0)[0] == 3
        assert image[8:32].rstrip(b"\x00") == b"978-0441013593"
        assert image[32:64].rstrip(b"\x00") == b"Frank Herbert"
        assert image[64:128].rstrip(b"\x00") == b"Dune"
        assert struct.unpack_from("<h", image, 128)[0] == 2024

    def test_borrow_offsets(self, borrow):
        image = encode_borrow(borrow)
        assert len(image) == BORROW_SIZE
        assert struct.unpack_from("<II", image, 24) == (14, 4242)
        assert struct.unpack_from("<h", image, 32)[0] == 2024
        assert struct.unpack_from("<h", image, 40)[0] == -1


class TestText:
    """Test fixed-capacity text fields"""

    def test_capacity_includes_terminator(self):
        assert fits("x" * 15, 16)
        assert not fits("x" * 16, 16)

    def test_capacity_counts_encoded_bytes(self):
        assert not fits("é" * 8, 16)
        assert fits("é" * 7, 16)

    def test_oversized_text_rejected(self):
        with pytest.raises(InvalidInputError):
            encode_text("x" * 16, 16)

    def test_nul_rejected(self):
        with pytest.raises(InvalidInputError):
            encode_text("a\x00b", 16)

    def test_decode_stops_at_first_nul(self):
        assert decode_text(b"abc\x00junk\x00") == "abc"

    def test_decode_unterminated_buffer(self):
        assert decode_text(b"abcd") == "abcd"


class TestRecords:
    """Test single record images"""

    def test_account_round_trip(self, account):
        assert decode_account(encode_account(account)) == account

    def test_book_round_trip(self, book):
        assert decode_book(encode_book(book)) == book

    def test_borrow_keeps_unreturned_sentinel(self, borrow):
        decoded = decode_borrow(encode_borrow(borrow))
        assert decoded == borrow
        assert decoded.is_active

    def test_unknown_role_rejected(self, account):
        image = bytearray(encode_account(account))
        struct.pack_into("<i", image, 0, 7)
        with pytest.raises(PersistenceError):
            decode_account(bytes(image))

    def test_balance_out_of_range(self, account):
        account.balance = 2 ** 31
        with pytest.raises(InvalidInputError):
            encode_account(account)


class TestLedgerImage:
    """Test whole-file encode and decode"""

    def test_empty_lists(self):
        data = encode_ledger([], [], [])
        header, accounts, books, borrows = decode_ledger(data)
        assert len(data) == HEADER_SIZE
        assert (accounts, books, borrows) == ([], [], [])
        assert header.account_count == 0

    def test_full_image(self, account, book, borrow):
        data = encode_ledger([account], [book, book], [borrow])
        assert len(data) == HEADER_SIZE + ACCOUNT_SIZE + 2 * BOOK_SIZE + BORROW_SIZE

        header, accounts, books, borrows = decode_ledger(data)
        assert (header.account_count, header.book_count, header.borrow_count) == (1, 2, 1)
        assert accounts == [account]
        assert books == [book, book]
        assert borrows == [borrow]

    def test_short_header(self):
        with pytest.raises(PersistenceError):
            decode_header(b"\x00" * 10)

    def test_truncated_body(self, account, book):
        data = encode_ledger([account], [book], [])
        with pytest.raises(PersistenceError):
            decode_ledger(data[:-1])

    def test_counts_beyond_file(self):
        """Test that huge counts fail before any record is read"""
        data = encode_header(LedgerHeader(account_count=1_000_000))
        with pytest.raises(PersistenceError):
            decode_ledger(data)

    def test_zero_record_size(self):
        data = encode_header(LedgerHeader(book_size=0))
        with pytest.raises(PersistenceError):
            decode_ledger(data)

    def test_trailing_bytes_ignored(self, account):
        data = encode_ledger([account], [], []) + b"\xff" * 5
        _, accounts, _, _ = decode_ledger(data)
        assert accounts == [account]

    def test_shorter_stride_zero_fills(self, account):
        """Test that a record written with an older, shorter layout still loads"""
        stride = ACCOUNT_SIZE - 8
        image = encode_account(account)[:stride]
        header = LedgerHeader(account_size=stride, account_count=1)

        restamped, accounts, _, _ = decode_ledger(encode_header(header) + image)
        assert accounts[0].name == "alice"
        assert accounts[0].registered_at == Timestamp()
        assert restamped.account_size == ACCOUNT_SIZE
