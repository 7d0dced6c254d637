"""
Test suite for record types, timestamps and the account-name key
"""

from datetime import datetime, timedelta

from core_library.circulation import elapsed_days, late_fee_units
from core_library.records import (
    UNRETURNED, AccountRecord, BorrowRecord, Timestamp, name_key,
)


class TestNameKey:
    """Test the 31-bit account name key"""

    def test_empty_name_is_seed(self):
        assert name_key("") == 5381

    def test_single_character(self):
        """Test one round of the times-33 hash"""
        assert name_key("a") == 5381 * 33 + ord("a")

    def test_key_fits_31_bits(self):
        key = name_key("a-rather-long-account-name")
        assert 0 <= key <= 0x7FFFFFFF

    def test_case_sensitive(self):
        assert name_key("alice") != name_key("Alice")

    def test_matches_name(self):
        """Test that both the key and the name must agree"""
        record = AccountRecord(name="alice", key=name_key("alice"))
        assert record.matches_name("alice", name_key("alice"))
        assert not record.matches_name("alice", name_key("alice") + 1)
        assert not record.matches_name("alicf", name_key("alice"))


class TestTimestamp:
    """Test broken-down timestamps"""

    def test_from_datetime(self):
        """Test field mapping; 2024-06-02 is a Sunday"""
        stamp = Timestamp.from_datetime(datetime(2024, 6, 2, 13, 45, 30))
        assert (stamp.year, stamp.month, stamp.day) == (2024, 6, 2)
        assert (stamp.hour, stamp.minute, stamp.second) == (13, 45, 30)
        assert stamp.weekday == 1

    def test_saturday_is_seven(self):
        stamp = Timestamp.from_datetime(datetime(2024, 6, 8))
        assert stamp.weekday == 7

    def test_now_uses_clock(self):
        moment = datetime(2024, 6, 3, 9, 0, 0)
        assert Timestamp.now(lambda: moment) == Timestamp.from_datetime(moment)

    def test_string_forms(self):
        stamp = Timestamp.from_datetime(datetime(2024, 6, 3, 9, 5, 7))
        assert stamp.date_string() == "2024-06-03"
        assert str(stamp) == "2024-06-03 09:05:07"

    def test_unreturned_sentinel(self):
        assert UNRETURNED.year == -1
        assert UNRETURNED.is_unreturned
        assert not Timestamp.from_datetime(datetime(2024, 6, 3)).is_unreturned


class TestBorrowRecord:
    """Test borrow record state"""

    def test_new_record_is_active(self):
        record = BorrowRecord(isbn="A1", loan_days=3, borrower_id=7)
        assert record.is_active
        assert not record.is_returned

    def test_stamped_record_is_returned(self):
        record = BorrowRecord(returned_at=Timestamp.from_datetime(datetime(2024, 6, 3)))
        assert record.is_returned


class TestDurations:
    """Test whole-day differencing and fee math"""

    start = datetime(2024, 6, 3, 10, 0, 0)

    def stamp(self, moment):
        return Timestamp.from_datetime(moment)

    def test_exact_days(self):
        assert elapsed_days(self.stamp(self.start),
                            self.stamp(self.start + timedelta(days=3))) == 3

    def test_partial_day_truncates(self):
        """Test that 3 days 23 hours counts as 3 days"""
        end = self.start + timedelta(days=3, hours=23, minutes=59)
        assert elapsed_days(self.stamp(self.start), self.stamp(end)) == 3

    def test_across_month_boundary(self):
        """Test that differencing is calendar aware"""
        start = datetime(2024, 6, 28, 12, 0, 0)
        end = datetime(2024, 7, 2, 12, 0, 0)
        assert elapsed_days(self.stamp(start), self.stamp(end)) == 4

    def test_negative_elapsed_truncates_toward_zero(self):
        end = self.start - timedelta(hours=20)
        assert elapsed_days(self.stamp(self.start), self.stamp(end)) == 0

    def test_late_fee_units(self):
        assert late_fee_units(3, 3, 30) == 0
        assert late_fee_units(4, 3, 30) == 30
        assert late_fee_units(10, 3, 30) == 210
        assert late_fee_units(1, 3, 30) == 0
