"""
Circulation Module

Borrow/return workflow. A borrow record starts ACTIVE (its return
timestamp holds the unreturned sentinel) and becomes RETURNED exactly
once. Borrowing takes one copy out of stock; returning puts it back and
charges a late fee for every whole day past the loan period.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .access import Permission, check_access, ensure_access, ensure_service
from .catalog import parse_count
from .config import LibsysConfig
from .currency import Money, checked_balance, currency_from_code, decimal_from_string
from .errors import (
    AlreadyReturnedError, BalanceViolationError, InvalidInputError, OutOfStockError,
    PermissionDeniedError,
)
from .ledger import Ledger
from .logging_config import get_logger, log_action
from .records import BookRecord, BorrowRecord, Clock, Session, Timestamp
from .storage import Handle


logger = get_logger("libsys.circulation")

SECONDS_PER_DAY = 86400
MAX_LOAN_DAYS = 0xFFFFFFFF


class LoanState(Enum):
    """Borrow record lifecycle"""
    ACTIVE = "active"
    RETURNED = "returned"


def loan_state(record: BorrowRecord) -> LoanState:
    return LoanState.ACTIVE if record.is_active else LoanState.RETURNED


def elapsed_days(start: Timestamp, end: Timestamp) -> int:
    """Whole days between two local timestamps, truncated toward zero"""
    return int((end.to_epoch() - start.to_epoch()) / SECONDS_PER_DAY)


def late_fee_units(days: int, loan_days: int, fee_per_day_units: int) -> int:
    """Fee in minor units for days elapsed against the loan period"""
    overdue = days - loan_days
    return overdue * fee_per_day_units if overdue > 0 else 0


@dataclass
class BorrowEntry:
    """A borrow record with its handle and resolved references"""
    ref: Handle
    record: BorrowRecord
    book: Optional[BookRecord] = None
    borrower_name: Optional[str] = None

    @property
    def state(self) -> LoanState:
        return loan_state(self.record)


@dataclass
class ReturnReceipt:
    """Outcome of a return"""
    ref: Handle
    record: BorrowRecord
    elapsed_days: int
    overdue_days: int
    fee: Money
    balance: Money


class CirculationEngine:
    """
    Borrow and return on top of the ledger
    """

    def __init__(self, ledger: Ledger, config: LibsysConfig, clock: Optional[Clock] = None):
        self.ledger = ledger
        self.config = config
        self.clock = clock
        self.currency = currency_from_code(config.currency)
        fee = Money(decimal_from_string(config.late_fee_per_day), self.currency)
        if fee.is_negative():
            raise InvalidInputError("Late fee per day cannot be negative")
        self.fee_per_day = fee

    def borrow(self, session: Session, isbn: str, days) -> BorrowEntry:
        """
        Lend one copy of a book

        Raises:
            PermissionDeniedError: Caller's role cannot borrow
            BalanceViolationError: Caller owes late fees
            NotFoundError: No such book
            OutOfStockError: No copies left
            InvalidInputError: Loan days not a positive integer
        """
        borrower = self.ledger.resolve_session(session)
        ensure_access(borrower.role, Permission.BORROW, "Borrowing", borrower.id)
        if borrower.balance < 0:
            log_action(logger, "warning", "Borrow refused: negative balance",
                       user_id=borrower.id, action="borrow", resource=isbn,
                       extra={"balance": borrower.balance})
            raise BalanceViolationError("Borrowing is closed until outstanding late fees are paid")

        book = self.ledger.book_by_isbn(isbn)
        if book.stock == 0:
            raise OutOfStockError(f"Book {isbn} has no copies available")

        loan_days = parse_count(days, "Loan days")
        if loan_days <= 0:
            raise InvalidInputError("Loan days must be a positive integer")
        if loan_days > MAX_LOAN_DAYS:
            raise InvalidInputError("Loan days out of range")

        ref = self.ledger.borrows.append(BorrowRecord(
            isbn=book.isbn,
            loan_days=loan_days,
            borrower_id=borrower.id,
            borrowed_at=Timestamp.now(self.clock),
        ))
        book.stock -= 1
        log_action(logger, "info", "Book borrowed",
                   user_id=borrower.id, action="borrow", resource=isbn,
                   extra={"loan_days": loan_days, "stock": book.stock})
        return BorrowEntry(ref, self.ledger.borrows[ref], book, borrower.name)

    def return_book(self, session: Session, ref: Handle) -> ReturnReceipt:
        """
        Close an active borrow record

        Callers return their own records with the RETURN permission; any
        record can be withdrawn with WITHDRAW_RECORD.

        Raises:
            NotFoundError: No such record (or its book/borrower is gone)
            PermissionDeniedError: Record belongs to someone else
            AlreadyReturnedError: Record was already returned
        """
        caller = self.ledger.resolve_session(session)
        record = self.ledger.borrow_by_handle(ref)

        privileged = check_access(caller.role, Permission.WITHDRAW_RECORD)
        if record.borrower_id == caller.id:
            if not privileged:
                ensure_access(caller.role, Permission.RETURN, "Returning books", caller.id)
        elif not privileged:
            log_action(logger, "warning", "Return refused: record belongs to another account",
                       user_id=caller.id, action="return", resource=record.isbn)
            raise PermissionDeniedError("Only the borrower can return this book")

        if record.is_returned:
            raise AlreadyReturnedError(f"Borrow record #{ref} was already returned on {record.returned_at}")

        borrower = self.ledger.account_by_id(record.borrower_id)
        book = self.ledger.book_by_isbn(record.isbn)

        returned_at = Timestamp.now(self.clock)
        days = elapsed_days(record.borrowed_at, returned_at)
        fee_units = late_fee_units(days, record.loan_days, self.fee_per_day.to_minor_units())
        new_balance = checked_balance(borrower.balance - fee_units)

        record.returned_at = returned_at
        borrower.balance = new_balance
        book.stock += 1

        overdue = max(days - record.loan_days, 0)
        fee = Money.from_minor_units(fee_units, self.currency)
        log_action(logger, "info", "Book returned",
                   user_id=caller.id, action="return", resource=record.isbn,
                   extra={"borrower_id": borrower.id, "elapsed_days": days,
                          "overdue_days": overdue, "fee": str(fee.amount)})
        if new_balance < 0:
            log_action(logger, "warning", "Late fee left the borrower in debt",
                       user_id=borrower.id, action="late_fee",
                       extra={"balance": new_balance})

        return ReturnReceipt(
            ref=ref,
            record=record,
            elapsed_days=days,
            overdue_days=overdue,
            fee=fee,
            balance=Money.from_minor_units(new_balance, self.currency),
        )

    def active_loans(self, session: Session) -> List[BorrowEntry]:
        """Caller's unreturned records, oldest first"""
        caller = self.ledger.resolve_session(session)
        ensure_service(caller.role, Permission.BOOK_SERVICE | Permission.RECORD_SERVICE,
                       "Loan listing", caller.id)
        return [
            BorrowEntry(ref, record, self.ledger.find_book_by_isbn(record.isbn), caller.name)
            for ref, record in self.ledger.active_borrows(caller.id)
        ]

    def borrow_records(self, session: Session) -> List[BorrowEntry]:
        """Every borrow record, returned ones included"""
        caller = self.ledger.resolve_session(session)
        ensure_service(caller.role, Permission.RECORD_SERVICE, "Borrow record listing", caller.id)
        entries = []
        for ref, record in self.ledger.borrows.items():
            borrower = self.ledger.find_account_by_id(record.borrower_id)
            entries.append(BorrowEntry(
                ref, record,
                self.ledger.find_book_by_isbn(record.isbn),
                borrower.name if borrower else None,
            ))
        return entries

    def fee_for(self, days: int, loan_days: int) -> Money:
        """Late fee for a loan of loan_days returned after days"""
        return Money.from_minor_units(
            late_fee_units(days, loan_days, self.fee_per_day.to_minor_units()), self.currency)
