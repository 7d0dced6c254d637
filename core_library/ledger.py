"""
Ledger Module

The in-memory aggregate of all accounts, books and borrow records, plus the
file lifecycle around it. All mutation happens in memory; save() rewrites
the whole file and is the only commit point.
"""

import os
import secrets
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .codec import LedgerHeader, decode_ledger, encode_ledger
from .config import LibsysConfig, get_config
from .errors import NotFoundError, PersistenceError
from .logging_config import get_logger, log_action
from .records import (
    ADMIN_ACCOUNT_ID, AccountRecord, BookRecord, BorrowRecord, Clock, Role,
    Session, Timestamp, name_key,
)
from .storage import Handle, RecordStore


logger = get_logger("libsys.ledger")

MAX_ACCOUNT_ID = 0xFFFFFFFF


class Ledger:
    """
    Three record stores sharing one file

    Lookups are typed closures per record kind and key, so callers never
    hand a loosely typed matcher to the stores.
    """

    def __init__(self, config: Optional[LibsysConfig] = None):
        self.config = config or get_config()
        self.accounts: RecordStore[AccountRecord] = RecordStore(AccountRecord)
        self.books: RecordStore[BookRecord] = RecordStore(BookRecord)
        self.borrows: RecordStore[BorrowRecord] = RecordStore(BorrowRecord)
        self.closed = False

    # Lifecycle

    @classmethod
    def create(cls, config: Optional[LibsysConfig] = None,
               clock: Optional[Clock] = None) -> 'Ledger':
        """Empty ledger holding only the seeded built-in administrator"""
        ledger = cls(config)
        admin_name = ledger.config.admin_account
        ledger.accounts.append(AccountRecord(
            role=Role.ADMIN,
            name=admin_name,
            password=ledger.config.admin_password,
            key=name_key(admin_name, ledger.config.text_encoding),
            id=ADMIN_ACCOUNT_ID,
            balance=0,
            registered_at=Timestamp.now(clock),
        ))
        return ledger

    @classmethod
    def open(cls, path: Union[str, Path], config: Optional[LibsysConfig] = None,
             clock: Optional[Clock] = None) -> 'Ledger':
        """
        Load the ledger at path, creating it on first use

        A missing file is created with the seeded administrator and written
        straight away, so the file on disk is always a complete image.

        Raises:
            PersistenceError: If the file cannot be created, read or decoded
        """
        path = Path(path)
        if not path.exists():
            ledger = cls.create(config, clock)
            ledger.save(path)
            log_action(logger, "info", "Created new ledger file",
                       user_id=ADMIN_ACCOUNT_ID, action="ledger_created", resource=str(path))
            return ledger

        try:
            data = path.read_bytes()
        except OSError as e:
            logger.error("Cannot read ledger file %s: %s", path, e)
            raise PersistenceError(f"Cannot read ledger file {path}: {e}") from e

        ledger = cls.from_bytes(data, config)
        logger.info("Loaded ledger %s (%d accounts, %d books, %d borrow records)",
                    path, len(ledger.accounts), len(ledger.books), len(ledger.borrows))
        return ledger

    @classmethod
    def from_bytes(cls, data: bytes, config: Optional[LibsysConfig] = None) -> 'Ledger':
        """Decode a full file image"""
        ledger = cls(config)
        _, accounts, books, borrows = decode_ledger(data, ledger.config.text_encoding)
        for record in accounts:
            ledger.accounts.append(record)
        for record in books:
            ledger.books.append(record)
        for record in borrows:
            ledger.borrows.append(record)

        admin = ledger.find_account_by_id(ADMIN_ACCOUNT_ID)
        if admin is None or admin.role != Role.ADMIN:
            raise PersistenceError("Ledger file lacks the built-in administrator account")
        return ledger

    def to_bytes(self) -> bytes:
        """Encode the full in-memory state"""
        self._ensure_open()
        return encode_ledger(list(self.accounts), list(self.books), list(self.borrows),
                             self.config.text_encoding)

    def save(self, path: Union[str, Path]) -> None:
        """
        Overwrite path with the full in-memory state

        The image is written to a sibling temporary file and moved into
        place, so a failed write leaves the previous file intact.
        """
        path = Path(path)
        data = self.to_bytes()
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            with open(tmp_path, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error("Cannot write ledger file %s: %s", path, e)
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.warning("Cannot remove %s: %s", tmp_path, cleanup_error)
            raise PersistenceError(f"Cannot write ledger file {path}: {e}") from e
        logger.info("Saved ledger %s (%d bytes)", path, len(data))

    def close(self) -> None:
        """Release the in-memory stores"""
        self.accounts.clear()
        self.books.clear()
        self.borrows.clear()
        self.closed = True

    def _ensure_open(self) -> None:
        if self.closed:
            raise PersistenceError("Ledger has been closed")

    @property
    def header(self) -> LedgerHeader:
        """Header as it would be written now"""
        return LedgerHeader(
            account_count=len(self.accounts),
            book_count=len(self.books),
            borrow_count=len(self.borrows),
        )

    # Account lookups

    def account_handle_by_name(self, name: str) -> Optional[Handle]:
        key = name_key(name, self.config.text_encoding)
        return self.accounts.match_first(lambda record: record.matches_name(name, key))

    def account_handle_by_id(self, account_id: int) -> Optional[Handle]:
        return self.accounts.match_first(lambda record: record.id == account_id)

    def find_account_by_name(self, name: str) -> Optional[AccountRecord]:
        handle = self.account_handle_by_name(name)
        return self.accounts[handle] if handle is not None else None

    def find_account_by_id(self, account_id: int) -> Optional[AccountRecord]:
        handle = self.account_handle_by_id(account_id)
        return self.accounts[handle] if handle is not None else None

    def account_by_id(self, account_id: int) -> AccountRecord:
        """Account with this identifier; NotFoundError otherwise"""
        account = self.find_account_by_id(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    def resolve_session(self, session: Session) -> AccountRecord:
        """Account behind a session; NotFoundError once it has been cancelled"""
        account = self.find_account_by_id(session.account_id)
        if account is None:
            raise NotFoundError(f"Session account {session.account_id} no longer exists")
        return account

    def allocate_account_id(self) -> int:
        """Random identifier not yet in use (1 is reserved)"""
        while True:
            candidate = secrets.randbelow(MAX_ACCOUNT_ID - 1) + 2
            if self.account_handle_by_id(candidate) is None:
                return candidate

    # Book lookups

    def book_handle_by_isbn(self, isbn: str) -> Optional[Handle]:
        return self.books.match_first(lambda record: record.isbn == isbn)

    def find_book_by_isbn(self, isbn: str) -> Optional[BookRecord]:
        handle = self.book_handle_by_isbn(isbn)
        return self.books[handle] if handle is not None else None

    def book_by_isbn(self, isbn: str) -> BookRecord:
        """Book with this ISBN; NotFoundError otherwise"""
        book = self.find_book_by_isbn(isbn)
        if book is None:
            raise NotFoundError(f"Book {isbn} not found")
        return book

    # Borrow record lookups

    def active_borrows(self, borrower_id: int) -> List[Tuple[Handle, BorrowRecord]]:
        """Unreturned records of one borrower, in borrow order"""
        handles = self.borrows.match_all(
            lambda record: record.borrower_id == borrower_id and record.is_active)
        return [(handle, self.borrows[handle]) for handle in handles]

    def count_active_borrows(self, borrower_id: int) -> int:
        return len(self.borrows.match_all(
            lambda record: record.borrower_id == borrower_id and record.is_active))

    def borrow_by_handle(self, handle: Handle) -> BorrowRecord:
        if handle not in self.borrows:
            raise NotFoundError(f"Borrow record #{handle} not found")
        return self.borrows[handle]
