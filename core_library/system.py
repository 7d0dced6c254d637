"""
Library System Module

Facade the command-line front end talks to. Owns the ledger and its file
path; sessions are plain values handed back by login() and passed into
every call, so nothing here depends on console state.
"""

from pathlib import Path
from typing import List, Optional, Union

from .accounts import AccountManager, AccountProfile, AccountSummary
from .catalog import Catalog, parse_count
from .circulation import BorrowEntry, CirculationEngine, ReturnReceipt
from .config import LibsysConfig, get_config
from .currency import Money
from .errors import BootError, NotFoundError, PersistenceError
from .ledger import Ledger
from .logging_config import get_logger
from .records import AccountRecord, BookRecord, Clock, Session


logger = get_logger("libsys.system")


class LibrarySystem:
    """
    Running library: one ledger, one file, explicit sessions
    """

    def __init__(self, ledger: Ledger, path: Union[str, Path],
                 config: Optional[LibsysConfig] = None, clock: Optional[Clock] = None):
        self.ledger = ledger
        self.path = Path(path)
        self.config = config or ledger.config
        self.accounts = AccountManager(ledger, self.config, clock)
        self.catalog = Catalog(ledger, self.config, clock)
        self.circulation = CirculationEngine(ledger, self.config, clock)
        self.running = True

    @classmethod
    def open_or_create(cls, root: Union[str, Path], config: Optional[LibsysConfig] = None,
                       clock: Optional[Clock] = None) -> 'LibrarySystem':
        """
        Boot from the ledger file under root, creating it on first run

        Raises:
            BootError: The ledger file cannot be created, opened or decoded
        """
        config = config or get_config()
        root = Path(root)
        if not root.is_dir():
            raise BootError(f"Root directory {root} does not exist")

        path = root / config.database_filename
        try:
            ledger = Ledger.open(path, config, clock)
        except PersistenceError as e:
            logger.error("Boot failed for %s: %s", path, e)
            raise BootError(f"Cannot open library file {path}: {e.message}") from e
        return cls(ledger, path, config, clock)

    # Persistence

    def save(self) -> None:
        if not self.running:
            raise PersistenceError("Library system has been shut down")
        self.ledger.save(self.path)

    def shutdown(self) -> None:
        """
        Flush the ledger to disk and release it; safe to call twice

        If the flush fails the ledger stays open so the caller can retry.
        """
        if not self.running:
            return
        self.ledger.save(self.path)
        self.ledger.close()
        self.running = False
        logger.info("Library system shut down")

    def __enter__(self) -> 'LibrarySystem':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # Accounts

    def login(self, name: str, password: str) -> Session:
        return self.accounts.login(name, password)

    def register(self, name: str, password: str, confirm: Optional[str] = None) -> AccountRecord:
        return self.accounts.register(name, password, confirm)

    def profile(self, session: Session) -> AccountProfile:
        return self.accounts.profile(session)

    def recharge(self, session: Session, amount) -> Money:
        return self.accounts.recharge(session, amount)

    def deduct(self, session: Session, account_id, amount) -> Money:
        return self.accounts.deduct(session, parse_count(account_id, "Account ID"), amount)

    def cancel_account(self, session: Session) -> None:
        self.accounts.cancel_account(session)

    def list_accounts(self, session: Session) -> List[AccountSummary]:
        return self.accounts.list_accounts(session)

    def search_account(self, session: Session, name: str) -> AccountRecord:
        return self.accounts.search_account(session, name)

    def reset_password(self, session: Session, account_id) -> str:
        return self.accounts.reset_password(session, parse_count(account_id, "Account ID"))

    def assign_role(self, session: Session, account_id, role) -> AccountRecord:
        return self.accounts.assign_role(session, parse_count(account_id, "Account ID"), role)

    def remove_account(self, session: Session, account_id) -> None:
        self.accounts.remove_account(session, parse_count(account_id, "Account ID"))

    # Catalog

    def add_book(self, session: Session, isbn: str, title: str, author: str, quantity) -> BookRecord:
        return self.catalog.add_book(session, isbn, title, author, quantity)

    def modify_book(self, session: Session, isbn: str, title: Optional[str] = None,
                    author: Optional[str] = None, stock=None) -> BookRecord:
        return self.catalog.modify_book(session, isbn, title, author, stock)

    def search_book(self, session: Session, isbn: Optional[str] = None,
                    title: Optional[str] = None, author: Optional[str] = None) -> List[BookRecord]:
        """Exact ISBN lookup, or substring search on title/author"""
        if isbn is not None:
            return [self.catalog.find_book(session, isbn)]
        return self.catalog.search_books(session, title=title, author=author)

    def list_books(self, session: Session) -> List[BookRecord]:
        return self.catalog.list_books(session)

    # Circulation

    def borrow(self, session: Session, isbn: str, days) -> BorrowEntry:
        return self.circulation.borrow(session, isbn, days)

    def active_loans(self, session: Session) -> List[BorrowEntry]:
        return self.circulation.active_loans(session)

    def return_book(self, session: Session, index) -> ReturnReceipt:
        """Return the caller's loan at a 1-based position in active_loans()"""
        position = parse_count(index, "Loan index")
        loans = self.circulation.active_loans(session)
        if position < 1 or position > len(loans):
            raise NotFoundError(f"No loan at index {position}")
        return self.circulation.return_book(session, loans[position - 1].ref)

    def withdraw_record(self, session: Session, ref) -> ReturnReceipt:
        """Close any borrow record by its handle (record service)"""
        return self.circulation.return_book(session, parse_count(ref, "Record number"))

    def borrow_records(self, session: Session) -> List[BorrowEntry]:
        return self.circulation.borrow_records(session)
