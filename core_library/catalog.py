"""
Catalog Module

Book intake, edits and lookups. ISBN is the unique key; re-adding a known
ISBN tops up its stock only when title and author agree.
"""

from typing import List, Optional

from .access import Permission, ensure_access, ensure_service
from .codec import AUTHOR_CAPACITY, ISBN_CAPACITY, TITLE_CAPACITY, fits
from .config import LibsysConfig
from .errors import ConflictError, InvalidInputError, NotFoundError
from .ledger import Ledger
from .logging_config import get_logger, log_action
from .records import BookRecord, Clock, Session, Timestamp


logger = get_logger("libsys.catalog")

# Stock is persisted as an unsigned 64-bit field
MAX_STOCK = 0xFFFFFFFFFFFFFFFF


def parse_count(value, what: str) -> int:
    """Integer from user input; InvalidInputError for anything else"""
    if isinstance(value, bool):
        raise InvalidInputError(f"{what} must be an integer")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise InvalidInputError(f"{what} must be an integer, got '{value}'") from None


class Catalog:
    """Book operations on top of the ledger"""

    def __init__(self, ledger: Ledger, config: LibsysConfig, clock: Optional[Clock] = None):
        self.ledger = ledger
        self.config = config
        self.clock = clock

    def _validate_text(self, isbn: str, title: str, author: str) -> None:
        encoding = self.config.text_encoding
        if not isbn:
            raise InvalidInputError("ISBN cannot be empty")
        for label, text, capacity in (("ISBN", isbn, ISBN_CAPACITY),
                                      ("Title", title, TITLE_CAPACITY),
                                      ("Author", author, AUTHOR_CAPACITY)):
            if "\x00" in text:
                raise InvalidInputError(f"{label} cannot contain NUL characters")
            if not fits(text, capacity, encoding):
                raise InvalidInputError(f"{label} exceeds {capacity - 1} bytes")

    def add_book(self, session: Session, isbn: str, title: str, author: str,
                 quantity) -> BookRecord:
        """
        Add copies of a book, creating its catalog entry if needed

        Raises:
            PermissionDeniedError: Caller lacks the library service or add-book access
            ConflictError: ISBN already catalogued with another title or author
            InvalidInputError: Bad text or a quantity below one
        """
        caller = self.ledger.resolve_session(session)
        ensure_service(caller.role, Permission.LIBRARY_SERVICE, "Library management", caller.id)
        ensure_access(caller.role, Permission.ADD_BOOK, "Adding books", caller.id)
        self._validate_text(isbn, title, author)

        book = self.ledger.find_book_by_isbn(isbn)
        if book is not None and (book.title != title or book.author != author):
            log_action(logger, "warning", "Book intake conflicts with catalog entry",
                       user_id=caller.id, action="add_book", resource=isbn)
            raise ConflictError(
                f"ISBN {isbn} is already catalogued as '{book.title}' by {book.author}")

        quantity = parse_count(quantity, "Quantity")
        if quantity <= 0:
            raise InvalidInputError("At least one copy must be added")
        current = book.stock if book is not None else 0
        if current + quantity > MAX_STOCK:
            raise InvalidInputError(f"Stock of {isbn} would exceed {MAX_STOCK}")

        if book is not None:
            book.stock += quantity
            log_action(logger, "info", "Book stock topped up",
                       user_id=caller.id, action="add_book", resource=isbn,
                       extra={"added": quantity, "stock": book.stock})
            return book

        handle = self.ledger.books.append(BookRecord(
            stock=quantity,
            isbn=isbn,
            author=author,
            title=title,
            introduced_at=Timestamp.now(self.clock),
        ))
        log_action(logger, "info", "Book added to catalog",
                   user_id=caller.id, action="add_book", resource=isbn,
                   extra={"stock": quantity})
        return self.ledger.books[handle]

    def modify_book(self, session: Session, isbn: str, title: Optional[str] = None,
                    author: Optional[str] = None, stock=None) -> BookRecord:
        """Edit a catalog entry in place; ISBN cannot change"""
        caller = self.ledger.resolve_session(session)
        ensure_service(caller.role, Permission.LIBRARY_SERVICE, "Library management", caller.id)
        ensure_access(caller.role, Permission.MODIFY_BOOK, "Editing books", caller.id)
        book = self.ledger.book_by_isbn(isbn)

        new_title = book.title if title is None else title
        new_author = book.author if author is None else author
        self._validate_text(isbn, new_title, new_author)
        new_stock = book.stock
        if stock is not None:
            new_stock = parse_count(stock, "Stock")
            if new_stock < 0:
                raise InvalidInputError("Stock cannot be negative")
            if new_stock > MAX_STOCK:
                raise InvalidInputError(f"Stock cannot exceed {MAX_STOCK}")

        book.title, book.author, book.stock = new_title, new_author, new_stock
        log_action(logger, "info", "Book modified",
                   user_id=caller.id, action="modify_book", resource=isbn)
        return book

    def find_book(self, session: Session, isbn: str) -> BookRecord:
        caller = self.ledger.resolve_session(session)
        ensure_access(caller.role, Permission.QUERY, "Book search", caller.id)
        book = self.ledger.find_book_by_isbn(isbn)
        if book is None:
            raise NotFoundError(f"Book {isbn} not found")
        return book

    def search_books(self, session: Session, title: Optional[str] = None,
                     author: Optional[str] = None) -> List[BookRecord]:
        """Books whose title and/or author contain the given fragments"""
        caller = self.ledger.resolve_session(session)
        ensure_access(caller.role, Permission.QUERY, "Book search", caller.id)
        if title is None and author is None:
            raise InvalidInputError("Search needs a title or an author fragment")
        handles = self.ledger.books.match_all(
            lambda record: (title is None or title in record.title)
            and (author is None or author in record.author))
        return [self.ledger.books[handle] for handle in handles]

    def list_books(self, session: Session) -> List[BookRecord]:
        caller = self.ledger.resolve_session(session)
        ensure_access(caller.role, Permission.QUERY, "Book listing", caller.id)
        return list(self.ledger.books)
