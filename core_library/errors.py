"""
Error Taxonomy Module

Every refusal the core can report. All of them are recoverable at the
operation boundary; only BootError is allowed to abort startup.
"""


class LibraryError(Exception):
    """Base class for all library refusals"""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LibraryError):
    """Account, book or borrow record lookup miss"""

    kind = "not_found"


class ConflictError(LibraryError):
    """Duplicate account name, or ISBN reused with different title/author"""

    kind = "conflict"


class PermissionDeniedError(LibraryError):
    """Access policy refusal"""

    kind = "permission_denied"


class AuthenticationError(PermissionDeniedError):
    """Wrong password for an existing account"""

    kind = "authentication_failed"


class InvalidInputError(LibraryError, ValueError):
    """Non-positive days or quantities, malformed numbers, oversized text"""

    kind = "invalid_input"


class OutOfStockError(InvalidInputError):
    """Requested book has no copies left"""

    kind = "out_of_stock"


class StateViolationError(LibraryError):
    """Transition not allowed from the current state"""

    kind = "state_violation"


class AlreadyReturnedError(StateViolationError):
    """Borrow record has already been returned"""

    kind = "already_returned"


class BalanceViolationError(LibraryError):
    """Negative balance blocks the operation"""

    kind = "balance_violation"


class PersistenceError(LibraryError):
    """Ledger file could not be created, read, decoded or written"""

    kind = "persistence_failure"


class BootError(PersistenceError):
    """Ledger could not be opened or created at startup"""

    kind = "boot_failure"
