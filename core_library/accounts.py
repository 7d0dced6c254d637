"""
Account Management Module

Registration, authentication, balances and account cancellation.

Passwords are stored and compared in clear text and admin resets set a
well-known default. Both are kept for compatibility with existing ledger
files and are NOT secure.
"""

from dataclasses import dataclass
from typing import List, Optional

from .access import Permission, ensure_access
from .codec import ACCOUNT_NAME_CAPACITY, PASSWORD_CAPACITY, fits
from .config import LibsysConfig
from .currency import Money, checked_balance, currency_from_code, parse_positive_amount
from .errors import (
    AuthenticationError, ConflictError, InvalidInputError, NotFoundError,
    StateViolationError,
)
from .ledger import Ledger
from .logging_config import get_logger, log_action
from .records import ADMIN_ACCOUNT_ID, AccountRecord, Clock, Role, Session, Timestamp, name_key


logger = get_logger("libsys.accounts")


@dataclass
class AccountProfile:
    """Personal data card (the password is deliberately left out)"""
    id: int
    name: str
    role: Role
    balance: Money
    active_loans: int
    registered_at: Timestamp
    session_established_at: Timestamp


@dataclass
class AccountSummary:
    """One row of the administrator's account listing"""
    id: int
    name: str
    role: Role
    balance: Money
    active_loans: int


class AccountManager:
    """
    Account lifecycle on top of the ledger
    """

    def __init__(self, ledger: Ledger, config: LibsysConfig, clock: Optional[Clock] = None):
        self.ledger = ledger
        self.config = config
        self.clock = clock
        self.currency = currency_from_code(config.currency)

    def resolve(self, session: Session) -> AccountRecord:
        return self.ledger.resolve_session(session)

    def balance_of(self, account: AccountRecord) -> Money:
        return Money.from_minor_units(account.balance, self.currency)

    # Self-service

    def register(self, name: str, password: str, confirm: Optional[str] = None) -> AccountRecord:
        """
        Register a new regular account

        Raises:
            InvalidInputError: Empty or oversized name/password, or confirmation mismatch
            ConflictError: Name already taken
        """
        encoding = self.config.text_encoding
        if not name:
            raise InvalidInputError("Account name cannot be empty")
        if not password:
            raise InvalidInputError("Password cannot be empty")
        if not fits(name, ACCOUNT_NAME_CAPACITY, encoding):
            raise InvalidInputError(f"Account name exceeds {ACCOUNT_NAME_CAPACITY - 1} bytes")
        if not fits(password, PASSWORD_CAPACITY, encoding):
            raise InvalidInputError(f"Password exceeds {PASSWORD_CAPACITY - 1} bytes")
        if "\x00" in name or "\x00" in password:
            raise InvalidInputError("Account name and password cannot contain NUL characters")
        if confirm is not None and confirm != password:
            raise InvalidInputError("Passwords do not match")
        if self.ledger.find_account_by_name(name) is not None:
            log_action(logger, "warning", "Registration refused: name taken",
                       action="register", resource=name)
            raise ConflictError(f"Account '{name}' already exists")

        handle = self.ledger.accounts.append(AccountRecord(
            role=Role.REGULAR,
            name=name,
            password=password,
            key=name_key(name, encoding),
            id=self.ledger.allocate_account_id(),
            balance=0,
            registered_at=Timestamp.now(self.clock),
        ))
        account = self.ledger.accounts[handle]
        log_action(logger, "info", "Account registered",
                   user_id=account.id, action="register", resource=name)
        return account

    def login(self, name: str, password: str) -> Session:
        """
        Authenticate and open a session

        Raises:
            NotFoundError: No account with this name
            AuthenticationError: Wrong password
        """
        account = self.ledger.find_account_by_name(name)
        if account is None:
            log_action(logger, "warning", "Login failed: unknown account",
                       action="login", resource=name)
            raise NotFoundError(f"Account '{name}' not found")
        if account.password != password:
            log_action(logger, "warning", "Login failed: wrong password",
                       user_id=account.id, action="login", resource=name)
            raise AuthenticationError("Wrong account name or password")

        session = Session(account_id=account.id, established_at=Timestamp.now(self.clock))
        log_action(logger, "info", "Login succeeded",
                   user_id=account.id, action="login", resource=name)
        return session

    def profile(self, session: Session) -> AccountProfile:
        account = self.resolve(session)
        return AccountProfile(
            id=account.id,
            name=account.name,
            role=account.role,
            balance=self.balance_of(account),
            active_loans=self.ledger.count_active_borrows(account.id),
            registered_at=account.registered_at,
            session_established_at=session.established_at,
        )

    def recharge(self, session: Session, amount) -> Money:
        """Credit a positive amount to the caller's balance; returns the new balance"""
        account = self.resolve(session)
        ensure_access(account.role, Permission.RECHARGE, "Recharge", account.id)
        money = parse_positive_amount(amount, self.currency)
        account.balance = checked_balance(account.balance + money.to_minor_units())
        log_action(logger, "info", "Balance recharged",
                   user_id=account.id, action="recharge",
                   extra={"amount": str(money.amount), "balance": account.balance})
        return self.balance_of(account)

    def cancel_account(self, session: Session) -> None:
        """Erase the caller's own account"""
        account = self.resolve(session)
        ensure_access(account.role, Permission.CANCEL_ACCOUNT, "Account cancellation", account.id)
        self._erase(account, session.account_id)

    # Administration

    def _ensure_admin(self, session: Session, action: str) -> AccountRecord:
        caller = self.resolve(session)
        ensure_access(caller.role, Permission.MANAGE_ACCOUNTS, action, caller.id)
        return caller

    def deduct(self, session: Session, account_id: int, amount) -> Money:
        """Debit a positive amount from any account; returns its new balance"""
        caller = self.resolve(session)
        ensure_access(caller.role, Permission.DEDUCT, "Balance deduction", caller.id)
        target = self.ledger.account_by_id(account_id)
        money = parse_positive_amount(amount, self.currency)
        target.balance = checked_balance(target.balance - money.to_minor_units())
        log_action(logger, "info", "Balance deducted",
                   user_id=caller.id, action="deduct", resource=str(target.id),
                   extra={"amount": str(money.amount), "balance": target.balance})
        return self.balance_of(target)

    def list_accounts(self, session: Session) -> List[AccountSummary]:
        self._ensure_admin(session, "Account listing")
        return [
            AccountSummary(
                id=account.id,
                name=account.name,
                role=account.role,
                balance=self.balance_of(account),
                active_loans=self.ledger.count_active_borrows(account.id),
            )
            for account in self.ledger.accounts
        ]

    def search_account(self, session: Session, name: str) -> AccountRecord:
        self._ensure_admin(session, "Account search")
        account = self.ledger.find_account_by_name(name)
        if account is None:
            raise NotFoundError(f"Account '{name}' not found")
        return account

    def reset_password(self, session: Session, account_id: int) -> str:
        """Reset a password to the configured default; returns that default"""
        caller = self._ensure_admin(session, "Password reset")
        target = self.ledger.account_by_id(account_id)
        if target.id == ADMIN_ACCOUNT_ID:
            raise StateViolationError("The built-in administrator password cannot be reset")
        target.password = self.config.default_reset_password
        log_action(logger, "warning", "Password reset to default",
                   user_id=caller.id, action="reset_password", resource=str(target.id))
        return target.password

    def assign_role(self, session: Session, account_id: int, role) -> AccountRecord:
        """Change another account's role; the built-in administrator stays Admin"""
        caller = self._ensure_admin(session, "Role assignment")
        target = self.ledger.account_by_id(account_id)
        if isinstance(role, str):
            try:
                role = Role[role.upper()]
            except KeyError:
                raise InvalidInputError(f"Unknown role '{role}'") from None
        else:
            try:
                role = Role(role)
            except ValueError:
                raise InvalidInputError(f"Unknown role '{role}'") from None
        if target.id == ADMIN_ACCOUNT_ID:
            raise StateViolationError("The built-in administrator role cannot change")
        target.role = role
        log_action(logger, "info", "Role assigned",
                   user_id=caller.id, action="assign_role", resource=str(target.id),
                   extra={"role": role.name})
        return target

    def remove_account(self, session: Session, account_id: int) -> None:
        """Erase another account, under the same rules as self-cancellation"""
        caller = self._ensure_admin(session, "Account removal")
        target = self.ledger.account_by_id(account_id)
        if target.id == caller.id:
            raise StateViolationError("The current account cannot remove itself")
        self._erase(target, caller.id)

    def _erase(self, target: AccountRecord, actor_id: int) -> None:
        if target.id == ADMIN_ACCOUNT_ID:
            raise StateViolationError("The built-in administrator account cannot be cancelled")
        if self.ledger.count_active_borrows(target.id) > 0:
            raise StateViolationError("Account still has unreturned books")
        if target.balance < 0:
            raise StateViolationError("Account has unpaid late fees")

        handle = self.ledger.account_handle_by_id(target.id)
        if handle is None or not self.ledger.accounts.erase(handle):
            raise NotFoundError(f"Account {target.id} not found")
        log_action(logger, "info", "Account cancelled",
                   user_id=actor_id, action="cancel_account", resource=str(target.id))
