"""
Access Policy Module

Fixed role → permission bitmask table. Coarse service flags group the
fine operation flags; every mutating or ledger-reading operation checks
the table before it touches anything.
"""

from enum import IntFlag
from typing import Dict, Optional

from .errors import PermissionDeniedError
from .logging_config import get_logger, log_action
from .records import Role


logger = get_logger("libsys.access")


class Permission(IntFlag):
    """Operation and service flags"""
    # Book service
    BORROW = 0x001
    RETURN = 0x002
    QUERY = 0x004

    # Account service
    REGISTER = 0x008
    LOGIN = 0x010
    CANCEL_ACCOUNT = 0x020

    # Library management service
    ADD_BOOK = 0x040
    MODIFY_BOOK = 0x080

    # Property (balance) service
    RECHARGE = 0x100
    DEDUCT = 0x200

    # Record service
    NEW_RECORD = 0x400
    WITHDRAW_RECORD = 0x800

    # Services
    BOOK_SERVICE = BORROW | RETURN | QUERY
    ACCOUNT_SERVICE = REGISTER | LOGIN | CANCEL_ACCOUNT
    LIBRARY_SERVICE = ADD_BOOK | MODIFY_BOOK
    PROPERTY_SERVICE = RECHARGE | DEDUCT
    RECORD_SERVICE = NEW_RECORD | WITHDRAW_RECORD

    # Administrator account management needs both whole services
    MANAGE_ACCOUNTS = ACCOUNT_SERVICE | PROPERTY_SERVICE


ROLE_ACCESS: Dict[Role, Permission] = {
    Role.REGULAR: Permission.BOOK_SERVICE | Permission.ACCOUNT_SERVICE | Permission.RECHARGE,
    Role.MANAGER: Permission.QUERY | Permission.LIBRARY_SERVICE | Permission.RECORD_SERVICE,
    Role.ADMIN: (Permission.BOOK_SERVICE | Permission.ACCOUNT_SERVICE | Permission.LIBRARY_SERVICE
                 | Permission.PROPERTY_SERVICE | Permission.RECORD_SERVICE),
}


def permissions_for(role: Role) -> Permission:
    return ROLE_ACCESS[Role(role)]


def requires_service(role: Role, service: Permission) -> bool:
    """Role holds any bit of the service"""
    return bool(permissions_for(role) & service)


def check_access(role: Role, operation: Permission) -> bool:
    """Role holds every bit of the operation"""
    return (permissions_for(role) & operation) == operation


def _deny(role: Role, mask: Permission, action: str, user_id: Optional[int]) -> None:
    log_action(logger, "warning", f"Permission denied: {action}",
               user_id=user_id, action=action,
               extra={"role": Role(role).name, "required": int(mask)})
    raise PermissionDeniedError(f"{action} is not available to {Role(role).name.lower()} accounts")


def ensure_service(role: Role, service: Permission, action: str,
                   user_id: Optional[int] = None) -> None:
    """Raise PermissionDeniedError unless the role can use the service at all"""
    if not requires_service(role, service):
        _deny(role, service, action, user_id)


def ensure_access(role: Role, operation: Permission, action: str,
                  user_id: Optional[int] = None) -> None:
    """Raise PermissionDeniedError unless the role holds the whole operation"""
    if not check_access(role, operation):
        _deny(role, operation, action, user_id)
