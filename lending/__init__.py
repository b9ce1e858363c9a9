"""Library lending engine.

Borrowing, returning and fining of physical book copies against a shared
sqlite store:
- Lending service orchestrating borrow/return (service.py)
- Inventory guard and borrowing limit policy (inventory.py, policy.py)
- Fine calculator (fines.py)
- Repositories and transaction boundary (repositories.py, database.py)
- HTTP API and CLI (api.py, cli.py)
"""

from lending.catalog import Catalog
from lending.cleanup import CreatedRecords, purge
from lending.database import Database, Transaction
from lending.errors import (
    AlreadyReturned,
    BookNotFound,
    BorrowingNotFound,
    InvalidArgument,
    InvalidState,
    InvariantViolation,
    LendingError,
    LimitExceeded,
    NotFound,
    OutOfStock,
    TransientStoreConflict,
    UserInactive,
    UserNotFound,
)
from lending.fines import FineCalculator, overdue_days
from lending.inventory import InventoryGuard
from lending.models import Book, Borrowing, User
from lending.policy import BorrowingLimitPolicy
from lending.result import Outcome, attempt
from lending.service import LendingService

__all__ = [
    "AlreadyReturned",
    "Book",
    "BookNotFound",
    "Borrowing",
    "BorrowingLimitPolicy",
    "BorrowingNotFound",
    "Catalog",
    "CreatedRecords",
    "Database",
    "FineCalculator",
    "InvalidArgument",
    "InvalidState",
    "InvariantViolation",
    "InventoryGuard",
    "LendingError",
    "LendingService",
    "LimitExceeded",
    "NotFound",
    "OutOfStock",
    "Outcome",
    "Transaction",
    "TransientStoreConflict",
    "User",
    "UserInactive",
    "UserNotFound",
    "attempt",
    "overdue_days",
    "purge",
]
